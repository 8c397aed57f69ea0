"""Wrong-answer options for multiple choice."""
import logging
import random
from typing import Iterable, List, Optional, Sequence

from vocabai.models.vocabulary import VocabularyEntry

logger = logging.getLogger(__name__)

GENERIC_FALLBACK_WORDS = ("answer", "option", "choice", "word", "item", "thing", "place", "time")


class DistractorGenerator:
    """Produce plausible distractors for a target word."""

    def __init__(self, fallback_words: Iterable[str] = GENERIC_FALLBACK_WORDS, rng: Optional[random.Random] = None):
        self.fallback_words = tuple(fallback_words)
        self.rng = rng or random.Random()

    def generate(self, correct: VocabularyEntry, pool: Sequence[VocabularyEntry], count: int = 3) -> List[str]:
        """Pick ``count`` distinct wrong answers.

        Same part-of-speech words from the pool come first, then any other
        pool words, then the generic fallback list.
        """
        used = {correct.surface_form.lower()}
        distractors: List[str] = []

        def take(candidates: List[str]) -> None:
            self.rng.shuffle(candidates)
            for candidate in candidates:
                if len(distractors) >= count:
                    return
                if candidate.lower() not in used:
                    distractors.append(candidate)
                    used.add(candidate.lower())

        same_pos = [e.surface_form for e in pool if e.part_of_speech == correct.part_of_speech]
        take(same_pos)
        if len(distractors) < count:
            take([e.surface_form for e in pool if e.part_of_speech != correct.part_of_speech])
        if len(distractors) < count:
            logger.debug("Pool too small for %r, using generic fallback words", correct.surface_form)
            take(list(self.fallback_words))
        if len(distractors) < count:
            raise ValueError(f"Not enough distinct words to build {count} distractors")
        return distractors

    def build_options(self, correct: VocabularyEntry, distractors: Sequence[str]) -> List[str]:
        """Combine the answer with its distractors in uniformly random order."""
        options = [correct.surface_form, *distractors]
        # random.shuffle is a Fisher-Yates shuffle
        self.rng.shuffle(options)
        return options
