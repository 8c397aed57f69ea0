"""Models for quiz rounds and session state."""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from vocabai.models.vocabulary import VocabularyEntry


class SpeechMode(Enum):
    """How much the quiz talks."""
    FULL = "full"  # complete guidance sentences
    CONCISE = "concise"  # terse fragments
    SILENT = "silent"  # text only, no audio, no listening

    @classmethod
    def parse(cls, value: "str | SpeechMode") -> "SpeechMode":
        if isinstance(value, SpeechMode):
            return value
        text = (value or "").strip().lower()
        if text == "disabled":
            return cls.SILENT
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown speech mode: {value!r}") from None

    @property
    def uses_voice(self) -> bool:
        return self is not SpeechMode.SILENT


class ConversationState(Enum):
    """States of the conversation engine."""
    SETUP = "setup"
    PRESENTING = "presenting"
    AWAITING_ANSWER = "awaiting_answer"
    FEEDBACK = "feedback"
    AWAITING_COMMAND = "awaiting_command"


class ChallengeSource(Enum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Challenge:
    """One round: the target word, its clue and the answer options."""
    target: VocabularyEntry
    clue_text: str
    options: Tuple[str, ...]
    source: ChallengeSource = ChallengeSource.PROVIDER

    def __post_init__(self):
        lowered = [option.lower() for option in self.options]
        if len(set(lowered)) != len(lowered):
            raise ValueError(f"Challenge options must be unique: {self.options}")
        if lowered.count(self.target.surface_form.lower()) != 1:
            raise ValueError(f"Target {self.target.surface_form!r} must appear exactly once in options")

    @property
    def difficulty(self) -> int:
        return self.target.level.difficulty


@dataclass
class SessionStats:
    """Correctness and streak statistics for one session."""
    total_attempted: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    current_streak: int = 0
    best_streak: int = 0

    def record_answer(self, is_correct: bool) -> None:
        self.total_attempted += 1
        if is_correct:
            self.correct_answers += 1
            self.current_streak += 1
            self.best_streak = max(self.best_streak, self.current_streak)
        else:
            self.incorrect_answers += 1
            self.current_streak = 0

    @property
    def accuracy(self) -> float:
        """Share of correct answers in percent."""
        if not self.total_attempted:
            return 0.0
        return self.correct_answers / self.total_attempted * 100
