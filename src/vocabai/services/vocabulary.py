"""Static vocabulary store."""
import json
import logging
import random
from importlib import resources
from pathlib import Path
from typing import List, Optional, Sequence

from vocabai.models.vocabulary import Level, VocabularyEntry

logger = logging.getLogger(__name__)

WORD_LIST_FILE = "oxford3000.json"


class VocabularyStore:
    """Read-only list of candidate words, loaded once at startup."""

    def __init__(self, entries: Sequence[VocabularyEntry]):
        if not entries:
            raise ValueError("Vocabulary store needs at least one entry")
        self._entries = tuple(entries)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "VocabularyStore":
        """Load the word list from ``path`` or from the bundled package data."""
        if path is not None:
            raw = Path(path).read_text(encoding="utf-8")
            source = str(path)
        else:
            raw = resources.files("vocabai.data").joinpath(WORD_LIST_FILE).read_text(encoding="utf-8")
            source = f"package:{WORD_LIST_FILE}"
        entries = [VocabularyEntry.from_dict(item) for item in json.loads(raw)]
        logger.info("Loaded %d vocabulary entries from %s", len(entries), source)
        return cls(entries)

    @property
    def entries(self) -> tuple:
        return self._entries

    def by_level(self, level: Level) -> List[VocabularyEntry]:
        """Entries of the given level; every entry for ``Level.ANY``."""
        if not level.is_concrete:
            return list(self._entries)
        return [entry for entry in self._entries if entry.level is level]

    def random_entry(self, level: Level = Level.ANY, rng: Optional[random.Random] = None) -> VocabularyEntry:
        """Pick a random entry, falling back to the whole list if the level is empty."""
        rng = rng or random
        candidates = self.by_level(level) or list(self._entries)
        return rng.choice(candidates)

    def __len__(self) -> int:
        return len(self._entries)
