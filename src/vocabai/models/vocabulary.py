"""Vocabulary data structures."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Level(Enum):
    """CEFR levels covered by the word list."""
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    ANY = "any"  # request filter only, never stored on an entry

    @classmethod
    def parse(cls, value: "str | Level") -> "Level":
        """Parse a level name; "all" and "any" both mean no filter."""
        if isinstance(value, Level):
            return value
        text = (value or "").strip()
        if text.lower() in ("any", "all"):
            return cls.ANY
        try:
            return cls(text.upper())
        except ValueError:
            raise ValueError(f"Unknown level: {value!r}") from None

    @property
    def is_concrete(self) -> bool:
        return self is not Level.ANY

    @property
    def difficulty(self) -> int:
        """Numeric difficulty, 1 (A1) to 4 (B2)."""
        return {Level.A1: 1, Level.A2: 2, Level.B1: 3, Level.B2: 4}.get(self, 2)


CONCRETE_LEVELS = tuple(level for level in Level if level.is_concrete)


@dataclass(frozen=True)
class VocabularyEntry:
    """A word from the vocabulary store."""
    surface_form: str
    level: Level
    definition: str
    example_sentence: str
    part_of_speech: str

    def __post_init__(self):
        if not self.level.is_concrete:
            raise ValueError("Vocabulary entries need a concrete level")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabularyEntry":
        return cls(
            surface_form=data["surface_form"],
            level=Level.parse(data["level"]),
            definition=data["definition"],
            example_sentence=data["example_sentence"],
            part_of_speech=data["part_of_speech"],
        )
