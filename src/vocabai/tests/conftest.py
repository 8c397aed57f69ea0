"""Test configuration."""
import os
from pathlib import Path
from typing import Any, Dict

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parents[3] / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from vocabai.services.vocabulary import VocabularyStore
from vocabai.tests.helpers import FakeSpeechIO


@pytest.fixture
def store() -> VocabularyStore:
    """The bundled word list."""
    return VocabularyStore.load()


@pytest.fixture
def speech_io() -> FakeSpeechIO:
    return FakeSpeechIO()


@pytest.fixture
def valid_payload() -> Dict[str, Any]:
    return {
        "word": "Harvest",
        "level": "B2",
        "definition": "the time of year when crops are gathered",
        "example": "The harvest was late this year.",
        "partOfSpeech": "noun",
        "clue": "Farmers work hard during the ____ season.",
    }
