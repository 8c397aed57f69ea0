"""Challenge provider backed by the OpenAI chat completions API."""
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from vocabai.config import OpenAISettings
from vocabai.errors import APIError, ChallengeValidationError, ErrorType, to_api_error
from vocabai.models.vocabulary import Level, VocabularyEntry

logger = logging.getLogger(__name__)

BLANK_PATTERN = re.compile(r"_{2,}")
JSON_BLOCK_PATTERN = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are an expert English vocabulary teacher creating learning exercises for students. Your task is to:

1. Select a vocabulary word from the Oxford 3000 list appropriate for {level_filter}
2. Create a concise, educational clue that helps students learn the word
3. The clue should be a complete sentence or question with a blank (____) where the target word goes
4. Make the clue contextual and meaningful, not just a definition
5. Keep the clue brief but clear - aim for 10-15 words maximum
6. Ensure the clue provides enough context to guess the word but isn't too obvious

Return your response in this EXACT JSON format:
{{
  "word": "example",
  "level": "A1",
  "definition": "a thing that is representative of all such things in a group",
  "example": "This is a good example of modern art.",
  "partOfSpeech": "noun",
  "clue": "Can you give me an ____ of what you mean?"
}}"""

USER_PROMPT = (
    "Please create a brief vocabulary learning exercise for a {level_filter} English learner. "
    "Select an appropriate word and create a concise clue sentence with a blank (____) "
    "where the word should go. Keep it short and clear."
)


@dataclass(frozen=True)
class ProviderChallenge:
    """A validated provider answer: the target entry and its clue."""
    entry: VocabularyEntry
    clue: str


class ChallengeProvider(ABC):
    """Source of generated word/clue pairs."""

    @abstractmethod
    async def fetch(self, level: Level) -> Dict[str, Any]:
        """Return the raw payload for one challenge at ``level``."""
        raise NotImplementedError("Subclasses must implement this method")


def _require_text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ChallengeValidationError(f"Challenge payload is missing {key!r}")
    return value.strip()


def parse_payload(content: str) -> Dict[str, Any]:
    """Extract the JSON object from a model reply that may carry extra prose."""
    match = JSON_BLOCK_PATTERN.search(content or "")
    text = match.group(0) if match else (content or "")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ChallengeValidationError(f"Provider returned an invalid response format: {e}") from None
    if not isinstance(payload, dict):
        raise ChallengeValidationError("Provider response is not a JSON object")
    return payload


def validate_payload(payload: Dict[str, Any], requested: Level) -> ProviderChallenge:
    """Check a provider payload and turn it into a vocabulary entry plus clue."""
    if not isinstance(payload, dict):
        raise ChallengeValidationError("Provider response is not a JSON object")
    word = _require_text(payload, "word").lower()
    definition = _require_text(payload, "definition")
    clue = _require_text(payload, "clue")

    blanks = len(BLANK_PATTERN.findall(clue))
    if blanks != 1:
        raise ChallengeValidationError(f"Clue must contain exactly one blank, found {blanks}: {clue!r}")

    default_level = requested if requested.is_concrete else Level.B1
    try:
        level = Level.parse(payload.get("level") or default_level)
    except ValueError:
        level = default_level
    if not level.is_concrete:
        level = default_level

    example = payload.get("example")
    if not isinstance(example, str) or not example.strip():
        example = f"This is an example with {word}."
    part_of_speech = payload.get("partOfSpeech")
    if not isinstance(part_of_speech, str) or not part_of_speech.strip():
        part_of_speech = "word"

    entry = VocabularyEntry(
        surface_form=word,
        level=level,
        definition=definition,
        example_sentence=example.strip(),
        part_of_speech=part_of_speech.strip().lower(),
    )
    return ProviderChallenge(entry=entry, clue=clue)


def has_usable_api_key(api_key: Optional[str]) -> bool:
    """Reject empty, placeholder and obviously malformed OpenAI keys."""
    return bool(
        api_key
        and api_key != "your_openai_api_key_here"
        and len(api_key) >= 20
        and api_key.startswith("sk-")
    )


class OpenAIChallengeProvider(ChallengeProvider):
    """Ask an OpenAI chat model for a word and a clue."""

    def __init__(self, settings: OpenAISettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _request_body(self, level: Level) -> Dict[str, Any]:
        level_filter = "any level (A1, A2, B1, or B2)" if not level.is_concrete else f"{level.value} level"
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(level_filter=level_filter)},
                {"role": "user", "content": USER_PROMPT.format(level_filter=level_filter)},
            ],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "top_p": 1.0,
        }

    async def fetch(self, level: Level) -> Dict[str, Any]:
        if not has_usable_api_key(self.settings.api_key):
            raise APIError("A valid OpenAI API key is required", ErrorType.AUTHENTICATION)

        logger.info("Requesting challenge from OpenAI for level %s", level.value)
        try:
            response = await self._client.post(
                f"{self.settings.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                json=self._request_body(level),
            )
        except httpx.HTTPError as e:
            raise to_api_error(e, "OpenAI request failed") from e

        if response.is_error:
            logger.error("OpenAI API error response: %s %s", response.status_code, response.text[:200])
            raise APIError.from_status(
                response.status_code, f"OpenAI API error ({response.status_code}): {response.reason_phrase}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ChallengeValidationError(f"Unexpected OpenAI response shape: {e}") from None
        logger.debug("OpenAI response content: %s", content)
        return parse_payload(content)
