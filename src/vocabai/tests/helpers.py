"""Fakes and builders shared by the test modules."""
import asyncio
import random
from typing import Any, Dict, List, Optional, Union

from faker import Faker

from vocabai.config import SessionConfig
from vocabai.models.game_models import SpeechMode
from vocabai.models.vocabulary import Level, VocabularyEntry
from vocabai.services.challenge_orchestrator import ChallengeOrchestrator
from vocabai.services.challenge_provider import ChallengeProvider
from vocabai.services.conversation_engine import ConversationEngine
from vocabai.services.retry import RetryPolicy
from vocabai.services.speech_io import SpeechIO
from vocabai.services.speech_service import SpeechService
from vocabai.services.vocabulary import VocabularyStore

fake = Faker()


class FakeSpeechIO(SpeechIO):
    """Scripted speech I/O: records what was played, hears what the test says."""

    def __init__(self, synthesis_error: Optional[Exception] = None, play_delay: float = 0):
        self.synthesis_error = synthesis_error
        self.play_delay = play_delay
        self.synthesized: List[str] = []
        self.played: List[str] = []
        self.listen_calls = 0
        self.cancel_calls = 0
        self.stop_calls = 0
        self.heard: "asyncio.Queue[Union[str, Exception]]" = asyncio.Queue()

    def say(self, item: Union[str, Exception]) -> None:
        """Queue a transcript, or an exception the next capture raises."""
        self.heard.put_nowait(item)

    async def synthesize(self, text: str) -> bytes:
        self.synthesized.append(text)
        if self.synthesis_error is not None:
            raise self.synthesis_error
        return f"audio:{text}".encode()

    async def play(self, audio: bytes, text: str) -> None:
        self.played.append(text)
        if self.play_delay:
            await asyncio.sleep(self.play_delay)

    async def listen_once(self) -> str:
        self.listen_calls += 1
        item = await self.heard.get()
        if isinstance(item, Exception):
            raise item
        return item

    def cancel_listening(self) -> None:
        self.cancel_calls += 1

    def stop_playback(self) -> None:
        self.stop_calls += 1


class FakeProvider(ChallengeProvider):
    """Returns scripted payloads or raises scripted errors, in order."""

    def __init__(self, *responses: Union[Dict[str, Any], Exception]):
        self.responses = list(responses)
        self.calls: List[Level] = []

    async def fetch(self, level: Level) -> Dict[str, Any]:
        self.calls.append(level)
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


async def no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


def make_entry(**overrides: Any) -> VocabularyEntry:
    data = {
        "surface_form": fake.unique.word(),
        "level": Level.A1,
        "definition": fake.sentence(),
        "example_sentence": fake.sentence(),
        "part_of_speech": "noun",
    }
    data.update(overrides)
    return VocabularyEntry(**data)


def make_engine(
    store: VocabularyStore,
    speech_io: SpeechIO,
    mode: SpeechMode = SpeechMode.SILENT,
    provider: Optional[ChallengeProvider] = None,
    level: Level = Level.A1,
    **callbacks: Any,
) -> ConversationEngine:
    orchestrator = ChallengeOrchestrator(
        store,
        provider=provider,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0, sleep=no_sleep),
        rng=random.Random(7),
    )
    speech = SpeechService(
        speech_io,
        mode=mode,
        retry_policy=RetryPolicy(max_attempts=2, base_delay=0, sleep=no_sleep),
    )
    config = SessionConfig(level=level, speech_mode=mode, rearm_delay=0)
    return ConversationEngine(orchestrator, speech, config, **callbacks)
