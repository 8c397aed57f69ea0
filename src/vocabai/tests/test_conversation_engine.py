"""Tests for the conversation engine."""
import asyncio
from typing import Callable, List, Tuple

import pytest

from vocabai.errors import APIError, ErrorType, InvalidActionError, RecognitionError
from vocabai.models.game_models import ConversationState, SpeechMode
from vocabai.models.vocabulary import Level
from vocabai.services.challenge_provider import ChallengeProvider
from vocabai.services.conversation_engine import ConversationEngine
from vocabai.services.prompts import PHRASES
from vocabai.services.vocabulary import VocabularyStore
from vocabai.tests.helpers import FakeProvider, FakeSpeechIO, make_engine, make_entry

State = ConversationState


@pytest.fixture
def small_store() -> VocabularyStore:
    words = ("river", "mountain", "forest", "desert", "island", "valley")
    return VocabularyStore(
        [
            make_entry(
                surface_form=word,
                level=Level.A1,
                definition=f"a kind of place called {word[::-1]}",
                example_sentence=f"We walked to the {word} yesterday.",
                part_of_speech="noun",
            )
            for word in words
        ]
    )


async def eventually(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    """Let background tasks run until ``condition`` holds."""
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


def target_of(engine: ConversationEngine) -> str:
    return engine.challenge.target.surface_form


def wrong_option(engine: ConversationEngine) -> str:
    return next(option for option in engine.challenge.options if option != target_of(engine))


@pytest.mark.asyncio
async def test_concise_voice_session(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.CONCISE)

    await engine.start_session()
    assert engine.state is State.AWAITING_ANSWER
    assert engine.is_listening
    assert speech_io.played[0].startswith("Challenge: This word means")
    assert "We walked to the ____ yesterday." in speech_io.played[0]

    target = target_of(engine)
    speech_io.say(target.upper())
    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)
    assert engine.last_result is True
    assert engine.stats.correct_answers == 1
    assert engine.stats.current_streak == 1
    await eventually(lambda: speech_io.played[-3:] == ["Correct!", f"The word was {target}.", "Say next word or go home."])

    speech_io.say("banana")
    await eventually(lambda: speech_io.played[-1] == PHRASES["not_understood_concise"])
    assert engine.state is State.AWAITING_COMMAND

    speech_io.say("please say next word now")
    await engine.wait_for_state(State.AWAITING_ANSWER, timeout=1)
    assert engine.stats.total_attempted == 1

    speech_io.say("definitely not a word")
    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)
    assert engine.last_result is False
    assert engine.stats.incorrect_answers == 1
    assert engine.stats.current_streak == 0
    assert engine.stats.best_streak == 1
    assert len(engine.speech.cache) > 0

    speech_io.say("go home")
    await engine.wait_for_state(State.SETUP, timeout=1)
    assert engine.stats.total_attempted == 0
    assert engine.challenge is None
    assert len(engine.speech.cache) == 0
    assert speech_io.stop_calls == 1
    assert not engine.is_listening


@pytest.mark.asyncio
async def test_silent_session_with_typed_answers(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    transitions: List[Tuple[State, State]] = []
    prompts: List[str] = []
    engine = make_engine(
        small_store,
        speech_io,
        SpeechMode.SILENT,
        on_state_change=lambda old, new: transitions.append((old, new)),
        on_prompt=prompts.append,
    )

    await engine.start_session()
    assert engine.state is State.AWAITING_ANSWER
    assert not engine.is_listening
    assert engine.challenge.clue_text in prompts[0]

    await engine.submit_manual_answer(f"  {target_of(engine).upper()} ")
    assert engine.state is State.AWAITING_COMMAND
    assert engine.last_result is True
    assert prompts[-1] == f"Correct! The word was {target_of(engine)}."

    assert transitions == [
        (State.SETUP, State.PRESENTING),
        (State.PRESENTING, State.AWAITING_ANSWER),
        (State.AWAITING_ANSWER, State.FEEDBACK),
        (State.FEEDBACK, State.AWAITING_COMMAND),
    ]
    assert speech_io.synthesized == []
    assert speech_io.listen_calls == 0

    await engine.request_next()
    assert engine.state is State.AWAITING_ANSWER
    await engine.submit_choice(wrong_option(engine))
    assert engine.stats.correct_answers == 1
    assert engine.stats.incorrect_answers == 1

    await engine.request_home()
    assert engine.state is State.SETUP
    assert engine.stats.total_attempted == 0


@pytest.mark.asyncio
async def test_recognition_failures_rearm_listening(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    await engine.start_session()

    speech_io.say(RecognitionError(RecognitionError.NO_SPEECH))
    speech_io.say(RecognitionError(RecognitionError.ABORTED))
    speech_io.say(target_of(engine))

    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)
    assert engine.last_result is True
    assert speech_io.listen_calls >= 3


@pytest.mark.asyncio
async def test_synthesis_failure_still_advances(small_store: VocabularyStore) -> None:
    speech_io = FakeSpeechIO(synthesis_error=APIError("bad key", ErrorType.AUTHENTICATION, 401))
    prompts: List[str] = []
    engine = make_engine(small_store, speech_io, SpeechMode.FULL, on_prompt=prompts.append)

    await engine.start_session()

    assert engine.state is State.AWAITING_ANSWER
    assert speech_io.played == []
    assert engine.challenge.clue_text in prompts[0]

    speech_io.say(target_of(engine))
    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)
    assert prompts[-1].startswith("Excellent! The correct word was")


@pytest.mark.asyncio
async def test_provider_failure_uses_fallback(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    provider = FakeProvider(APIError("bad key", ErrorType.AUTHENTICATION, 401))
    engine = make_engine(small_store, speech_io, SpeechMode.SILENT, provider=provider)

    await engine.start_session()

    assert engine.state is State.AWAITING_ANSWER
    assert engine.challenge.source.value == "fallback"
    assert engine.challenge.target.level is Level.A1
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_choice_cancels_voice_capture(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    await engine.start_session()
    await eventually(lambda: speech_io.listen_calls == 1)

    await engine.submit_choice(target_of(engine))

    assert speech_io.cancel_calls == 1
    assert engine.state is State.AWAITING_COMMAND
    assert engine.stats.correct_answers == 1
    await eventually(lambda: speech_io.listen_calls == 2)

    speech_io.say("next word")
    await engine.wait_for_state(State.AWAITING_ANSWER, timeout=1)
    assert engine.stats.total_attempted == 1


@pytest.mark.asyncio
async def test_speech_mode_switch_arms_and_cancels(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.SILENT)
    await engine.start_session()
    assert not engine.is_listening

    await engine.change_speech_mode(SpeechMode.CONCISE)
    assert engine.is_listening
    await eventually(lambda: speech_io.listen_calls == 1)

    await engine.change_speech_mode("disabled")
    assert engine.speech_mode is SpeechMode.SILENT
    assert not engine.is_listening
    assert speech_io.cancel_calls == 1

    await engine.submit_manual_answer(target_of(engine))
    assert engine.state is State.AWAITING_COMMAND


@pytest.mark.asyncio
async def test_invalid_actions(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.SILENT)

    with pytest.raises(InvalidActionError):
        await engine.submit_manual_answer("river")
    with pytest.raises(InvalidActionError):
        await engine.request_next()

    engine.change_level("a1")
    await engine.start_session()

    with pytest.raises(InvalidActionError):
        await engine.start_session()
    with pytest.raises(InvalidActionError):
        engine.change_level(Level.B2)
    with pytest.raises(InvalidActionError):
        await engine.request_next()
    with pytest.raises(InvalidActionError):
        await engine.submit_choice("not an option")

    await engine.change_speech_mode(SpeechMode.FULL)
    with pytest.raises(InvalidActionError):
        await engine.submit_manual_answer(target_of(engine))
    assert engine.state is State.AWAITING_ANSWER
    await engine.request_home()


@pytest.mark.asyncio
async def test_reset_while_presenting_cancels_fetch(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    class StuckProvider(ChallengeProvider):
        cancelled = False

        async def fetch(self, level):
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                StuckProvider.cancelled = True
                raise

    engine = make_engine(small_store, speech_io, SpeechMode.FULL, provider=StuckProvider())
    start = asyncio.create_task(engine.start_session())
    await engine.wait_for_state(State.PRESENTING, timeout=1)
    await asyncio.sleep(0)

    await engine.request_home()
    await asyncio.wait_for(start, 1)

    assert StuckProvider.cancelled
    assert engine.state is State.SETUP
    assert engine.challenge is None
    assert not engine.is_listening


@pytest.mark.asyncio
async def test_home_from_setup_is_harmless(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.CONCISE)
    await engine.request_home()

    assert engine.state is State.SETUP
    await engine.start_session(level="any", speech_mode="silent")
    assert engine.level is Level.ANY
    assert engine.speech_mode is SpeechMode.SILENT
    assert engine.state is State.AWAITING_ANSWER


@pytest.mark.asyncio
async def test_reset_cancels_prewarm(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    engine.speech.prewarm_delay = 60
    prewarm = engine.prewarm()
    await eventually(lambda: len(engine.speech.cache) == 1)

    await engine.request_home()

    assert prewarm.cancelled()
    assert len(engine.speech.cache) == 0


@pytest.mark.asyncio
async def test_switch_to_silent_during_spoken_feedback_finishes_round(small_store: VocabularyStore) -> None:
    speech_io = FakeSpeechIO(play_delay=0.05)
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    await engine.start_session()

    speech_io.say(target_of(engine))
    await engine.wait_for_state(State.FEEDBACK, timeout=1)
    await engine.change_speech_mode(SpeechMode.SILENT)

    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)
    assert engine.stats.correct_answers == 1
    assert not engine.is_listening

    await engine.request_next()
    assert engine.state is State.AWAITING_ANSWER


@pytest.mark.asyncio
async def test_switch_to_silent_during_spoken_next_word_presents(small_store: VocabularyStore) -> None:
    speech_io = FakeSpeechIO(play_delay=0.05)
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    await engine.start_session()
    speech_io.say(target_of(engine))
    await engine.wait_for_state(State.AWAITING_COMMAND, timeout=1)

    speech_io.say("next word")
    await engine.wait_for_state(State.PRESENTING, timeout=1)
    await engine.change_speech_mode(SpeechMode.SILENT)

    await engine.wait_for_state(State.AWAITING_ANSWER, timeout=1)
    assert engine.challenge is not None
    assert not engine.is_listening
    await engine.submit_manual_answer(target_of(engine))
    assert engine.stats.correct_answers == 2


@pytest.mark.asyncio
async def test_prewarmed_phrases_are_played_from_cache(small_store: VocabularyStore, speech_io: FakeSpeechIO) -> None:
    engine = make_engine(small_store, speech_io, SpeechMode.FULL)
    engine.speech.prewarm_delay = 0
    await engine.prewarm()
    prewarmed = len(speech_io.synthesized)

    await engine.start_session()
    await engine.submit_choice(target_of(engine))

    assert speech_io.played[0] == PHRASES["lets_begin"]
    assert PHRASES["correct"] in speech_io.played
    assert PHRASES["navigation_full"] in speech_io.played
    # Only the challenge and the correct-word sentence needed new audio.
    assert len(speech_io.synthesized) == prewarmed + 2
    await engine.request_home()
