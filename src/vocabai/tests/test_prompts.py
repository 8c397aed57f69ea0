"""Tests for prompt rendering."""
import pytest

from vocabai.models.game_models import Challenge, ChallengeSource, ConversationState, SpeechMode
from vocabai.services.prompts import PHRASES, PRIORITY_PHRASES, PromptContext, render_instruction, render_prompt, render_speech
from vocabai.tests.helpers import make_entry


@pytest.fixture
def challenge() -> Challenge:
    entry = make_entry(surface_form="river", definition="a large natural stream of water", part_of_speech="noun")
    return Challenge(entry, "We swam in the ____.", ("river", "lake", "road", "hill"))


def test_presenting_includes_clue_in_every_mode(challenge: Challenge) -> None:
    for mode in SpeechMode:
        text = render_prompt(ConversationState.PRESENTING, mode, PromptContext(challenge=challenge))
        assert challenge.clue_text in text
        assert "river" not in text.replace("We swam in the ____.", "")


def test_presenting_fallback_challenge(challenge: Challenge) -> None:
    fallback = Challenge(challenge.target, "Which word means water? ____", challenge.options, ChallengeSource.FALLBACK)
    text = render_prompt(ConversationState.PRESENTING, SpeechMode.CONCISE, PromptContext(challenge=fallback))
    assert text == "Challenge: Which word means water? ____. Choose your answer."


@pytest.mark.parametrize(
    "mode, is_correct, expected",
    [
        (SpeechMode.CONCISE, True, "Correct! The word was river. Say next word or go home."),
        (SpeechMode.CONCISE, False, "Incorrect. The word was river. Say next word or go home."),
        (SpeechMode.SILENT, True, "Correct! The word was river."),
        (SpeechMode.SILENT, False, "Incorrect. The word was river."),
    ],
)
def test_feedback(challenge: Challenge, mode: SpeechMode, is_correct: bool, expected: str) -> None:
    context = PromptContext(challenge=challenge, is_correct=is_correct)
    assert render_prompt(ConversationState.FEEDBACK, mode, context) == expected


def test_full_feedback_mentions_navigation(challenge: Challenge) -> None:
    text = render_prompt(ConversationState.FEEDBACK, SpeechMode.FULL, PromptContext(challenge, True))
    assert text.startswith("Excellent! The correct word was river.")
    assert '"next word"' in text and '"go home"' in text


def test_not_understood_prompt_per_mode() -> None:
    assert render_prompt(ConversationState.AWAITING_COMMAND, SpeechMode.FULL) == PHRASES["not_understood_full"]
    assert render_prompt(ConversationState.AWAITING_COMMAND, SpeechMode.CONCISE) == "Try again. Say next word or go home."


def test_quiet_states_render_nothing() -> None:
    assert render_prompt(ConversationState.SETUP, SpeechMode.FULL) == ""
    assert render_prompt(ConversationState.AWAITING_ANSWER, SpeechMode.FULL) == ""


def test_missing_context_is_an_error() -> None:
    with pytest.raises(ValueError):
        render_prompt(ConversationState.PRESENTING, SpeechMode.FULL)


def test_instruction_per_mode() -> None:
    assert "multiple choice" in render_instruction(SpeechMode.SILENT)
    assert render_instruction(SpeechMode.CONCISE) != render_instruction(SpeechMode.FULL)


def test_prompt_is_the_spoken_segments_joined(challenge: Challenge) -> None:
    for mode in SpeechMode:
        for context in (PromptContext(challenge=challenge), PromptContext(challenge, False)):
            state = ConversationState.PRESENTING if context.is_correct is None else ConversationState.FEEDBACK
            assert render_prompt(state, mode, context) == " ".join(render_speech(state, mode, context))


def test_every_prewarmed_phrase_is_spoken(challenge: Challenge) -> None:
    fallback = Challenge(challenge.target, "Which word means water? ____", challenge.options, ChallengeSource.FALLBACK)
    spoken = set()
    for mode in (SpeechMode.FULL, SpeechMode.CONCISE):
        spoken.update(render_speech(ConversationState.AWAITING_COMMAND, mode))
        for current in (challenge, fallback):
            spoken.update(render_speech(ConversationState.PRESENTING, mode, PromptContext(challenge=current)))
            for is_correct in (True, False):
                spoken.update(render_speech(ConversationState.FEEDBACK, mode, PromptContext(current, is_correct)))

    assert set(PRIORITY_PHRASES) <= spoken
    assert set(PRIORITY_PHRASES) <= set(PHRASES.values())
