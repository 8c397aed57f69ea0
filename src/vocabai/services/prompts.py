"""Spoken and displayed prompt texts for each state and speech mode."""
from dataclasses import dataclass
from typing import Optional, Tuple

from vocabai.models.game_models import Challenge, ChallengeSource, ConversationState, SpeechMode

# Fixed phrases; these are the only texts the response cache holds.
PHRASES = {
    "correct": "Excellent!",
    "incorrect": "Not quite right.",
    "correct_concise": "Correct!",
    "incorrect_concise": "Incorrect.",
    "lets_begin": "Let's begin.",
    "navigation_full": 'Say "next word" to continue, or say "go home" to return to the main menu.',
    "navigation_concise": "Say next word or go home.",
    "not_understood_full": (
        "I didn't understand that command. Please say next word to continue "
        "or go home to return to the main menu."
    ),
    "not_understood_concise": "Try again. Say next word or go home.",
    "not_understood_silent": "Choose next word or go home.",
}

# Every phrase a voice mode speaks; silent mode never synthesizes.
PRIORITY_PHRASES = (
    PHRASES["correct"],
    PHRASES["incorrect"],
    PHRASES["correct_concise"],
    PHRASES["incorrect_concise"],
    PHRASES["lets_begin"],
    PHRASES["navigation_full"],
    PHRASES["navigation_concise"],
    PHRASES["not_understood_full"],
    PHRASES["not_understood_concise"],
)

INSTRUCTIONS = {
    SpeechMode.FULL: (
        "Listen carefully to the clue and context, then select your answer "
        "from the options below or speak it clearly."
    ),
    SpeechMode.CONCISE: "Listen to the clue, then choose your answer or speak it.",
    SpeechMode.SILENT: "Read the clue and context below, then select your answer from the multiple choice options.",
}


@dataclass(frozen=True)
class PromptContext:
    """What a prompt may talk about."""
    challenge: Optional[Challenge] = None
    is_correct: Optional[bool] = None


def _challenge_segments(mode: SpeechMode, challenge: Challenge) -> Tuple[str, ...]:
    target = challenge.target
    if challenge.source is ChallengeSource.FALLBACK:
        if mode is SpeechMode.CONCISE:
            return (f"Challenge: {challenge.clue_text}. Choose your answer.",)
        if mode is SpeechMode.FULL:
            return (
                PHRASES["lets_begin"],
                f"Here is a vocabulary challenge. {challenge.clue_text}. "
                "Please select your answer from the options or speak it clearly.",
            )
        return (challenge.clue_text,)
    if mode is SpeechMode.CONCISE:
        return (
            f'Challenge: {challenge.clue_text}. This {target.part_of_speech} means '
            f'"{target.definition}". Choose your answer.',
        )
    if mode is SpeechMode.FULL:
        return (
            PHRASES["lets_begin"],
            f"Here is your vocabulary challenge: {challenge.clue_text}. "
            f'For context: This is a {target.part_of_speech} that means "{target.definition}". '
            "Now, what word fits in the blank? You can select from the options below or speak your answer clearly.",
        )
    return (f'{challenge.clue_text} ({target.part_of_speech}: "{target.definition}")',)


def _feedback_segments(mode: SpeechMode, word: str, is_correct: bool) -> Tuple[str, ...]:
    if mode is SpeechMode.FULL:
        if is_correct:
            return (PHRASES["correct"], f"The correct word was {word}.", PHRASES["navigation_full"])
        return (
            PHRASES["incorrect"],
            f"The correct word was {word}. Don't worry, let's try another one.",
            PHRASES["navigation_full"],
        )
    verdict = PHRASES["correct_concise"] if is_correct else PHRASES["incorrect_concise"]
    if mode is SpeechMode.CONCISE:
        return (verdict, f"The word was {word}.", PHRASES["navigation_concise"])
    return (verdict, f"The word was {word}.")


def render_speech(
    state: ConversationState, mode: SpeechMode, context: PromptContext = PromptContext()
) -> Tuple[str, ...]:
    """Segments to speak, in order, for ``state`` in ``mode``.

    Fixed phrases are separate segments so their audio comes from the
    response cache. PRESENTING renders the challenge, FEEDBACK the verdict,
    AWAITING_COMMAND the "not understood" prompt. Other states have nothing
    to say.
    """
    if state is ConversationState.PRESENTING:
        if context.challenge is None:
            raise ValueError("Presenting prompt needs a challenge")
        return _challenge_segments(mode, context.challenge)
    if state is ConversationState.FEEDBACK:
        if context.challenge is None or context.is_correct is None:
            raise ValueError("Feedback prompt needs a challenge and a verdict")
        return _feedback_segments(mode, context.challenge.target.surface_form, context.is_correct)
    if state is ConversationState.AWAITING_COMMAND:
        return (PHRASES[f"not_understood_{mode.value}"],)
    return ()


def render_prompt(state: ConversationState, mode: SpeechMode, context: PromptContext = PromptContext()) -> str:
    """The whole prompt as one line of text, for display."""
    return " ".join(render_speech(state, mode, context))


def render_instruction(mode: SpeechMode) -> str:
    """On-screen instruction shown while a challenge is up."""
    return INSTRUCTIONS[mode]
