"""Conversation state machine driving one quiz session.

The engine walks SETUP -> PRESENTING -> AWAITING_ANSWER -> FEEDBACK ->
AWAITING_COMMAND and back to PRESENTING ("next word") or SETUP ("go home").

Everything runs on one event loop. Public actions and voice results are the
only triggers; each transition is performed by a single flow at a time and
the only suspension points are challenge fetches, speech playback and
listening. Every task the engine starts is kept in a HandleRegistry so a
reset can cancel all of them, including pending retry backoffs.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Coroutine, List, Optional, Sequence, Tuple

from vocabai.config import SessionConfig
from vocabai.errors import EngineInvariantError, InvalidActionError, RecognitionError
from vocabai.models.game_models import Challenge, ConversationState, SessionStats, SpeechMode
from vocabai.models.vocabulary import Level
from vocabai.monitoring import answers, recognition_failures, session_resets, state_transitions
from vocabai.services.challenge_orchestrator import ChallengeOrchestrator
from vocabai.services.listening import HandleRegistry, ListeningSession
from vocabai.services.prompts import PromptContext, render_instruction, render_prompt, render_speech
from vocabai.services.speech_service import SpeechService

logger = logging.getLogger(__name__)

StateCallback = Callable[[ConversationState, ConversationState], None]
PromptCallback = Callable[[str], None]
SpokenHandler = Callable[[str], Awaitable[Optional[Coroutine]]]

NEXT_WORD_COMMAND = "next word"
GO_HOME_COMMAND = "go home"


class ConversationEngine:
    """Coordinates presentation, listening, grading, feedback and navigation."""

    def __init__(
        self,
        orchestrator: ChallengeOrchestrator,
        speech: SpeechService,
        config: SessionConfig = SessionConfig(),
        on_state_change: Optional[StateCallback] = None,
        on_prompt: Optional[PromptCallback] = None,
    ):
        self.orchestrator = orchestrator
        self.speech = speech
        self.config = config
        self.on_state_change = on_state_change
        self.on_prompt = on_prompt

        self._listener = ListeningSession(speech.speech_io)
        self._handles = HandleRegistry()
        self._voice_task: Optional[asyncio.Task] = None
        self._waiters: List[Tuple[ConversationState, asyncio.Future]] = []

        self._state = ConversationState.SETUP
        self._stats = SessionStats()
        self._challenge: Optional[Challenge] = None
        self._level = config.level
        self._speech_mode = config.speech_mode
        self.speech.set_mode(self._speech_mode)
        self._last_answer: Optional[str] = None
        self._last_result: Optional[bool] = None
        self._instruction = ""

    # Read-only views

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def challenge(self) -> Optional[Challenge]:
        return self._challenge

    @property
    def level(self) -> Level:
        return self._level

    @property
    def speech_mode(self) -> SpeechMode:
        return self._speech_mode

    @property
    def last_answer(self) -> Optional[str]:
        return self._last_answer

    @property
    def last_result(self) -> Optional[bool]:
        return self._last_result

    @property
    def instruction(self) -> str:
        return self._instruction

    @property
    def is_listening(self) -> bool:
        return self._voice_task is not None and not self._voice_task.done()

    # External actions

    async def start_session(self, level: "Level | str | None" = None, speech_mode: "SpeechMode | str | None" = None) -> None:
        """Leave SETUP and present the first challenge."""
        if self._state is not ConversationState.SETUP:
            raise InvalidActionError("A session is already running")
        if level is not None:
            self._level = Level.parse(level)
        if speech_mode is not None:
            self._speech_mode = SpeechMode.parse(speech_mode)
            self.speech.set_mode(self._speech_mode)
        self._stats = SessionStats()
        logger.info("Starting session: level=%s mode=%s", self._level.value, self._speech_mode.value)
        await self._run(self._present_round(), "present-round")

    def change_level(self, level: "Level | str") -> None:
        if self._state is not ConversationState.SETUP:
            raise InvalidActionError("The level can only be changed before a session starts")
        self._level = Level.parse(level)

    async def change_speech_mode(self, mode: "SpeechMode | str") -> None:
        mode = SpeechMode.parse(mode)
        previous = self._speech_mode
        self._speech_mode = mode
        self.speech.set_mode(mode)
        if mode is previous:
            return
        logger.info("Speech mode changed: %s -> %s", previous.value, mode.value)
        if not mode.uses_voice:
            await self._stop_listening()
            self.speech.stop_speaking()
        elif not self.is_listening:
            await self._arm_listening()

    async def submit_manual_answer(self, text: str) -> None:
        """Typed answer; only accepted in silent mode."""
        if self._state is not ConversationState.AWAITING_ANSWER:
            raise InvalidActionError(f"Not waiting for an answer (state: {self._state.value})")
        if self._speech_mode.uses_voice:
            raise InvalidActionError("Typed answers are only accepted in silent mode")
        await self._run(self._answer(text), "answer")

    async def submit_choice(self, option: str) -> None:
        """Multiple-choice selection; accepted in every mode."""
        if self._state is not ConversationState.AWAITING_ANSWER:
            raise InvalidActionError(f"Not waiting for an answer (state: {self._state.value})")
        if self._challenge is None:
            raise EngineInvariantError("Awaiting an answer without an active challenge")
        if option.strip().lower() not in (o.lower() for o in self._challenge.options):
            raise InvalidActionError(f"{option!r} is not one of the options")
        await self._stop_listening()
        if self._state is not ConversationState.AWAITING_ANSWER:
            raise InvalidActionError("The answer was already collected")
        await self._run(self._answer(option), "answer")

    async def request_next(self) -> None:
        if self._state is not ConversationState.AWAITING_COMMAND:
            raise InvalidActionError(f"Cannot move on now (state: {self._state.value})")
        await self._stop_listening()
        if self._state is not ConversationState.AWAITING_COMMAND:
            raise InvalidActionError("A command was already handled")
        await self._run(self._present_round(), "present-round")

    async def request_home(self) -> None:
        await self._reset()

    def prewarm(self) -> asyncio.Task:
        """Start caching the common phrases in the background; a reset cancels it."""
        return self._handles.spawn(self.speech.prewarm(), name="prewarm")

    async def wait_for_state(self, state: ConversationState, timeout: Optional[float] = None) -> None:
        """Wait until the engine enters ``state`` (returns at once if already there)."""
        if self._state is state:
            return
        future = asyncio.get_running_loop().create_future()
        waiter = (state, future)
        self._waiters.append(waiter)
        try:
            await asyncio.wait_for(future, timeout)
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    # Flows

    async def _run(self, coro: Coroutine, name: str) -> None:
        """Run a flow as a registered handle; a reset cancels it quietly."""
        task = self._handles.spawn(coro, name=name)
        await asyncio.wait({task})
        if task.cancelled():
            logger.debug("Flow %s was cancelled", name)
            return
        task.result()

    async def _present_round(self) -> None:
        self._challenge = None
        self._last_answer = None
        self._last_result = None
        self._set_state(ConversationState.PRESENTING)

        challenge = await self.orchestrator.fetch_challenge(self._level)
        self._challenge = challenge
        self._instruction = render_instruction(self._speech_mode)
        await self._prompt(ConversationState.PRESENTING, PromptContext(challenge=challenge))

        self._set_state(ConversationState.AWAITING_ANSWER)
        if self._speech_mode.uses_voice:
            await self._arm_listening()

    async def _answer(self, text: str) -> None:
        if self._state is not ConversationState.AWAITING_ANSWER:
            raise InvalidActionError(f"Not waiting for an answer (state: {self._state.value})")
        challenge = self._challenge
        is_correct = self.orchestrator.grade_answer(challenge, text)
        self._stats.record_answer(is_correct)
        answers.labels(result="correct" if is_correct else "incorrect").inc()
        self._last_answer = text
        self._last_result = is_correct
        logger.info("Answer %r graded %s", text, "correct" if is_correct else "incorrect")
        self._set_state(ConversationState.FEEDBACK)

        await self._prompt(ConversationState.FEEDBACK, PromptContext(challenge=challenge, is_correct=is_correct))

        self._set_state(ConversationState.AWAITING_COMMAND)
        if self._speech_mode.uses_voice:
            await self._arm_listening()

    async def _handle_spoken_answer(self, transcript: str) -> Optional[Coroutine]:
        return self._answer(transcript)

    async def _handle_spoken_command(self, transcript: str) -> Optional[Coroutine]:
        """Flow for a recognized command, or None after asking again."""
        command = transcript.strip().lower()
        if NEXT_WORD_COMMAND in command:
            return self._present_round()
        if GO_HOME_COMMAND in command:
            return self._reset()
        logger.info("Command not understood: %r", transcript)
        await self._prompt(ConversationState.AWAITING_COMMAND)
        return None

    async def _prompt(self, state: ConversationState, context: PromptContext = PromptContext()) -> None:
        """Show the prompt for ``state`` and speak it segment by segment."""
        self._emit(render_prompt(state, self._speech_mode, context))
        await self._say(render_speech(state, self._speech_mode, context))

    async def _say(self, segments: Sequence[str]) -> bool:
        """Speak, degrading to text only when synthesis or playback fails."""
        try:
            for segment in segments:
                await self.speech.speak(segment)
            return True
        except Exception as e:
            logger.warning("Speech output failed, continuing without audio: %s", e)
            return False

    # Listening

    async def _listen_loop(self, expected: ConversationState, handler: SpokenHandler) -> None:
        while self._state is expected and self._speech_mode.uses_voice:
            try:
                transcript = await self._listener.listen()
            except RecognitionError as e:
                recognition_failures.labels(reason=e.reason).inc()
                logger.warning("Speech recognition error (%s), listening again: %s", e.reason, e)
                await asyncio.sleep(self.config.rearm_delay)
                continue
            if self._state is not expected:
                return
            logger.info("Heard %r while %s", transcript, expected.value)
            flow = await handler(transcript)
            if flow is not None:
                # Stopping the capture must never interrupt the transition it triggered.
                self._handles.spawn(flow, name=f"voice-{expected.value}")
                return

    async def _arm_listening(self) -> None:
        await self._stop_listening()
        if self._state is ConversationState.AWAITING_ANSWER:
            handler = self._handle_spoken_answer
        elif self._state is ConversationState.AWAITING_COMMAND:
            handler = self._handle_spoken_command
        else:
            return
        self._voice_task = self._handles.spawn(
            self._listen_loop(self._state, handler), name=f"listen-{self._state.value}"
        )

    async def _stop_listening(self) -> None:
        task = self._voice_task
        self._voice_task = None
        running = task is not None and not task.done() and task is not asyncio.current_task()
        if running:
            task.cancel()
        await self._listener.cancel()
        if running:
            await asyncio.gather(task, return_exceptions=True)

    # Reset

    async def _reset(self) -> None:
        logger.info("Performing complete session reset")
        await self._stop_listening()
        self.speech.stop_speaking()
        self.speech.clear_cache()
        await self._handles.cancel_all(exclude=asyncio.current_task())

        self._challenge = None
        self._stats = SessionStats()
        self._last_answer = None
        self._last_result = None
        self._instruction = ""
        session_resets.inc()
        self._set_state(ConversationState.SETUP)

    # Notifications

    def _set_state(self, new_state: ConversationState) -> None:
        old_state = self._state
        self._state = new_state
        state_transitions.labels(state=new_state.value).inc()
        logger.debug("State %s -> %s", old_state.value, new_state.value)
        if self.on_state_change is not None:
            self.on_state_change(old_state, new_state)
        for waiter in list(self._waiters):
            state, future = waiter
            if state is new_state and not future.done():
                future.set_result(None)

    def _emit(self, text: str) -> None:
        if self.on_prompt is not None:
            self.on_prompt(text)
