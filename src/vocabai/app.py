"""Terminal front-end for the vocabulary quiz."""
import asyncio
import logging
import sys
import threading
from typing import Optional

from vocabai.config import SessionConfig, Settings
from vocabai.errors import InvalidActionError
from vocabai.models.base import init_db
from vocabai.models.game_models import ConversationState, SpeechMode
from vocabai.models.vocabulary import Level
from vocabai.monitoring import start_monitoring
from vocabai.services.challenge_orchestrator import ChallengeOrchestrator
from vocabai.services.challenge_provider import ChallengeProvider, OpenAIChallengeProvider, has_usable_api_key
from vocabai.services.conversation_engine import ConversationEngine, PromptCallback, StateCallback
from vocabai.services.preference_service import PreferenceService
from vocabai.services.rate_limiter import RateLimiter
from vocabai.services.retry import RetryPolicy
from vocabai.services.speech_io import ConsoleSpeechIO, SpeechIO, make_synthesizer
from vocabai.services.speech_service import SpeechService
from vocabai.services.vocabulary import WORD_LIST_FILE, VocabularyStore

logger = logging.getLogger(__name__)

MENU = (
    "Press Enter to start. Other commands: "
    "'level A1|A2|B1|B2|any', 'mode full|concise|silent', 'quit'."
)


def build_engine(
    settings: Settings,
    speech_io: SpeechIO,
    config: SessionConfig,
    store: Optional[VocabularyStore] = None,
    provider: Optional[ChallengeProvider] = None,
    on_state_change: Optional[StateCallback] = None,
    on_prompt: Optional[PromptCallback] = None,
) -> ConversationEngine:
    """Wire the orchestrator, speech service and engine from settings."""
    if store is None:
        store = VocabularyStore.load()
    orchestrator = ChallengeOrchestrator(
        store,
        provider=provider,
        rate_limiter=RateLimiter(settings.openai.requests_per_minute),
        retry_policy=RetryPolicy(settings.openai.retry_attempts, settings.openai.retry_delay),
        options_count=config.options_count,
    )
    speech = SpeechService(
        speech_io,
        mode=config.speech_mode,
        rate_limiter=RateLimiter(settings.speech.requests_per_minute),
        retry_policy=RetryPolicy(settings.speech.retry_attempts, settings.speech.retry_delay),
        prewarm_delay=settings.speech.prewarm_delay,
    )
    return ConversationEngine(
        orchestrator,
        speech,
        config,
        on_state_change=on_state_change,
        on_prompt=on_prompt,
    )


class VocabAIApp:
    """Main application class."""

    def __init__(self, settings: Settings, level: Optional[str] = None, speech_mode: Optional[str] = None):
        """Initialize the application."""
        self.settings = settings
        self.requested_level = level
        self.requested_mode = speech_mode
        self.running = False
        self.engine: Optional[ConversationEngine] = None
        self.preferences: Optional[PreferenceService] = None
        self.provider: Optional[OpenAIChallengeProvider] = None
        self.db = None
        self._input: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._microphone: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._prewarm_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Build every component and enter the setup menu."""
        if self.running:
            return

        session_factory = init_db(self.settings.database.url, echo=self.settings.database.echo)
        self.db = session_factory()
        self.preferences = PreferenceService(self.db)
        logger.info("Preference store initialized")

        default_mode = SpeechMode.parse(self.settings.game.default_speech_mode)
        if self.requested_mode is not None:
            mode = SpeechMode.parse(self.requested_mode)
            self.preferences.set_speech_mode(mode)
        else:
            mode = self.preferences.get_speech_mode(default_mode)
        level = Level.parse(self.requested_level or self.settings.game.default_level)
        config = SessionConfig(level=level, speech_mode=mode, rearm_delay=self.settings.game.rearm_delay)

        if has_usable_api_key(self.settings.openai.api_key):
            self.provider = OpenAIChallengeProvider(self.settings.openai)
        else:
            logger.info("No usable OpenAI API key, challenges come from the bundled word list")

        custom_list = self.settings.paths.dictionaries_dir / WORD_LIST_FILE
        store = VocabularyStore.load(custom_list if custom_list.exists() else None)

        speech_io = ConsoleSpeechIO(
            make_synthesizer(self.settings.speech),
            self._microphone,
            audio_dir=self.settings.paths.audio_dir,
        )
        self.engine = build_engine(
            self.settings,
            speech_io,
            config,
            store=store,
            provider=self.provider,
            on_state_change=self._on_state_change,
            on_prompt=self._on_prompt,
        )

        if self.settings.monitoring.port:
            start_monitoring(self.settings.monitoring.port)
            logger.info("Metrics exported on port %d", self.settings.monitoring.port)

        self._start_input_thread()
        self._schedule_prewarm()
        self.running = True
        print(f"VocabAI ready. Level: {level.value}, speech mode: {mode.value}.")
        print(MENU)

    async def stop(self) -> None:
        """Stop the application."""
        if not self.running:
            return
        self.running = False
        if self.engine is not None:
            # Also cancels a running pre-warm
            await self.engine.request_home()
        if self.provider is not None:
            await self.provider.aclose()
        synthesizer = getattr(self.engine.speech.speech_io, "synthesizer", None) if self.engine else None
        if synthesizer is not None and hasattr(synthesizer, "aclose"):
            await synthesizer.aclose()
        if self.db is not None:
            self.db.close()
        logger.info("Application stopped")

    async def run(self) -> None:
        """Run until the user quits or input ends."""
        await self.start()
        try:
            while self.running:
                line = await self._input.get()
                if line is None:
                    break
                if line.strip().lower() in ("quit", "exit"):
                    break
                try:
                    await self.handle_line(line)
                except (InvalidActionError, ValueError) as e:
                    print(f"⚠️  {e}")
        finally:
            await self.stop()

    async def handle_line(self, line: str) -> None:
        """Route one typed line to the engine."""
        engine = self.engine
        text = line.strip()
        command = text.lower()

        if engine.state is ConversationState.SETUP:
            await self._handle_setup(command)
            return

        if command.startswith("mode "):
            await self._change_mode(command[5:])
            return

        if engine.state is ConversationState.AWAITING_ANSWER and command.isdigit():
            await engine.submit_choice(self._option(int(command)))
            return

        if engine.speech_mode.uses_voice:
            # Typed lines stand in for the microphone
            self._microphone.put_nowait(command)
            return

        if engine.state is ConversationState.AWAITING_ANSWER:
            await engine.submit_manual_answer(text)
        elif engine.state is ConversationState.AWAITING_COMMAND:
            if command in ("next", "next word", "n"):
                await engine.request_next()
            elif command in ("home", "go home", "h"):
                await engine.request_home()
            else:
                print("Type 'next' for another word or 'home' to return to the menu.")
        else:
            print("Please wait...")

    async def _handle_setup(self, command: str) -> None:
        if command.startswith("level "):
            self.engine.change_level(command[6:])
            print(f"Level set to {self.engine.level.value}.")
        elif command.startswith("mode "):
            await self._change_mode(command[5:])
        elif command in ("", "start"):
            await self.engine.start_session()
        else:
            print(MENU)

    async def _change_mode(self, value: str) -> None:
        mode = SpeechMode.parse(value)
        await self.engine.change_speech_mode(mode)
        self.preferences.set_speech_mode(mode)
        print(f"Speech mode set to {mode.value}.")
        self._schedule_prewarm()

    def _option(self, number: int) -> str:
        options = self.engine.challenge.options if self.engine.challenge else ()
        if not 1 <= number <= len(options):
            raise InvalidActionError(f"Choose an option between 1 and {len(options)}")
        return options[number - 1]

    def _schedule_prewarm(self) -> None:
        if not self.settings.speech.prewarm or not self.engine.speech_mode.uses_voice:
            return
        if self._prewarm_task is not None and not self._prewarm_task.done():
            return
        self._prewarm_task = self.engine.prewarm()

    def _start_input_thread(self) -> None:
        loop = asyncio.get_running_loop()

        def read_lines() -> None:
            for line in sys.stdin:
                loop.call_soon_threadsafe(self._input.put_nowait, line.rstrip("\n"))
            loop.call_soon_threadsafe(self._input.put_nowait, None)
            loop.call_soon_threadsafe(self._microphone.put_nowait, ConsoleSpeechIO.EOF)

        threading.Thread(target=read_lines, name="stdin-reader", daemon=True).start()

    def _on_prompt(self, text: str) -> None:
        print(f"\n{text}")

    def _on_state_change(self, old_state: ConversationState, new_state: ConversationState) -> None:
        engine = self.engine
        if new_state is ConversationState.AWAITING_ANSWER and engine.challenge is not None:
            print(engine.instruction)
            for number, option in enumerate(engine.challenge.options, start=1):
                print(f"  {number}. {option}")
        elif new_state is ConversationState.AWAITING_COMMAND:
            stats = engine.stats
            print(
                f"Score: {stats.correct_answers}/{stats.total_attempted} "
                f"({stats.accuracy:.0f}%), streak {stats.current_streak}, best {stats.best_streak}"
            )
            if not engine.speech_mode.uses_voice:
                print("Type 'next' for another word or 'home' to return to the menu.")
        elif new_state is ConversationState.SETUP and old_state is not ConversationState.SETUP and self.running:
            print(f"\nBack at the menu. {MENU}")
