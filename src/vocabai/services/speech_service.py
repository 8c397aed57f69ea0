"""Speech output with mode handling, rate limiting, retries and phrase caching."""
import logging
import re
from typing import Any, Dict, Optional

from vocabai.errors import APIError, ErrorType, to_api_error
from vocabai.models.game_models import SpeechMode
from vocabai.monitoring import speech_cache_hits, speech_cache_misses, synthesis_failures
from vocabai.services.prompts import PHRASES, PRIORITY_PHRASES
from vocabai.services.rate_limiter import RateLimiter
from vocabai.services.response_cache import ResponseCache, normalize_key
from vocabai.services.retry import RetryPolicy
from vocabai.services.speech_io import SpeechIO

logger = logging.getLogger(__name__)

FILLER_WORDS = re.compile(r"\b(well|you know|actually|basically|essentially|literally)\b", re.IGNORECASE)
CACHEABLE_PHRASES = frozenset(normalize_key(phrase) for phrase in PHRASES.values())


class SpeechService:
    """Speak prompts according to the current speech mode."""

    def __init__(
        self,
        speech_io: SpeechIO,
        mode: SpeechMode = SpeechMode.FULL,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        prewarm_delay: float = 0.1,
    ):
        self.speech_io = speech_io
        self.mode = mode
        self.cache = cache if cache is not None else ResponseCache()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=5, base_delay=1.5)
        self.prewarm_delay = prewarm_delay

    def set_mode(self, mode: SpeechMode) -> None:
        self.mode = mode

    def optimize_text(self, text: str) -> str:
        """Trim the text for the current mode; empty when silent."""
        if self.mode is SpeechMode.SILENT:
            return ""
        if self.mode is SpeechMode.CONCISE:
            text = FILLER_WORDS.sub("", text)
        return re.sub(r"\s+", " ", text).strip()

    @staticmethod
    def is_cacheable(text: str) -> bool:
        return normalize_key(text) in CACHEABLE_PHRASES

    async def synthesize(self, text: str) -> bytes:
        """Synthesize through the rate limiter and retry policy.

        Every attempt, retries included, needs a free slot in the limiter.
        """

        async def attempt() -> bytes:
            if not self.rate_limiter.can_admit():
                wait = self.rate_limiter.time_until_next_slot()
                raise APIError(f"Speech rate limit exceeded, next slot in {wait:.0f}s", ErrorType.RATE_LIMIT)
            self.rate_limiter.record()
            return await self.speech_io.synthesize(text)

        try:
            return await self.retry_policy.execute(attempt)
        except Exception as e:
            error = to_api_error(e, "Speech synthesis failed")
            synthesis_failures.labels(error_type=error.error_type.value).inc()
            if error is e:
                raise
            raise error from e

    async def speak(self, text: str) -> None:
        """Say ``text`` and wait for playback to finish."""
        spoken = self.optimize_text(text)
        if not spoken:
            return

        cacheable = self.is_cacheable(spoken)
        audio = self.cache.get(spoken) if cacheable else None
        if audio is not None:
            speech_cache_hits.inc()
            logger.debug("Playing from cache: %r", spoken)
        else:
            if cacheable:
                speech_cache_misses.inc()
            audio = await self.synthesize(spoken)
            if cacheable:
                self.cache.put(spoken, audio)
        await self.speech_io.play(audio, spoken)

    async def prewarm(self) -> int:
        """Cache the most frequently used phrases ahead of time."""
        if self.mode is SpeechMode.SILENT:
            return 0
        logger.info("Pre-caching common phrases...")
        return await self.cache.prewarm(PRIORITY_PHRASES, self.synthesize, delay=self.prewarm_delay)

    def stop_speaking(self) -> None:
        self.speech_io.stop_playback()

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return {"cached_phrases": len(self.cache), "phrases": self.cache.keys()}
