"""Challenge production and grading."""
import logging
import random
import re
import time
from typing import Optional

from vocabai.errors import APIError, EngineInvariantError, ErrorType, classify_exception
from vocabai.models.game_models import Challenge, ChallengeSource
from vocabai.models.vocabulary import Level, VocabularyEntry
from vocabai.monitoring import challenge_duration, challenges_generated, provider_errors
from vocabai.services.challenge_provider import ChallengeProvider, validate_payload
from vocabai.services.distractor_generator import GENERIC_FALLBACK_WORDS, DistractorGenerator
from vocabai.services.rate_limiter import RateLimiter
from vocabai.services.retry import RetryPolicy
from vocabai.services.vocabulary import VocabularyStore

logger = logging.getLogger(__name__)

BLANK = "____"
FALLBACK_SEED_WORDS = ("example", "answer", "question")


def mask_word(sentence: str, word: str) -> Optional[str]:
    """Replace the first whole-word occurrence of ``word`` with a blank."""
    pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    if not pattern.search(sentence):
        return None
    return pattern.sub(BLANK, sentence, count=1)


def fallback_clue(entry: VocabularyEntry) -> str:
    masked = mask_word(entry.example_sentence, entry.surface_form)
    if masked is None:
        return f'Which word means "{entry.definition}"? {BLANK}'
    return f'This word means "{entry.definition}". Complete this sentence: "{masked}"'


class ChallengeOrchestrator:
    """Produce challenges from the provider, falling back to the vocabulary store."""

    def __init__(
        self,
        store: VocabularyStore,
        provider: Optional[ChallengeProvider] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        distractors: Optional[DistractorGenerator] = None,
        options_count: int = 4,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.provider = provider
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.rng = rng or random.Random()
        self.distractors = distractors or DistractorGenerator(rng=self.rng)
        self.fallback_distractors = DistractorGenerator(
            fallback_words=FALLBACK_SEED_WORDS + GENERIC_FALLBACK_WORDS,
            rng=self.rng,
        )
        self.options_count = options_count

    async def fetch_challenge(self, level: Level) -> Challenge:
        """Return a challenge for ``level``; never fails."""
        started = time.perf_counter()
        try:
            if self.provider is None:
                logger.info("No challenge provider configured, using vocabulary store")
                challenge = self._fallback_challenge(level)
            else:
                try:
                    challenge = await self._provider_challenge(level)
                except Exception as e:
                    error_type = classify_exception(e)
                    provider_errors.labels(error_type=error_type.value).inc()
                    logger.warning("Challenge provider failed (%s), using fallback: %s", error_type.value, e)
                    challenge = self._fallback_challenge(level)
        finally:
            challenge_duration.observe(time.perf_counter() - started)
        challenges_generated.labels(source=challenge.source.value).inc()
        logger.info("Challenge ready: %s (%s, %s)", challenge.target.surface_form, challenge.target.level.value, challenge.source.value)
        return challenge

    async def _provider_challenge(self, level: Level) -> Challenge:
        async def attempt():
            if not self.rate_limiter.can_admit():
                wait = self.rate_limiter.time_until_next_slot()
                raise APIError(f"Challenge rate limit exceeded, next slot in {wait:.0f}s", ErrorType.RATE_LIMIT)
            self.rate_limiter.record()
            return await self.provider.fetch(level)

        payload = await self.retry_policy.execute(attempt)
        generated = validate_payload(payload, level)
        pool = self.store.by_level(level)
        distractors = self.distractors.generate(generated.entry, pool, self.options_count - 1)
        return Challenge(
            target=generated.entry,
            clue_text=generated.clue,
            options=tuple(self.distractors.build_options(generated.entry, distractors)),
            source=ChallengeSource.PROVIDER,
        )

    def _fallback_challenge(self, level: Level) -> Challenge:
        entry = self.store.random_entry(level, rng=self.rng)
        pool = self.store.by_level(entry.level)
        distractors = self.fallback_distractors.generate(entry, pool, self.options_count - 1)
        return Challenge(
            target=entry,
            clue_text=fallback_clue(entry),
            options=tuple(self.fallback_distractors.build_options(entry, distractors)),
            source=ChallengeSource.FALLBACK,
        )

    @staticmethod
    def grade_answer(challenge: Optional[Challenge], submitted_text: str) -> bool:
        """Trimmed, case-insensitive exact match against the target word."""
        if challenge is None:
            raise EngineInvariantError("Cannot grade an answer without an active challenge")
        return (submitted_text or "").strip().lower() == challenge.target.surface_form.strip().lower()
