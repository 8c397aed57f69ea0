"""Cache of synthesized audio for fixed UI phrases."""
import asyncio
import logging
import re
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


def normalize_key(text: str) -> str:
    """Normalize phrase text so trivial spacing/case differences share an entry."""
    return re.sub(r"\s+", " ", text or "").strip().lower()


class ResponseCache:
    """Write-once store of phrase audio.

    Entries never expire; the whole cache is cleared on session reset. Only
    short, frequently repeated prompts belong here, never challenge text.
    """

    def __init__(self):
        self._entries: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._entries.get(normalize_key(key))

    def put(self, key: str, artifact: bytes) -> None:
        """Store an artifact; a key that is already cached is left untouched."""
        normalized = normalize_key(key)
        if normalized in self._entries:
            return
        self._entries[normalized] = artifact
        logger.debug("Cached phrase: %r", normalized)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Audio cache cleared")

    def keys(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return normalize_key(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def prewarm(
        self,
        phrases: Iterable[str],
        producer: Callable[[str], Awaitable[bytes]],
        delay: float = 0.1,
    ) -> int:
        """Eagerly cache phrases, skipping (and logging) the ones that fail.

        Returns the number of phrases newly cached.
        """
        cached = 0
        for phrase in phrases:
            if phrase in self:
                continue
            try:
                self.put(phrase, await producer(phrase))
                cached += 1
            except Exception as e:
                logger.warning("Failed to cache phrase %r: %s", phrase, e)
                continue
            if delay:
                # Small delay to avoid overwhelming the API
                await asyncio.sleep(delay)
        logger.info("Pre-cached %d phrases", cached)
        return cached
