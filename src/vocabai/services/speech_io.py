"""Speech synthesis backends and speech I/O adapters."""
import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Optional

import httpx
from gtts import gTTS, gTTSError

from vocabai.config import SpeechSettings
from vocabai.errors import APIError, ErrorType, RecognitionError, classify_status, to_api_error

logger = logging.getLogger(__name__)


class SpeechSynthesizer(ABC):
    """Turns text into audio bytes."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        raise NotImplementedError("Subclasses must implement this method")


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """Paid, high-quality synthesis through the ElevenLabs API."""

    def __init__(self, settings: SpeechSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def synthesize(self, text: str) -> bytes:
        api_key = self.settings.elevenlabs_api_key
        if not api_key or api_key == "your_elevenlabs_api_key_here" or len(api_key) < 10:
            raise APIError("A valid ElevenLabs API key is required", ErrorType.AUTHENTICATION)

        try:
            response = await self._client.post(
                f"{self.settings.elevenlabs_base_url}/text-to-speech/{self.settings.voice_id}",
                headers={"Accept": "audio/mpeg", "xi-api-key": api_key},
                json={
                    "text": text,
                    "model_id": self.settings.model,
                    "voice_settings": {
                        "stability": 0.8,
                        "similarity_boost": 0.7,
                        "style": 0.0,
                        "use_speaker_boost": True,
                    },
                },
            )
        except httpx.HTTPError as e:
            raise to_api_error(e, "ElevenLabs request failed") from e

        if response.is_error:
            logger.error("ElevenLabs API error response: %s %s", response.status_code, response.text[:200])
            raise APIError.from_status(
                response.status_code, f"ElevenLabs API error ({response.status_code}): {response.reason_phrase}"
            )
        return response.content


class GTTSSynthesizer(SpeechSynthesizer):
    """Free synthesis through Google Translate's TTS endpoint."""

    def __init__(self, language: str = "en"):
        self.language = language

    def _synthesize_sync(self, text: str) -> bytes:
        buffer = BytesIO()
        gTTS(text=text, lang=self.language).write_to_fp(buffer)
        return buffer.getvalue()

    async def synthesize(self, text: str) -> bytes:
        try:
            return await asyncio.to_thread(self._synthesize_sync, text)
        except gTTSError as e:
            rsp = getattr(e, "rsp", None)
            if rsp is not None:
                raise APIError(str(e), classify_status(rsp.status_code), rsp.status_code, e) from e
            raise APIError(str(e), ErrorType.NETWORK, original_error=e) from e
        except ValueError as e:
            # gTTS rejects unsupported languages and empty text this way
            raise APIError(str(e), ErrorType.VALIDATION, original_error=e) from e


def make_synthesizer(settings: SpeechSettings) -> SpeechSynthesizer:
    if settings.backend == "elevenlabs":
        return ElevenLabsSynthesizer(settings)
    return GTTSSynthesizer(settings.language)


class SpeechIO(ABC):
    """Single-shot speech input and output."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Convert text to an audio artifact."""

    @abstractmethod
    async def play(self, audio: bytes, text: str) -> None:
        """Play an audio artifact until it finishes."""

    @abstractmethod
    async def listen_once(self) -> str:
        """Capture one utterance; raise RecognitionError when nothing usable was heard."""

    def cancel_listening(self) -> None:
        """Ask the recognizer to stop the current capture."""

    def stop_playback(self) -> None:
        """Stop any audio that is playing."""


class ConsoleSpeechIO(SpeechIO):
    """Terminal adapter: saves audio to disk and reads typed lines as speech."""

    EOF = None

    def __init__(self, synthesizer: SpeechSynthesizer, lines: "asyncio.Queue[Optional[str]]", audio_dir: Optional[Path] = None):
        self.synthesizer = synthesizer
        self.lines = lines
        self.audio_dir = audio_dir

    async def synthesize(self, text: str) -> bytes:
        return await self.synthesizer.synthesize(text)

    async def play(self, audio: bytes, text: str) -> None:
        if self.audio_dir is not None:
            name = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()[:16]
            path = self.audio_dir / f"{name}.mp3"
            path.write_bytes(audio)
            logger.debug("Saved speech audio to %s", path)
        print(f"🔊 ({len(audio) // 1024 or 1} KB of speech)")

    async def listen_once(self) -> str:
        print("🎤 Listening... (type what you would say)")
        line = await self.lines.get()
        if line is self.EOF:
            self.lines.put_nowait(self.EOF)
            raise RecognitionError(RecognitionError.ABORTED, "Input stream closed")
        transcript = line.strip().lower()
        if not transcript:
            raise RecognitionError(RecognitionError.NO_SPEECH, "Speech recognition ended without capturing speech")
        return transcript

    def stop_playback(self) -> None:
        logger.debug("Playback stopped")
