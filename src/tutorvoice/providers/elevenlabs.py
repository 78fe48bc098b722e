"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import logging
import os
from typing import TYPE_CHECKING

from ..speech.clients import get_elevenlabs_client
from ..speech.errors import AuthenticationError, DependencyUnavailable
from ..speech.models import SynthesisResult
from .base import SpeechProvider

if TYPE_CHECKING:
    from elevenlabs.client import ElevenLabs

logger = logging.getLogger(__name__)

# Tuned for short, calm tutoring sentences
DEFAULT_VOICE_SETTINGS = {
    "stability": 0.65,
    "similarity_boost": 0.75,
    "style": 0.4,
    "use_speaker_boost": True,
}


def _map_error(e: Exception, action: str) -> DependencyUnavailable:
    """Translate an SDK exception into the pipeline's error types."""
    status_code = getattr(e, "status_code", None)
    message = str(e)
    if status_code == 401 or "unauthorized" in message.lower() or "401" in message:
        return AuthenticationError(
            "ElevenLabs authentication failed",
            dependency="synthesis",
            status_code=401,
            original_error=e,
        )
    if status_code == 429 or "429" in message:
        return DependencyUnavailable(
            "Rate limit exceeded",
            dependency="synthesis",
            status_code=429,
            original_error=e,
        )
    if isinstance(status_code, int) and status_code >= 500:
        return DependencyUnavailable(
            f"Server error ({status_code})",
            dependency="synthesis",
            status_code=status_code,
            original_error=e,
        )
    return DependencyUnavailable(
        f"{action} failed: {type(e).__name__}",
        dependency="synthesis",
        status_code=status_code if isinstance(status_code, int) else None,
        original_error=e,
    )


class ElevenLabsProvider(SpeechProvider):
    """ElevenLabs TTS provider implementation.

    The SDK is synchronous, so every call runs in a worker thread to keep
    the event loop free.
    """

    name = "elevenlabs"
    default_voice = ""
    default_model = "eleven_turbo_v2_5"

    def __init__(
        self,
        client: "ElevenLabs | None" = None,
        output_format: str = "mp3_44100_128",
    ) -> None:
        """Initialize ElevenLabs provider.

        Args:
            client: Pre-built ElevenLabs client (defaults to the shared one,
                created on first use from ELEVENLABS_API_KEY)
            output_format: SDK output format; its prefix ("mp3", "wav")
                becomes the artifact's audio format
        """
        self._client = client
        self.output_format = output_format
        self.audio_format = output_format.split("_", 1)[0]
        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[dict] | None = None

    @property
    def client(self) -> "ElevenLabs":
        if self._client is None:
            self._client = get_elevenlabs_client()
        return self._client

    def is_configured(self) -> bool:
        return self._client is not None or bool(os.getenv("ELEVENLABS_API_KEY"))

    async def synthesize(self, text: str, voice: str, model: str) -> SynthesisResult:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech
            voice: Voice ID (first account voice if empty)
            model: ElevenLabs model ID

        Returns:
            SynthesisResult in ``self.audio_format``

        Raises:
            AuthenticationError: If authentication fails
            DependencyUnavailable: If the API call fails
        """
        model = model or self.default_model
        client = self.client

        # Use first available voice if not specified
        if not voice:
            voices = await self.list_voices()
            if not voices:
                raise DependencyUnavailable("No voices available", dependency="synthesis")
            voice = voices[0]["id"]

        def _sync_convert() -> bytes:
            audio_chunks = client.text_to_speech.convert(
                text=text,
                voice_id=voice,
                model_id=model,
                output_format=self.output_format,
                voice_settings=DEFAULT_VOICE_SETTINGS,
            )
            # Collect all audio chunks
            return b"".join(audio_chunks)

        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            raise _map_error(e, "Speech synthesis") from e

        if not audio_bytes:
            raise DependencyUnavailable(
                "No audio data received from API", dependency="synthesis"
            )

        logger.info(f"Speech generated: {len(audio_bytes)} bytes ({self.audio_format})")
        return SynthesisResult(
            audio=audio_bytes, voice=voice, model=model, audio_format=self.audio_format
        )

    async def list_voices(self) -> list[dict]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Raises:
            AuthenticationError: If authentication fails
            DependencyUnavailable: If API call fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        client = self.client

        def _sync_get_voices() -> list[dict]:
            response = client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise _map_error(e, "Listing voices") from e

        self._voices_cache = voices
        return voices
