"""OpenAI text-to-speech provider implementation."""

import logging
import os
import time
from typing import TYPE_CHECKING

import openai

from ..speech.clients import get_openai_client, translate_openai_error
from ..speech.errors import DependencyUnavailable, ValidationError
from ..speech.models import SynthesisResult
from .base import SpeechProvider

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

OPENAI_VOICES = (
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "nova",
    "onyx",
    "sage",
    "shimmer",
    "verse",
)
OPENAI_MODELS = ("tts-1", "tts-1-hd", "gpt-4o-mini-tts")


class OpenAISpeechProvider(SpeechProvider):
    """OpenAI TTS provider.

    Requests WAV output because the lip-sync analyzer reads WAV directly.
    """

    name = "openai"
    default_voice = "nova"
    default_model = "tts-1"
    audio_format = "wav"

    def __init__(self, client: "AsyncOpenAI | None" = None, speed: float = 1.0) -> None:
        """Initialize OpenAI provider.

        Args:
            client: Pre-built AsyncOpenAI client (defaults to the shared one,
                created on first use from OPENAI_API_KEY)
            speed: Speaking rate (0.25-4.0)

        Raises:
            ValueError: If speed is out of range
        """
        if not 0.25 <= speed <= 4.0:
            raise ValueError("speed must be between 0.25 and 4.0")
        self._client = client
        self.speed = speed

    @property
    def client(self) -> "AsyncOpenAI":
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def is_configured(self) -> bool:
        return self._client is not None or bool(os.getenv("OPENAI_API_KEY"))

    async def synthesize(self, text: str, voice: str, model: str) -> SynthesisResult:
        """Convert text to WAV audio with one API call.

        Raises:
            ValidationError: If voice or model is unknown
            AuthenticationError: If the API key is missing or rejected
            DependencyUnavailable: If the API call fails
        """
        voice = voice or self.default_voice
        model = model or self.default_model
        if voice not in OPENAI_VOICES:
            raise ValidationError(
                f"Unknown voice '{voice}'. Available voices: {', '.join(OPENAI_VOICES)}"
            )
        if model not in OPENAI_MODELS:
            raise ValidationError(
                f"Unknown model '{model}'. Available models: {', '.join(OPENAI_MODELS)}"
            )

        logger.debug(
            f"Generating speech: voice={voice}, model={model}, length={len(text)}"
        )
        start = time.monotonic()

        try:
            response = await self.client.audio.speech.create(
                model=model,
                voice=voice,
                input=text,
                response_format="wav",
                speed=self.speed,
            )
            audio = await response.aread()
        except openai.OpenAIError as e:
            raise translate_openai_error(e, "synthesis") from e

        if not audio:
            raise DependencyUnavailable(
                "No audio data received from API", dependency="synthesis"
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Speech generated: {len(audio)} bytes in {elapsed_ms}ms")

        return SynthesisResult(
            audio=audio, voice=voice, model=model, audio_format=self.audio_format
        )

    async def list_voices(self) -> list[dict]:
        # OpenAI has no voice listing endpoint; the set is fixed
        return [
            {"id": voice, "name": voice.capitalize(), "provider": self.name}
            for voice in OPENAI_VOICES
        ]
