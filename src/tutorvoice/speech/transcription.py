"""Speech-to-text adapter for learner voice input."""

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import openai

from ..audio.tempfiles import scoped_temp_file
from .clients import get_openai_client, translate_openai_error
from .errors import DependencyUnavailable, EmptyAudioError, PayloadTooLargeError
from .models import TranscriptionResult, TranscriptionSegment

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

MIN_AUDIO_BYTES = 1024
MAX_AUDIO_BYTES = 25 * 1024 * 1024
DEFAULT_TRANSCRIPTION_TIMEOUT = 60.0
COST_PER_MINUTE_USD = 0.006


def validate_audio(
    audio: bytes | None,
    min_bytes: int = MIN_AUDIO_BYTES,
    max_bytes: int = MAX_AUDIO_BYTES,
) -> bytes:
    """Check that an upload is worth sending to the transcription service.

    Args:
        audio: Uploaded audio bytes
        min_bytes: Smallest accepted payload (shorter clips hold no speech)
        max_bytes: Largest accepted payload; exactly ``max_bytes`` passes

    Returns:
        The audio unchanged

    Raises:
        EmptyAudioError: If audio is missing or shorter than ``min_bytes``
        PayloadTooLargeError: If audio is longer than ``max_bytes``
    """
    if not audio:
        raise EmptyAudioError("Audio file is empty")
    size = len(audio)
    if size < min_bytes:
        raise EmptyAudioError("Audio file too small or empty")
    if size > max_bytes:
        raise PayloadTooLargeError(
            f"Audio file too large (max {max_bytes // (1024 * 1024)}MB)",
            size=size,
            limit=max_bytes,
        )
    return audio


def estimate_transcription_cost(duration_seconds: float) -> float:
    """Estimated transcription charge in USD for a clip of this length."""
    return (max(duration_seconds, 0.0) / 60) * COST_PER_MINUTE_USD


class Transcriber:
    """Transcribes learner audio with OpenAI Whisper.

    The audio is written to a per-call scratch file (the API takes a file
    upload) which is deleted on every exit path.
    """

    def __init__(
        self,
        client: "AsyncOpenAI | None" = None,
        model: str = "whisper-1",
        language: str | None = "es",
        timeout: float = DEFAULT_TRANSCRIPTION_TIMEOUT,
        min_bytes: int = MIN_AUDIO_BYTES,
        max_bytes: int = MAX_AUDIO_BYTES,
        temp_dir: Path | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._client = client
        self.model = model
        self.language = language
        self.timeout = timeout
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes
        self.temp_dir = temp_dir

    @property
    def client(self) -> "AsyncOpenAI":
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    async def _create(
        self, audio: bytes, language: str | None, response_format: str, suffix: str
    ):
        validate_audio(audio, self.min_bytes, self.max_bytes)
        language = language or self.language

        logger.debug(
            f"Transcribing audio: {len(audio)} bytes, language={language}, "
            f"format={response_format}"
        )
        params = {
            "model": self.model,
            "response_format": response_format,
            "temperature": 0,
        }
        if language:
            params["language"] = language

        start = time.monotonic()
        with scoped_temp_file(audio, suffix=suffix, directory=self.temp_dir) as path:
            try:
                with open(path, "rb") as audio_file:
                    result = await asyncio.wait_for(
                        self.client.audio.transcriptions.create(
                            file=audio_file, **params
                        ),
                        timeout=self.timeout,
                    )
            except TimeoutError as e:
                logger.error(f"Transcription timed out after {self.timeout}s")
                raise DependencyUnavailable(
                    f"Transcription timed out after {self.timeout}s",
                    dependency="transcription",
                    original_error=e,
                ) from e
            except openai.OpenAIError as e:
                logger.error(f"Transcription failed: {type(e).__name__}")
                raise translate_openai_error(e, "transcription") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Transcription complete in {elapsed_ms}ms")
        return result

    async def transcribe(
        self, audio: bytes, language: str | None = None, suffix: str = ".webm"
    ) -> str:
        """Transcribe audio to plain text.

        Args:
            audio: Recorded audio bytes
            language: ISO-639-1 language code (defaults to the configured one)
            suffix: Scratch file extension hinting the container format

        Returns:
            Trimmed transcript; empty string when no speech was detected

        Raises:
            EmptyAudioError: If audio is empty or too short
            PayloadTooLargeError: If audio is over the size limit
            DependencyUnavailable: If the transcription service fails
        """
        result = await self._create(audio, language, "text", suffix)
        text = result if isinstance(result, str) else getattr(result, "text", "")
        return (text or "").strip()

    async def transcribe_verbose(
        self, audio: bytes, language: str | None = None, suffix: str = ".webm"
    ) -> TranscriptionResult:
        """Transcribe audio with timing detail.

        Raises:
            EmptyAudioError: If audio is empty or too short
            PayloadTooLargeError: If audio is over the size limit
            DependencyUnavailable: If the transcription service fails
        """
        result = await self._create(audio, language, "verbose_json", suffix)
        segments = tuple(
            TranscriptionSegment(
                start=float(segment.start),
                end=float(segment.end),
                text=segment.text.strip(),
            )
            for segment in (getattr(result, "segments", None) or [])
        )
        return TranscriptionResult(
            text=(result.text or "").strip(),
            duration=getattr(result, "duration", None),
            language=getattr(result, "language", None) or language or self.language,
            segments=segments,
        )
