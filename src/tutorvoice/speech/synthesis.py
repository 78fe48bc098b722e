"""Text-to-speech adapter with input validation and a hard timeout."""

import asyncio
import logging

from ..providers import ProviderRegistry
from ..providers.base import SpeechProvider
from .errors import DependencyUnavailable, ValidationError, VoiceError
from .models import SynthesisResult

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096
DEFAULT_SYNTHESIS_TIMEOUT = 30.0


def validate_text(text: str | None, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Check that text can be synthesized.

    Args:
        text: Text to speak
        max_length: Maximum number of characters

    Returns:
        The text unchanged

    Raises:
        ValidationError: If text is missing, blank or too long
    """
    if text is None or not text.strip():
        raise ValidationError("Text is required")
    if len(text) > max_length:
        raise ValidationError(f"Text too long (max {max_length} characters)")
    return text


class SpeechSynthesizer:
    """Turns text into audio through one provider call.

    No retries happen here: a failure is reported once as
    DependencyUnavailable and the caller decides what to do.
    """

    def __init__(
        self,
        provider: SpeechProvider | str = "openai",
        timeout: float = DEFAULT_SYNTHESIS_TIMEOUT,
        max_text_length: int = MAX_TEXT_LENGTH,
        voice: str | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize the synthesizer.

        Args:
            provider: Provider instance or registered provider name
            timeout: Seconds to wait for the provider
            max_text_length: Maximum accepted text length
            voice: Default voice (provider default if None)
            model: Default model (provider default if None)

        Raises:
            KeyError: If a provider name is not registered
            ValueError: If timeout is not positive
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if isinstance(provider, str):
            provider = ProviderRegistry.get_instance(provider)
        self.provider = provider
        self.timeout = timeout
        self.max_text_length = max_text_length
        self.voice = voice
        self.model = model

    @property
    def default_voice(self) -> str:
        return self.voice or self.provider.default_voice

    @property
    def default_model(self) -> str:
        return self.model or self.provider.default_model

    @property
    def audio_format(self) -> str:
        return self.provider.audio_format

    def resolve(self, voice: str | None, model: str | None) -> tuple[str, str]:
        """Fill in provider defaults for missing voice/model."""
        return voice or self.default_voice, model or self.default_model

    async def synthesize(
        self,
        text: str,
        voice: str | None = None,
        model: str | None = None,
        key: str | None = None,
    ) -> SynthesisResult:
        """Synthesize speech for text.

        Args:
            text: Text to speak (validated again here)
            voice: Voice identifier (provider default if None)
            model: Model identifier (provider default if None)
            key: Cache key, attached to errors for diagnostics

        Returns:
            SynthesisResult with the audio bytes

        Raises:
            ValidationError: If text is invalid
            DependencyUnavailable: If the provider fails or times out
        """
        validate_text(text, self.max_text_length)
        voice, model = self.resolve(voice, model)

        try:
            return await asyncio.wait_for(
                self.provider.synthesize(text, voice, model), timeout=self.timeout
            )
        except TimeoutError as e:
            logger.error(f"Synthesis timed out after {self.timeout}s")
            raise DependencyUnavailable(
                f"Synthesis timed out after {self.timeout}s",
                dependency="synthesis",
                key=key,
                original_error=e,
            ) from e
        except DependencyUnavailable as e:
            if e.key is None:
                e.key = key
            logger.error(f"Synthesis failed: {e}")
            raise
        except VoiceError:
            raise
        except Exception as e:
            logger.error(f"Synthesis failed: {type(e).__name__}: {e}")
            raise DependencyUnavailable(
                f"Synthesis failed: {type(e).__name__}",
                dependency="synthesis",
                key=key,
                original_error=e,
            ) from e


async def list_available_voices(provider: SpeechProvider | str = "openai") -> list[dict]:
    """List voices offered by a provider.

    Raises:
        KeyError: If provider name not found
        DependencyUnavailable: If the provider cannot list voices
    """
    if isinstance(provider, str):
        provider = ProviderRegistry.get_instance(provider)
    return await provider.list_voices()
