"""Abstract base class for speech synthesis providers.

This module defines the interface that all synthesis providers must
implement, ensuring consistent behavior across different backends.
"""

from abc import ABC, abstractmethod

from ..speech.models import SynthesisResult


class SpeechProvider(ABC):
    """Abstract base class for speech synthesis providers.

    Providers make exactly one outbound call per ``synthesize`` and never
    retry. Failures are raised as DependencyUnavailable (or its
    AuthenticationError subclass).

    Voice Dictionary Structure:
        Each voice returned by list_voices() follows this structure:
        {
            "id": str,       # Unique identifier for the voice
            "name": str,     # Human-readable name for the voice
            "provider": str  # Name of the provider (e.g., "openai")
        }
    """

    name: str = ""
    default_voice: str = ""
    default_model: str = ""
    audio_format: str = "wav"

    @abstractmethod
    async def synthesize(self, text: str, voice: str, model: str) -> SynthesisResult:
        """Convert text to audio.

        Args:
            text: The text to convert to speech
            voice: Voice ID or name to use for synthesis
            model: Provider model identifier

        Returns:
            SynthesisResult with audio bytes and the effective voice/model

        Raises:
            DependencyUnavailable: If the provider call fails
        """
        pass

    @abstractmethod
    async def list_voices(self) -> list[dict]:
        """Return available voices for this provider.

        Raises:
            DependencyUnavailable: If voice listing fails
        """
        pass

    def is_configured(self) -> bool:
        """Return True if credentials for this provider are present."""
        return True
