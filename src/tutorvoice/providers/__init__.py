"""Provider abstraction for speech synthesis services.

This module provides a registry pattern for managing synthesis providers,
allowing runtime selection of different backends.
"""

import threading
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .base import SpeechProvider

from .elevenlabs import ElevenLabsProvider
from .openai_tts import OpenAISpeechProvider

__all__ = ["ElevenLabsProvider", "OpenAISpeechProvider", "ProviderRegistry"]


class ProviderRegistry:
    """Registry for managing synthesis providers.

    This class maintains a registry of available providers, allowing
    registration and retrieval by name.
    """

    _providers: ClassVar[dict[str, type["SpeechProvider"]]] = {}
    _instances: ClassVar[dict[str, "SpeechProvider"]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def register(cls, name: str, provider_class: type["SpeechProvider"]) -> None:
        """Register a synthesis provider.

        Args:
            name: Name to register the provider under
            provider_class: Provider class that implements SpeechProvider
        """
        cls._providers[name] = provider_class

    @classmethod
    def names(cls) -> list[str]:
        return sorted(cls._providers)

    @classmethod
    def get(cls, name: str) -> type["SpeechProvider"]:
        """Get a provider class by name.

        Raises:
            KeyError: If provider name not found
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "none"
            raise KeyError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def get_instance(cls, name: str) -> "SpeechProvider":
        """Get a shared provider instance by name.

        Creates the instance on first call, returns the same instance after.

        Args:
            name: Name of the provider

        Returns:
            Shared provider instance

        Raises:
            KeyError: If provider name not found
        """
        with cls._lock:
            if name not in cls._instances:
                provider_class = cls.get(name)
                cls._instances[name] = provider_class()
            return cls._instances[name]

    @classmethod
    def clear_instances(cls) -> None:
        with cls._lock:
            cls._instances.clear()


# Register providers
ProviderRegistry.register("openai", OpenAISpeechProvider)
ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
