"""Shared SDK client handles, built once on first use."""

import logging
import os
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Generic, TypeVar

from .errors import AuthenticationError, DependencyUnavailable

if TYPE_CHECKING:
    from elevenlabs.client import ElevenLabs
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyClient(Generic[T]):
    """Thread-safe, lazily constructed singleton holder.

    The factory runs at most once, on the first ``get()``; a factory that
    raises leaves the holder empty so a later call can try again.
    """

    def __init__(self, name: str, factory: Callable[[], T]) -> None:
        self.name = name
        self._factory = factory
        self._instance: T | None = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._instance is not None

    def get(self) -> T:
        instance = self._instance
        if instance is not None:
            return instance

        with self._lock:
            if self._instance is None:
                self._instance = self._factory()
                logger.debug(f"Initialized shared {self.name} client")
            return self._instance

    def reset(self) -> None:
        """Drop the cached instance (e.g. after rotating credentials)."""
        with self._lock:
            self._instance = None


def _build_openai() -> "AsyncOpenAI":
    from openai import AsyncOpenAI

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise AuthenticationError(
            "OpenAI API key not found. Set OPENAI_API_KEY environment variable.",
            dependency="openai",
        )
    # Retry policy belongs to the caller, not the SDK
    return AsyncOpenAI(api_key=api_key, max_retries=0)


def _build_elevenlabs() -> "ElevenLabs":
    from elevenlabs.client import ElevenLabs

    api_key = os.getenv("ELEVENLABS_API_KEY")
    if not api_key:
        raise AuthenticationError(
            "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
            "variable.",
            dependency="elevenlabs",
        )
    return ElevenLabs(api_key=api_key)


openai_client: LazyClient["AsyncOpenAI"] = LazyClient("openai", _build_openai)
elevenlabs_client: LazyClient["ElevenLabs"] = LazyClient("elevenlabs", _build_elevenlabs)


def get_openai_client() -> "AsyncOpenAI":
    return openai_client.get()


def get_elevenlabs_client() -> "ElevenLabs":
    return elevenlabs_client.get()


def translate_openai_error(e: Exception, dependency: str) -> DependencyUnavailable:
    """Map an OpenAI SDK exception onto the pipeline's error types.

    Args:
        e: Exception raised by the OpenAI client
        dependency: "synthesis" or "transcription"

    Returns:
        AuthenticationError for 401/403, DependencyUnavailable otherwise
    """
    import openai

    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationError(
            f"OpenAI rejected the credentials ({e.status_code})",
            dependency=dependency,
            status_code=e.status_code,
            original_error=e,
        )
    if isinstance(e, openai.RateLimitError):
        return DependencyUnavailable(
            "Rate limit exceeded",
            dependency=dependency,
            status_code=429,
            original_error=e,
        )
    if isinstance(e, openai.APIStatusError):
        return DependencyUnavailable(
            f"OpenAI returned status {e.status_code}",
            dependency=dependency,
            status_code=e.status_code,
            original_error=e,
        )
    # APIConnectionError, including APITimeoutError
    return DependencyUnavailable(
        f"Could not reach OpenAI: {type(e).__name__}",
        dependency=dependency,
        original_error=e,
    )
