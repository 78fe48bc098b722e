"""Speech package for tutorvoice.

Errors and request/response models shared by synthesis, transcription and
the pipeline. The adapters themselves live in submodules so importing this
package never pulls in a vendor SDK.
"""

from .errors import (
    AuthenticationError,
    DependencyUnavailable,
    EmptyAudioError,
    PayloadTooLargeError,
    ValidationError,
    VoiceError,
)
from .models import (
    ListenRequest,
    ListenResponse,
    SpeakRequest,
    SpeakResponse,
    SynthesisResult,
    TranscriptionResult,
)

__all__ = [
    "AuthenticationError",
    "DependencyUnavailable",
    "EmptyAudioError",
    "ListenRequest",
    "ListenResponse",
    "PayloadTooLargeError",
    "SpeakRequest",
    "SpeakResponse",
    "SynthesisResult",
    "TranscriptionResult",
    "ValidationError",
    "VoiceError",
]
