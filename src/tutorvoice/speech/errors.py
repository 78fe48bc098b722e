"""Custom voice pipeline exceptions."""

RETRY_MESSAGE = "The voice service is temporarily unavailable. Please try again."


class VoiceError(Exception):
    """Base exception for voice pipeline errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error

    @property
    def user_message(self) -> str:
        """Message that is safe to show to the end user."""
        return RETRY_MESSAGE


class ValidationError(VoiceError):
    """Exception raised for bad input.

    This typically occurs when:
    - Text is empty or longer than the synthesis limit
    - Uploaded audio is empty, too short or too large

    Never retried. The message is specific and actionable.
    """

    @property
    def user_message(self) -> str:
        return str(self)


class EmptyAudioError(ValidationError):
    """Exception raised when an audio payload is empty or too short."""

    pass


class PayloadTooLargeError(ValidationError):
    """Exception raised when an audio payload exceeds the upstream limit."""

    def __init__(self, message: str, size: int, limit: int) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit


class DependencyUnavailable(VoiceError):
    """Exception raised when an external capability fails.

    This typically occurs when:
    - The synthesis or transcription API is unreachable or times out
    - Rate limits are exceeded (429 error)
    - The upstream server fails (5xx errors)

    The pipeline does not retry internally; callers may retry safely.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        dependency: str,
        key: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.dependency = dependency
        self.key = key
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.key:
            return f"{message} [{self.dependency}, key={self.key[:12]}]"
        return f"{message} [{self.dependency}]"


class AuthenticationError(DependencyUnavailable):
    """Exception raised when credentials are missing or rejected.

    This typically occurs when:
    - API key is missing or invalid
    - Account has insufficient credits
    """

    pass
