"""Error taxonomy for the editing session."""


class EditorError(Exception):
    """Base error with a user-facing message and a retry hint."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UploadError(EditorError):
    """Raised when an uploaded file is rejected before decoding."""


class ProcessingError(EditorError):
    """Raised once every background removal attempt has failed."""

    retryable = True

    def __init__(
        self, message: str, cause: BaseException | None = None, attempts: int = 0
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class DecodeError(EditorError):
    """Raised when image bytes cannot be decoded."""


class CapabilityError(EditorError):
    """Raised when a required imaging feature is missing."""

    def __init__(self, message: str, issues: list[str] | None = None) -> None:
        super().__init__(message)
        self.issues = list(issues or [])


class ExportError(EditorError):
    """Raised when the composed surface cannot be encoded."""


class InvalidTransitionError(EditorError):
    """Raised when an event is not valid for the current session status."""


class ReleasedHandleError(LookupError):
    """Raised when a released or unknown handle is dereferenced."""
