"""Exception hierarchy for slingshot uploads."""


class SlingshotError(Exception):
    """Base class for all slingshot errors."""


class ConfigurationError(SlingshotError):
    """Raised at construction time when required settings are missing or invalid."""


class AuthorizationError(SlingshotError):
    """Raised by a transport when the server refuses to issue a signed URL."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class TransferError(SlingshotError):
    """Raised by a transport when the binary transfer fails."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidTransitionError(SlingshotError):
    """Raised when a state machine receives an event its current state does not accept."""


class UploadInProgressError(SlingshotError):
    """Raised when a batch is started or cleared while another is still running."""


def describe_error(exc: BaseException) -> str:
    """Message for an exception, falling back to its class name when empty."""
    return str(exc) or exc.__class__.__name__
