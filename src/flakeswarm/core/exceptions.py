"""Custom exceptions for flakeswarm."""


class FlakeswarmException(Exception):
    """Base exception for all flakeswarm-specific exceptions."""

    pass


class BackendError(FlakeswarmException):
    """Raised when the worker backend fails for reasons other than the user's command."""

    def __init__(self, message: str, *, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class MalformedOutputError(BackendError):
    """Raised when backend CLI output cannot be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, transient=False)


class FleetValidationError(FlakeswarmException):
    """Raised when a run is rejected before any session starts."""

    pass


class LostWorkerError(FlakeswarmException):
    """Raised when a worker appears to have vanished mid-run."""

    def __init__(self, worker_name: str) -> None:
        super().__init__(f"lost builder {worker_name!r}")
        self.worker_name = worker_name


class RetryCancelledError(FlakeswarmException):
    """Raised when a retry loop stops early because the fleet was cancelled."""

    pass


class InvalidStateTransitionError(FlakeswarmException):
    """Raised when attempting an invalid session state transition."""

    pass
