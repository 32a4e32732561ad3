"""Custom exceptions for the flow runner."""


class FlowRunnerException(Exception):
    """Base exception for the flow runner."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(FlowRunnerException):
    """Flow or run not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class ValidationError(FlowRunnerException):
    """A flow definition failed validation."""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, 422)


class InvalidStateTransitionError(FlowRunnerException):
    """A run was asked to move to a state its current state does not allow."""

    def __init__(self, message: str = "Invalid run state transition"):
        super().__init__(message, 409)


class QueueUnavailableError(FlowRunnerException):
    """The run queue transport could not be reached.

    Transient infrastructure failure: the caller is expected to retry.
    """

    def __init__(self, message: str = "Run queue unavailable"):
        super().__init__(message, 503)


class MalformedJobError(FlowRunnerException):
    """A queue entry could not be decoded into a run reference."""

    def __init__(self, message: str = "Malformed queue entry"):
        super().__init__(message, 500)
