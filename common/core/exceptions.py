from pydantic import ValidationError as PayloadValidationError


class AppException(Exception):
    """Base application exception."""

    retryable = True


class NotFoundError(AppException):
    """Resource not found exception."""

    retryable = False


class ValidationError(AppException):
    """Validation error exception."""

    retryable = False


class PolicyViolationError(AppException):
    """Input is well-formed but violates a business rule (empty invoice, bad period)."""

    retryable = False


class AuthorizationError(AppException):
    """Operation attempted outside the caller's authorization context."""

    retryable = False


class LockAcquisitionError(AppException):
    """A distributed lock could not be acquired in time."""

    pass


class JobDispatchError(AppException):
    """A job could not be handed to the queue."""

    pass


def is_retryable(error: Exception) -> bool:
    """Whether redelivering the job that raised ``error`` can succeed."""
    if isinstance(error, PayloadValidationError):
        return False
    return getattr(error, "retryable", True)
