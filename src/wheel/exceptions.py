"""Custom exceptions for wheel tracking operations."""


class WheelError(Exception):
    """Base exception for wheel operations."""

    pass


class ValidationError(WheelError):
    """Operation rejected before anything was written."""

    pass


class RollValidationError(ValidationError):
    """Roll inputs are invalid (e.g. the new expiration does not advance)."""

    pass


class PersistenceError(WheelError):
    """
    A storage read or write failed.

    The failed operation wrote nothing and may be retried as a whole;
    nothing retries it automatically.
    """

    retryable = True


class EventNotFoundError(WheelError):
    """No active event with the given id."""

    pass


class ConfigurationError(WheelError):
    """Invalid configuration file or value."""

    pass
