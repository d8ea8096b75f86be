"""Service-level errors, mapped to HTTP responses by the routes."""


class NotFoundError(LookupError):
    """Row missing or owned by another user."""


class ConflictError(RuntimeError):
    """Operation not allowed in the row's current state."""


class InvalidOtpError(ValueError):
    """OTP unknown, expired, wrong, or out of attempts."""
