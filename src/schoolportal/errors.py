from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class SessionExpiredError(AuthenticationError):
    """Raised when a session has been idle for longer than the timeout.

    Handled exactly like a missing session so clients re-authenticate.
    """

    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ExpiredError(UserError):
    """Raised when a QR token is past its expiry."""

    def __init__(self, message: str = "QR code has expired") -> None:
        super().__init__(message)


class AlreadyUsedError(UserError):
    """Raised when a QR token was already redeemed."""

    def __init__(self, message: str = "QR code has already been used") -> None:
        super().__init__(message)


class InternalError(Exception):
    """Storage-level failure that is safe to retry. Never shown to the user verbatim."""
