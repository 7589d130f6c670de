"""
This file contains custom, application-specific exceptions.

Every exception carries the HTTP status it is answered with, so services can
raise them without knowing about the web layer. `main.py` turns them into
`{"error": message}` responses.
"""

class TabunganError(Exception):
    """Base class for all expected, user-facing failures."""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TabunganError):
    """Raised when input breaks a field or business constraint."""
    status_code = 400


class AuthenticationError(TabunganError):
    """Raised when the bearer credential is missing or invalid."""
    status_code = 401


class AuthorizationError(TabunganError):
    """Raised when a user's role does not permit them to perform an action."""
    status_code = 403


class NotFoundError(TabunganError):
    """Raised when a lookup found nothing."""
    status_code = 404


class ConflictError(TabunganError):
    """Raised on a duplicate NISN or an already-linked student."""
    status_code = 409


class NetworkError(TabunganError):
    """Raised when a request to a collaborator failed."""
    status_code = 502
