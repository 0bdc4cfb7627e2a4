"""Typed application errors.

Services raise these; the exception handlers registered in main.py turn
them into JSON responses of the form {"detail": "..."} with the matching
status code. Routes never build error responses by hand.

There is no separate I/O error kind: the only I/O outside the database is
Redis, and a Redis failure disables rate limiting instead of failing the
request.
"""


class AppError(Exception):
    """Base class for every error the API reports. Generic failures map to 500."""

    status_code = 500

    def __init__(self, msg: str = "Internal error"):
        super().__init__(msg)
        self.msg = msg


class StorageError(AppError):
    """The database rejected or failed a statement."""


class CryptError(AppError):
    """Password hashing or verification failed (e.g. malformed stored hash)."""


class RequestError(AppError):
    """Malformed input: bad body, bad pagination, invalid references."""

    status_code = 400


class ConflictError(RequestError):
    """Input is well-formed but collides with existing data."""

    status_code = 409


class AuthError(AppError):
    """Missing or malformed bearer token, or no session for it."""

    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ForbiddenError(AppError):
    """The caller is authenticated but lacks the required permission."""

    status_code = 403
