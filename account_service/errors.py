"""Error taxonomy for account operations.

Every error carries an HTTP status classification and a short machine-readable
code.
"""


class AccountServiceError(Exception):
    """Base class for all account-service failures."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.error
        super().__init__(self.message)


class ValidationError(AccountServiceError):
    """Malformed or missing input."""

    status_code = 400
    error = "validation_error"


class AuthError(AccountServiceError):
    """Bad credentials or an unusable token."""

    status_code = 401
    error = "unauthorized"


class InvalidTokenError(AuthError):
    """Token signature, structure, or kind is invalid."""

    error = "invalid_token"


class ExpiredTokenError(AuthError):
    """Token has expired."""

    error = "token_expired"


class NotFoundError(AccountServiceError):
    """No matching account."""

    status_code = 404
    error = "not_found"


class ConflictError(AccountServiceError):
    """Username or email already in use."""

    status_code = 409
    error = "conflict"


class DuplicateError(AccountServiceError):
    """Unique index violation reported by the store."""

    status_code = 409
    error = "duplicate"


class UploadError(AccountServiceError):
    """Media host returned no usable reference."""

    status_code = 400
    error = "upload_failed"


class StoreUnavailableError(AccountServiceError):
    """Database is unreachable."""

    status_code = 503
    error = "store_unavailable"
