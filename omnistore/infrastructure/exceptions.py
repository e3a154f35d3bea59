"""
Custom exceptions for the Infrastructure layer.

Storage adapters translate every SDK / backend failure into one of the
``StorageError`` subclasses below, so callers can react to the kind of
failure without knowing which provider produced it.
"""

from typing import Optional


class InfrastructureError(Exception):
    """Base class for exceptions in the infrastructure layer."""
    pass


class StorageError(InfrastructureError):
    """Base class for object storage failures."""

    retryable = False

    def __init__(self, message: str, path: Optional[str] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        if retryable is not None:
            self.retryable = retryable


class ObjectNotFoundError(StorageError):
    """The object/key does not exist on the backend."""


class AuthError(StorageError):
    """
    Credentials were rejected or the session is no longer valid.

    ``code`` carries the backend error code when the backend reports one,
    ``reason`` a provider-independent classification such as
    ``invalid_credentials``, ``otp_required``, ``rate_limited`` or
    ``backend_unavailable``.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        reason: Optional[str] = None,
        path: Optional[str] = None,
    ):
        super().__init__(message, path=path, retryable=False)
        self.code = code
        self.reason = reason


class SessionExpiredError(AuthError):
    """The backend rejected the current session; a fresh login may succeed."""


class TransferError(StorageError):
    """Network or backend failure while moving data."""

    retryable = True


class NotSupportedError(StorageError):
    """The provider has no equivalent for the requested operation."""


class QuotaError(StorageError):
    """The backend refused the request because of size or rate limits."""
