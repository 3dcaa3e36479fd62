"""
Typed errors raised by the storage providers and domain services.

Domain errors subclass ValueError so route handlers that already catch
ValueError keep mapping them to 4xx responses. Storage errors are separate:
callers either treat them as fatal (BackendUnavailableError) or, for a missing
index, fall back to a broader lookup.
"""


# --- Domain errors ---


class NotFoundError(ValueError):
    """Raised when a requested entity does not exist."""


class ConflictError(ValueError):
    """Raised when a write would violate a uniqueness rule."""


class AccessDeniedError(ValueError):
    """Raised when the calling user is not allowed to perform the operation."""


# --- Storage errors ---


class StorageError(Exception):
    """Base class for storage provider failures."""


class BackendUnavailableError(StorageError):
    """Raised when the backend cannot be reached or initialized."""


class ResourceNotFoundError(StorageError):
    """Raised when a table or index the provider expects does not exist."""

    def __init__(self, message: str, table: str = None, index: str = None):
        super().__init__(message)
        self.table = table
        self.index = index


class TableNotFoundError(ResourceNotFoundError):
    """Raised when the physical table is missing."""


class IndexNotFoundError(ResourceNotFoundError):
    """Raised when a secondary index is missing (schema drift)."""
