from typing import Optional


class RegistryError(Exception):
    """Base class for errors surfaced to registry callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistryError):
    """Malformed payload or a missing/empty required field."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidRequest(RegistryError):
    """Missing required query parameter."""

    status_code = 400


class NotFound(RegistryError):
    status_code = 404


class StoreError(RegistryError):
    """The underlying store operation failed (connectivity, constraint, decode)."""

    status_code = 500
