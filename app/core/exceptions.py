"""Application error taxonomy."""

from fastapi import status


class AppError(Exception):
    """Base error rendered to clients as ``{"error": message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or malformed input. Never reaches an external provider."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(AppError):
    """A required credential or setting is absent."""


class ProviderError(AppError):
    """The inference provider failed or returned an unusable shape."""


class StructuringError(AppError):
    """Language model output could not be parsed as a JSON object."""


class PersistenceError(AppError):
    """A database read or write failed."""


class NotFoundError(AppError):
    """A referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
