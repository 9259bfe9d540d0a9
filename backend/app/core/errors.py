"""Application error types mapped to HTTP status codes in app.main."""

from fastapi import status


class AppError(Exception):
    """Base application error."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(AppError):
    """No valid session."""

    status_code = status.HTTP_401_UNAUTHORIZED


class AccessDeniedError(AppError):
    """The session user does not own the requested row."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    """Row missing, or owned by someone else where ownership is folded into lookup."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailedError(AppError):
    """Input rejected after schema validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class StoredFileNotFoundError(NotFoundError):
    """No object under the given storage key."""

    def __init__(self, key: str):
        super().__init__(f"File not found: {key}")
        self.key = key
