"""Custom exception classes for the recording-migrator."""

from typing import Optional


class MigratorError(Exception):
    """Base exception class for all migrator errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(MigratorError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        self.config_key = config_key
        super().__init__(message)


class ValidationError(MigratorError):
    """Raised when an activity fails a precondition for the requested stage."""

    def __init__(self, message: str, activity_id: Optional[str] = None) -> None:
        self.activity_id = activity_id
        super().__init__(message)


class ActivityNotFoundError(MigratorError):
    """Raised when no activity exists for a given id."""

    def __init__(self, message: str, activity_id: Optional[str] = None) -> None:
        self.activity_id = activity_id
        super().__init__(message)


class UpstreamUnavailableError(MigratorError):
    """Raised when the source provider or destination host cannot serve a request."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(UpstreamUnavailableError):
    """Raised when an upstream service rejects our credentials."""


class TransferError(MigratorError):
    """Raised when a download or upload fails for a non-timeout reason."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message)


class TransferTimeoutError(TransferError):
    """Raised when a transfer exceeds its configured timeout."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, path=path)


class DownloadError(TransferError):
    """Raised when streaming a recording to local storage fails."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.url = url
        super().__init__(message, path=path)


class UploadError(TransferError):
    """Raised when the resumable upload gives up."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> None:
        self.asset_id = asset_id
        super().__init__(message, path=path)


class RegistryError(MigratorError):
    """Raised when the work registry cannot be read or written."""
