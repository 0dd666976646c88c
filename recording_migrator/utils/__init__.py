from .logger import (
    setup_logging,
    get_logger,
    default_log_file,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FORMAT,
)
from .exceptions import (
    MigratorError,
    ConfigurationError,
    ValidationError,
    ActivityNotFoundError,
    UpstreamUnavailableError,
    AuthenticationError,
    TransferError,
    TransferTimeoutError,
    DownloadError,
    UploadError,
    RegistryError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "default_log_file",
    "DEFAULT_LOG_DIR",
    "DEFAULT_LOG_FORMAT",
    "MigratorError",
    "ConfigurationError",
    "ValidationError",
    "ActivityNotFoundError",
    "UpstreamUnavailableError",
    "AuthenticationError",
    "TransferError",
    "TransferTimeoutError",
    "DownloadError",
    "UploadError",
    "RegistryError",
]
