import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DEFAULT_LOG_DIR = Path.home() / ".recording-migrator" / "logs"

ROOT_LOGGER_NAME = "recording_migrator"

# Chunked uploads issue one request per chunk; keep these at WARNING.
NOISY_LOGGERS = ("urllib3", "requests")


def default_log_file(command: str) -> Path:
    return DEFAULT_LOG_DIR / f"{command}.log"


def _resolve_log_file(log_file: Optional[Path]) -> Optional[Path]:
    if log_file is not None:
        return log_file
    from_env = os.environ.get("LOG_FILE")
    return Path(from_env).expanduser() if from_env else None


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    log_format: str = DEFAULT_LOG_FORMAT,
    quiet: Sequence[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure the package logger with a stderr handler and optional file.

    ``level`` falls back to ``LOG_LEVEL`` and ``log_file`` to ``LOG_FILE``.
    Calling it again replaces the handlers installed by the previous call.
    """
    resolved_level = level or os.environ.get("LOG_LEVEL", "INFO")
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    target = _resolve_log_file(log_file)
    if target is not None:
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
