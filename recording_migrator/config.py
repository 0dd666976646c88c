import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import click

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAYS_SECONDS = [0, 3, 5, 10, 20, 60, 60]


@dataclass
class SourceConfig:
    api_base_url: str = "http://localhost:3000"
    api_key: str = ""
    request_timeout_seconds: int = 30


@dataclass
class DestinationConfig:
    api_base_url: str = "https://video.bunnycdn.com"
    api_key: str = ""
    library_id: str = ""
    tus_endpoint: str = "https://video.bunnycdn.com/tusupload"
    signature_expiry_minutes: int = 60


@dataclass
class RegistryConfig:
    path: str = "~/.recording-migrator/registry.json"


@dataclass
class MigrationConfig:
    staging_dir: str = "uploads"
    download_timeout_seconds: int = 600
    chunk_size_mb: int = 50
    retry_delays_seconds: List[float] = field(
        default_factory=lambda: list(DEFAULT_RETRY_DELAYS_SECONDS)
    )
    process_interval_seconds: int = 60


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 4000
    api_key: str = ""


@dataclass
class Config:
    source: SourceConfig = field(default_factory=SourceConfig)
    destination: DestinationConfig = field(default_factory=DestinationConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def chunk_size_bytes(self) -> int:
        return self.migration.chunk_size_mb * 1024 * 1024

    def validate(self) -> None:
        errors: List[str] = []
        if self.source.request_timeout_seconds <= 0:
            errors.append("source.request_timeout_seconds must be > 0")
        if self.destination.signature_expiry_minutes <= 0:
            errors.append("destination.signature_expiry_minutes must be > 0")
        if not self.migration.staging_dir:
            errors.append("migration.staging_dir must not be empty")
        if self.migration.download_timeout_seconds <= 0:
            errors.append("migration.download_timeout_seconds must be > 0")
        if self.migration.chunk_size_mb <= 0:
            errors.append("migration.chunk_size_mb must be > 0")
        if any(d < 0 for d in self.migration.retry_delays_seconds):
            errors.append("migration.retry_delays_seconds must all be >= 0")
        if self.migration.process_interval_seconds <= 0:
            errors.append("migration.process_interval_seconds must be > 0")
        if not 0 < self.server.port < 65536:
            errors.append("server.port must be between 1 and 65535")
        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


def validate_config(config: Config) -> None:
    config.validate()


def config_to_dict(config: Config) -> dict:
    return asdict(config)


def config_from_dict(data: dict) -> Config:
    defaults = Config()

    src_data = data.get("source", {})
    source = SourceConfig(
        api_base_url=src_data.get("api_base_url", defaults.source.api_base_url),
        api_key=src_data.get("api_key", ""),
        request_timeout_seconds=src_data.get(
            "request_timeout_seconds", defaults.source.request_timeout_seconds
        ),
    )

    dst_data = data.get("destination", {})
    destination = DestinationConfig(
        api_base_url=dst_data.get(
            "api_base_url", defaults.destination.api_base_url
        ),
        api_key=dst_data.get("api_key", ""),
        library_id=str(dst_data.get("library_id", "")),
        tus_endpoint=dst_data.get(
            "tus_endpoint", defaults.destination.tus_endpoint
        ),
        signature_expiry_minutes=dst_data.get(
            "signature_expiry_minutes",
            defaults.destination.signature_expiry_minutes,
        ),
    )

    reg_data = data.get("registry", {})
    registry = RegistryConfig(path=reg_data.get("path", defaults.registry.path))

    mig_data = data.get("migration", {})
    migration = MigrationConfig(
        staging_dir=mig_data.get("staging_dir", defaults.migration.staging_dir),
        download_timeout_seconds=mig_data.get(
            "download_timeout_seconds", defaults.migration.download_timeout_seconds
        ),
        chunk_size_mb=mig_data.get("chunk_size_mb", defaults.migration.chunk_size_mb),
        retry_delays_seconds=list(
            mig_data.get("retry_delays_seconds", DEFAULT_RETRY_DELAYS_SECONDS)
        ),
        process_interval_seconds=mig_data.get(
            "process_interval_seconds", defaults.migration.process_interval_seconds
        ),
    )

    srv_data = data.get("server", {})
    server = ServerConfig(
        host=srv_data.get("host", defaults.server.host),
        port=srv_data.get("port", defaults.server.port),
        api_key=srv_data.get("api_key", ""),
    )

    return Config(
        source=source,
        destination=destination,
        registry=registry,
        migration=migration,
        server=server,
    )


def _apply_env_overrides(config: Config) -> None:
    overrides = [
        ("SOURCE_API_BASE_URL", "source", "api_base_url", str),
        ("SOURCE_API_KEY", "source", "api_key", str),
        ("STREAM_API_KEY", "destination", "api_key", str),
        ("STREAM_LIBRARY_ID", "destination", "library_id", str),
        ("TEMP_UPLOAD_DIR", "migration", "staging_dir", str),
        ("DOWNLOAD_TIMEOUT", "migration", "download_timeout_seconds", int),
        ("PROCESS_INTERVAL", "migration", "process_interval_seconds", int),
        ("SERVER_API_KEY", "server", "api_key", str),
    ]
    for env_name, section, attr, cast in overrides:
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            value = cast(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for {env_name}: {raw!r}",
                config_key=f"{section}.{attr}",
            ) from e
        setattr(getattr(config, section), attr, value)
        logger.debug(
            "Overriding %s.%s from %s environment variable", section, attr, env_name
        )


class ConfigManager:
    """Manages configuration loading, saving, and access for the migrator."""

    DEFAULT_CONFIG_DIR = Path.home() / ".recording-migrator"
    DEFAULT_CONFIG_FILE = "config.json"

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._config_path = config_path or (
            self.DEFAULT_CONFIG_DIR / self.DEFAULT_CONFIG_FILE
        )
        self._config: Optional[Config] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = Config()
        return self._config

    def ensure_config_dir(self) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Config:
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                "Run 'recording-migrator config' to create one."
            )

        try:
            raw = self._config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in configuration file {self._config_path}: {e}"
            ) from e

        config = config_from_dict(data)
        _apply_env_overrides(config)

        config.validate()
        self._config = config
        logger.info("Configuration loaded from %s", self._config_path)
        return config

    def save(self) -> None:
        self.ensure_config_dir()
        if self._config is None:
            self._config = Config()
        data = config_to_dict(self._config)
        try:
            self._config_path.write_text(
                json.dumps(data, indent=2) + "\n", encoding="utf-8"
            )
        except OSError as e:
            raise ConfigurationError(f"Failed to write configuration file: {e}") from e
        logger.info("Configuration saved to %s", self._config_path)

    def get(self, key: str, default: Any = None) -> Any:
        if self._config is None:
            try:
                self.load()
            except ConfigurationError:
                self._config = Config()
        obj: Any = self._config
        for segment in key.split("."):
            if not hasattr(obj, segment):
                return default
            obj = getattr(obj, segment)
        return obj

    def set(self, key: str, value: Any) -> None:
        if self._config is None:
            try:
                self.load()
            except ConfigurationError:
                self._config = Config()

        segments = key.split(".")
        obj: Any = self._config
        for segment in segments[:-1]:
            if not hasattr(obj, segment):
                raise ConfigurationError(
                    f"Invalid configuration key: {key} "
                    f"(unknown segment '{segment}')",
                    config_key=key,
                )
            obj = getattr(obj, segment)

        final = segments[-1]
        if not hasattr(obj, final):
            raise ConfigurationError(
                f"Invalid configuration key: {key} (unknown segment '{final}')",
                config_key=key,
            )
        setattr(obj, final, value)

    def get_or_prompt(self, key: str, prompt_text: str, is_secret: bool = False) -> str:
        existing = self.get(key)
        if existing:
            value = click.prompt(prompt_text, default=existing, hide_input=is_secret)
        else:
            value = click.prompt(prompt_text, hide_input=is_secret)
        self.set(key, value)
        return str(value)

    def exists(self) -> bool:
        return self._config_path.exists()
