import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class LocalFileCache:
    """Staging directory holding recordings between download and upload."""

    def __init__(self, staging_dir: PathLike) -> None:
        self._staging_dir = Path(staging_dir).expanduser().resolve()

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    def ensure_dir(self) -> Path:
        if not self._staging_dir.exists():
            self._staging_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created staging directory: %s", self._staging_dir)
        return self._staging_dir

    def path_for(self, filename: str) -> Path:
        return self.ensure_dir() / filename

    def resolve(self, path: PathLike) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path.cwd() / candidate

    def exists(self, path: Optional[PathLike]) -> bool:
        if not path:
            return False
        return self.resolve(path).is_file()

    def size(self, path: PathLike) -> int:
        try:
            return self.resolve(path).stat().st_size
        except OSError:
            return 0

    def size_mb(self, path: PathLike) -> float:
        return self.size(path) / (1024 * 1024)

    def delete(self, path: PathLike) -> bool:
        resolved = self.resolve(path)
        try:
            resolved.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to delete local file %s: %s", resolved, e)
            return False
        logger.info("Deleted local file: %s", resolved)
        return True
