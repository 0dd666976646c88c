from .local_cache import LocalFileCache

__all__ = ["LocalFileCache"]
