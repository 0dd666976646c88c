from .client import DEFAULT_CHUNK_SIZE, DEFAULT_RETRY_DELAYS, TransferClient

__all__ = ["DEFAULT_CHUNK_SIZE", "DEFAULT_RETRY_DELAYS", "TransferClient"]
