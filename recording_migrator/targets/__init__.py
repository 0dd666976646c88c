from .stream import StreamClient
from .tus import TusClient, UploadSession

__all__ = [
    "StreamClient",
    "TusClient",
    "UploadSession",
]
