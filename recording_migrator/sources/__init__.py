from .recordings import RecordingsClient, SourceVideo

__all__ = ["RecordingsClient", "SourceVideo"]
