from .config import UploadConfig
from .exceptions import (
    FinalizeFailedError,
    UploadCancelledError,
    UploadError,
    UploadIncompleteError,
)
from .models import BlockProgress, CommitResult, UploadTask
from .upload import (
    BytesContentSource,
    FileContentSource,
    JsonFileProgressStore,
    RequestsChunkTransport,
    UploadOrchestrator,
)

__version__ = "0.1.0"

__all__ = [
    "BlockProgress",
    "BytesContentSource",
    "CommitResult",
    "FileContentSource",
    "FinalizeFailedError",
    "JsonFileProgressStore",
    "RequestsChunkTransport",
    "UploadCancelledError",
    "UploadConfig",
    "UploadError",
    "UploadIncompleteError",
    "UploadOrchestrator",
    "UploadTask",
]
