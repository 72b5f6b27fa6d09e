"""Resumable block upload engine."""

from blockput.upload.block_uploader import BlockUploader, status_code_predicate
from blockput.upload.content_source import (
    BytesContentSource,
    ContentSource,
    FileContentSource,
)
from blockput.upload.orchestrator import UploadOrchestrator
from blockput.upload.progress_store import (
    JsonFileProgressStore,
    MemoryProgressStore,
    ProgressStore,
)
from blockput.upload.transport import (
    ChunkTransport,
    RequestsChunkTransport,
    TransportResponse,
    UploadEndpoints,
)

__all__ = [
    "BlockUploader",
    "BytesContentSource",
    "ChunkTransport",
    "ContentSource",
    "FileContentSource",
    "JsonFileProgressStore",
    "MemoryProgressStore",
    "ProgressStore",
    "RequestsChunkTransport",
    "TransportResponse",
    "UploadEndpoints",
    "UploadOrchestrator",
    "status_code_predicate",
]
