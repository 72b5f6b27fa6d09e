"""In-process fake of the block upload service."""

from __future__ import annotations

import base64
import hashlib
import json
import threading
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

import pytest

from blockput.config import UploadConfig
from blockput.upload import ChunkTransport, TransportResponse

BASE_URL = "http://fake-up"


@dataclass
class RequestInfo:
    kind: str
    path: str
    content_type: str
    body_length: int
    context: str | None = None
    offset: int | None = None
    body: bytes = b""
    host: str = ""


@dataclass(frozen=True)
class BlockContext:
    block_size: int
    data: bytes = b""


class FakeUploadService(ChunkTransport):
    """Implements mkblk, bput and rs-mkfile over in-memory state.

    ``pre_request`` may return a ``TransportResponse`` or raise
    ``TransportError`` to short-circuit a call before it touches any state.
    ``reply_hook`` may rewrite the JSON reply of a successful chunk call
    after the data has been stored.
    """

    def __init__(self, base_url: str = BASE_URL) -> None:
        self.base_url = base_url
        self.contexts: dict[str, BlockContext] = {}
        self.context_count = 0
        self.request_log: list[RequestInfo] = []
        self.objects: dict[str, bytes] = {}
        self.commits: list[dict[str, str]] = []
        self.pre_request: Callable[[RequestInfo], TransportResponse | None] | None
        self.pre_request = None
        self.reply_hook: Callable[[RequestInfo, dict], dict] | None = None
        self.closed = False
        self._lock = threading.Lock()

    def requests_of(self, kind: str) -> list[RequestInfo]:
        with self._lock:
            return [info for info in self.request_log if info.kind == kind]

    def open_context(self, block_size: int, data: bytes) -> str:
        """Create a context already holding ``data`` without logging a call."""
        with self._lock:
            return self._new_context(BlockContext(block_size, data))

    def expire_contexts(self) -> None:
        with self._lock:
            self.contexts.clear()

    def close(self) -> None:
        self.closed = True

    def execute(
        self,
        method: str,
        url: str,
        content_type: str,
        body: bytes,
        body_length: int,
    ) -> TransportResponse:
        parsed = urlparse(url)
        parts = parsed.path.strip("/").split("/")
        info = RequestInfo(
            kind=parts[0],
            path=parsed.path,
            content_type=content_type,
            body_length=body_length,
            body=body,
            host=parsed.netloc,
        )
        if info.kind == "bput":
            info.context = parts[1]
            info.offset = int(parts[2])

        with self._lock:
            self.request_log.append(info)

        if self.pre_request:
            response = self.pre_request(info)
            if response is not None:
                return response

        with self._lock:
            if info.kind == "mkblk":
                return self._make_block(info, int(parts[1]), body)
            if info.kind == "bput":
                return self._put_chunk(info, body)
            if info.kind == "rs-mkfile":
                return self._make_file(parts, body)
        return TransportResponse(404, b"not found")

    def _new_context(self, block: BlockContext) -> str:
        self.context_count += 1
        context = f"ctx-{self.context_count}"
        self.contexts[context] = block
        return context

    def _chunk_reply(self, info: RequestInfo, context: str, body: bytes) -> bytes:
        block = self.contexts[context]
        reply = {
            "ctx": context,
            "checksum": hashlib.sha1(body).hexdigest(),
            "crc32": zlib.crc32(body) & 0xFFFFFFFF,
            "offset": len(block.data),
            "host": self.base_url,
        }
        if self.reply_hook:
            reply = self.reply_hook(info, reply)
        return json.dumps(reply).encode()

    def _make_block(
        self, info: RequestInfo, block_size: int, body: bytes
    ) -> TransportResponse:
        if len(body) > block_size:
            return TransportResponse(400, b"chunk larger than block")
        block = BlockContext(block_size, body)
        context = self._new_context(block)
        return TransportResponse(200, self._chunk_reply(info, context, body))

    def _put_chunk(self, info: RequestInfo, body: bytes) -> TransportResponse:
        base = self.contexts.get(info.context or "")
        if base is None:
            return TransportResponse(701, b'{"error":"invalid context"}')
        if info.offset != len(base.data):
            return TransportResponse(400, b'{"error":"bad offset"}')
        if len(base.data) + len(body) > base.block_size:
            return TransportResponse(400, b'{"error":"block overflow"}')
        context = self._new_context(BlockContext(base.block_size, base.data + body))
        return TransportResponse(200, self._chunk_reply(info, context, body))

    def _make_file(self, parts: list[str], body: bytes) -> TransportResponse:
        target = base64.urlsafe_b64decode(parts[1]).decode()
        size = int(parts[3])
        params = dict(zip(parts[4::2], parts[5::2]))
        contexts = body.decode().split(",") if body else []

        data = bytearray()
        for context in contexts:
            block = self.contexts.get(context)
            if block is None:
                return TransportResponse(701, b'{"error":"invalid context"}')
            data.extend(block.data)
        if len(data) != size:
            return TransportResponse(400, b'{"error":"size mismatch"}')

        self.objects[target] = bytes(data)
        commit = {"target": target, "body": body.decode()}
        if "mimeType" in params:
            commit["mime_type"] = base64.urlsafe_b64decode(params["mimeType"]).decode()
        self.commits.append(commit)
        reply = {"hash": hashlib.sha1(data).hexdigest(), "key": target}
        return TransportResponse(200, json.dumps(reply).encode())


@pytest.fixture
def service() -> FakeUploadService:
    return FakeUploadService()


@pytest.fixture
def upload_config(tmp_path) -> UploadConfig:
    """Small blocks and chunks with no backoff delay."""
    return UploadConfig(
        up_host=BASE_URL,
        block_size_exp=16,
        chunk_size=16 * 1024,
        retry_times=2,
        max_workers=4,
        retry_backoff_seconds=0,
        progress_dir=str(tmp_path / "progress"),
    )
