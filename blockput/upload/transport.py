"""HTTP transport and endpoint layout for the block upload protocol.

The transport performs one blocking request per chunk or commit call and
returns the raw status and body. Signing is left to an optional header
provider so the upload engine never deals with credentials.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import requests

from blockput.const import DEFAULT_REQUEST_TIMEOUT_SECONDS, UP_HOST
from blockput.exceptions import TransportError

logger = logging.getLogger(__name__)


def encode_uri(value: str) -> str:
    """URL-safe base64 encoding used for path segments of the commit call."""
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


@dataclass
class TransportResponse:
    """Status code and raw body of one upload-service call."""

    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        """Whether the call succeeded."""
        return 200 <= self.status_code < 300


class ChunkTransport(ABC):
    """Executes a single request against the upload service."""

    @abstractmethod
    def execute(
        self,
        method: str,
        url: str,
        content_type: str,
        body: bytes,
        body_length: int,
    ) -> TransportResponse:
        """Send one request and wait for the reply.

        Args:
            method: HTTP method.
            url: Fully built request URL.
            content_type: Value for the ``Content-Type`` header.
            body: Request body.
            body_length: Length announced in ``Content-Length``.

        Returns:
            The status code and body the service answered with, including
            error statuses.

        Raises:
            TransportError: If the service could not be reached.
        """


class RequestsChunkTransport(ChunkTransport):
    """Chunk transport backed by a ``requests.Session``."""

    def __init__(
        self,
        session: requests.Session | None = None,
        header_provider: Callable[[], dict[str, str]] | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ):
        """Initialize the transport.

        Args:
            session: Session to reuse; a new one is created when omitted.
            header_provider: Returns extra headers (for example an
                ``Authorization`` header) for every request.
            timeout: Seconds to wait for each request.
        """
        self._session = session or requests.Session()
        self._header_provider = header_provider
        self._timeout = timeout

    def execute(
        self,
        method: str,
        url: str,
        content_type: str,
        body: bytes,
        body_length: int,
    ) -> TransportResponse:
        """Send one request and wait for the reply."""
        headers = {"Content-Length": str(body_length)}
        if content_type:
            headers["Content-Type"] = content_type
        if self._header_provider is not None:
            headers.update(self._header_provider())
        try:
            response = self._session.request(
                method, url, data=body, headers=headers, timeout=self._timeout
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        logger.debug(f"{method} {url} -> HTTP {response.status_code}")
        return TransportResponse(response.status_code, response.content)

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()


class UploadEndpoints:
    """Builds the negotiate, append and finalize URLs for one upload host."""

    def __init__(self, up_host: str = UP_HOST):
        """Initialize the endpoint layout.

        Args:
            up_host: Base URL of the upload service.
        """
        self.up_host = up_host.rstrip("/")

    def negotiate(self, block_size: int) -> str:
        """URL that creates a block context with its first chunk."""
        return f"{self.up_host}/mkblk/{block_size}"

    def append(self, context: str, offset: int, host: str = "") -> str:
        """URL that appends a chunk at ``offset`` to an existing context.

        Args:
            context: Block context returned by the previous chunk call.
            offset: Bytes of the block already acknowledged.
            host: Upload host named in the previous chunk reply. Falls back
                to ``up_host`` when empty.
        """
        base = host.rstrip("/") if host else self.up_host
        return f"{base}/bput/{context}/{offset}"

    def finalize(
        self,
        target_id: str,
        total_size: int,
        mime_type: str = "",
        meta: str = "",
        customer: str = "",
        callback_params: str = "",
    ) -> str:
        """URL that assembles the uploaded blocks into ``target_id``."""
        url = f"{self.up_host}/rs-mkfile/{encode_uri(target_id)}/fsize/{total_size}"
        if mime_type:
            url += f"/mimeType/{encode_uri(mime_type)}"
        if meta:
            url += f"/meta/{encode_uri(meta)}"
        if customer:
            url += f"/customer/{customer}"
        if callback_params:
            # Encoded like mimeType and meta, so a value holding "/" stays one
            # path segment. Older qbox clients appended it raw.
            url += f"/params/{encode_uri(callback_params)}"
        return url
