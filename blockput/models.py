"""Models used by the block upload workflow."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


def block_count(total_size: int, block_size_exp: int) -> int:
    """Return the number of blocks needed to hold ``total_size`` bytes."""
    if total_size < 0:
        raise ValueError(f"total_size must not be negative, got {total_size}")
    block_mask = (1 << block_size_exp) - 1
    return (total_size + block_mask) >> block_size_exp


class BlockProgress(BaseModel):
    """Resumable state of one block.

    An empty ``context`` means the block has not been negotiated with the
    server yet. Once negotiated, ``offset + rest_size`` equals the block size.

    Attributes:
        context: Opaque token issued by the server for this block.
        offset: Bytes of the block already acknowledged by the server.
        rest_size: Bytes of the block not yet acknowledged.
        checksum: Checksum the server returned for the last chunk.
        crc32: CRC32 the server returned for the last chunk.
        host: Upload host the server asked further appends to go to.
    """

    context: str = ""
    offset: int = 0
    rest_size: int = 0
    checksum: str = ""
    crc32: int = 0
    host: str = ""

    @property
    def is_complete(self) -> bool:
        """Whether every byte of the block has been acknowledged."""
        return self.context != "" and self.rest_size == 0

    def reset(self, block_size: int) -> None:
        """Return the block to the empty, not yet negotiated state."""
        self.context = ""
        self.offset = 0
        self.rest_size = block_size
        self.checksum = ""
        self.crc32 = 0
        self.host = ""

    def is_consistent_with(self, block_size: int) -> bool:
        """Check that negotiated progress adds up to ``block_size``."""
        return (
            self.offset >= 0
            and self.rest_size >= 0
            and self.offset + self.rest_size == block_size
        )


class ChunkReply(BaseModel):
    """Server reply to a negotiate or append call."""

    model_config = ConfigDict(extra="allow")

    ctx: str
    checksum: str = ""
    crc32: int
    offset: int | None = None
    host: str | None = None


class CommitResult(BaseModel):
    """Server reply to the finalize call."""

    model_config = ConfigDict(extra="allow")

    hash: str | None = None
    key: str | None = None


@dataclass
class UploadTask:
    """One logical transfer of ``total_size`` bytes to ``target_id``.

    Attributes:
        target_id: Destination object, for example ``"bucket:key"``.
        total_size: Length of the content in bytes.
        block_size_exp: Block size as a power of two.
        mime_type: Content type recorded by the server at commit.
        meta: Optional metadata forwarded to the commit call.
        customer: Optional customer tag forwarded to the commit call.
        callback_params: Optional callback parameters for the commit call.
        blocks: Progress of every block, in block order.
    """

    target_id: str
    total_size: int
    block_size_exp: int
    mime_type: str = ""
    meta: str = ""
    customer: str = ""
    callback_params: str = ""
    blocks: list[BlockProgress] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Create zero-valued block progress when none was supplied."""
        if self.total_size < 0:
            raise ValueError(f"total_size must not be negative, got {self.total_size}")
        if not self.blocks:
            self.blocks = [BlockProgress() for _ in range(self.block_count)]
        elif len(self.blocks) != self.block_count:
            raise ValueError(
                f"Expected {self.block_count} blocks, got {len(self.blocks)}"
            )

    @property
    def block_size(self) -> int:
        """Size of every block but the last one."""
        return 1 << self.block_size_exp

    @property
    def block_count(self) -> int:
        """Number of blocks in the task."""
        return block_count(self.total_size, self.block_size_exp)

    @property
    def progress_key(self) -> str:
        """Key under which the task's progress is persisted."""
        return f"{self.target_id}{self.total_size}"

    def block_offset(self, index: int) -> int:
        """Offset of block ``index`` within the content."""
        return index << self.block_size_exp

    def block_length(self, index: int) -> int:
        """Size in bytes of block ``index``."""
        if not 0 <= index < self.block_count:
            raise IndexError(f"Block index {index} out of range")
        if index == self.block_count - 1:
            return self.total_size - self.block_offset(index)
        return self.block_size

    def is_block_done(self, index: int) -> bool:
        """Whether block ``index`` is acknowledged up to its full length."""
        block = self.blocks[index]
        return block.is_complete and block.offset == self.block_length(index)

    @property
    def is_complete(self) -> bool:
        """Whether every block has been fully acknowledged."""
        return all(self.is_block_done(index) for index in range(self.block_count))

    @property
    def bytes_acknowledged(self) -> int:
        """Bytes the server has acknowledged across all blocks."""
        return sum(block.offset for block in self.blocks if block.context)

    def commit_body(self) -> str:
        """Comma-joined block contexts in block order."""
        return ",".join(block.context for block in self.blocks)
