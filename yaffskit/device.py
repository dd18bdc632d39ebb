"""Device description, NAND driver hooks and per-block bookkeeping."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from .types import (
    BYTES_PER_CHUNK,
    BYTES_PER_SPARE,
    CHUNKS_PER_BLOCK,
    BlockInfo,
    BlockState,
    ExtendedTags,
    Spare,
)

# (data, spare, (ecc_result1, ecc_result2)) as returned by a raw chunk read.
RawRead = tuple[Optional[bytes], Spare, tuple[int, int]]
# (data, tags) as returned by a tagged chunk read.
TaggedRead = tuple[Optional[bytes], ExtendedTags]


class InvalidBlockError(IndexError):
    """A block number lies outside the range the device manages."""

    def __init__(self, block: int) -> None:
        super().__init__(f"block {block} is not valid")
        self.block = block


@dataclass
class NandDriver:
    """Access functions for the flash behind a device.

    Each hook is optional; layers above fall back to compatibility code
    when a YAFFS2-style hook is absent.

    * ``write_chunk(dev, chunk, data, spare) -> bool``
    * ``read_chunk(dev, chunk, want_data) -> RawRead | None`` (None on failure)
    * ``erase_block(dev, block) -> bool``
    * ``initialise(dev) -> bool``
    * ``write_chunk_with_tags(dev, chunk, data, tags) -> bool``
    * ``read_chunk_with_tags(dev, chunk, want_data) -> TaggedRead | None``
    * ``mark_block_bad(dev, block) -> bool``
    * ``query_block(dev, block) -> tuple[BlockState, int]``
    """

    write_chunk: Callable[[Device, int, Optional[bytes], Optional[Spare]], bool] | None = None
    read_chunk: Callable[[Device, int, bool], Optional[RawRead]] | None = None
    erase_block: Callable[[Device, int], bool] | None = None
    initialise: Callable[[Device], bool] | None = None
    write_chunk_with_tags: Callable[
        [Device, int, Optional[bytes], ExtendedTags], bool
    ] | None = None
    read_chunk_with_tags: Callable[[Device, int, bool], Optional[TaggedRead]] | None = None
    mark_block_bad: Callable[[Device, int], bool] | None = None
    query_block: Callable[[Device, int], tuple[BlockState, int]] | None = None


@dataclass
class Device:
    """A flash partition: geometry, driver, runtime counters and block info."""

    name: str = ""
    data_bytes_per_chunk: int = BYTES_PER_CHUNK
    chunks_per_block: int = CHUNKS_PER_BLOCK
    bytes_per_spare: int = BYTES_PER_SPARE
    start_block: int = 0
    end_block: int = 0
    reserved_blocks: int = 0
    use_nand_ecc: bool = False
    is_yaffs2: bool = False
    driver: NandDriver = field(default_factory=NandDriver)
    chunk_error_handler: Callable[[Device, BlockInfo], None] | None = None

    block_offset: int = 0
    chunk_offset: int = 0

    sequence_number: int = 0

    page_writes: int = 0
    page_reads: int = 0
    block_erasures: int = 0
    ecc_fixed: int = 0
    ecc_unfixed: int = 0
    tags_ecc_fixed: int = 0
    tags_ecc_unfixed: int = 0

    blocks: list[BlockInfo] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.data_bytes_per_chunk <= 0:
            raise ValueError("data_bytes_per_chunk must be positive")
        if self.chunks_per_block <= 0:
            raise ValueError("chunks_per_block must be positive")
        if self.start_block < 0:
            raise ValueError("start_block must not be negative")
        if self.end_block < self.start_block:
            raise ValueError("end_block must not precede start_block")
        count = self.internal_end_block - self.internal_start_block + 1
        self.blocks = [BlockInfo() for _ in range(count)]

    @property
    def internal_start_block(self) -> int:
        """First block number as used internally, after offsetting."""
        return self.start_block + self.block_offset

    @property
    def internal_end_block(self) -> int:
        """Last block number as used internally, after offsetting."""
        return self.end_block + self.block_offset

    def block_info(self, block: int) -> BlockInfo:
        """Bookkeeping for an internal block number."""
        if not self.internal_start_block <= block <= self.internal_end_block:
            raise InvalidBlockError(block)
        return self.blocks[block - self.internal_start_block]