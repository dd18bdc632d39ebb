"""Core on-flash and in-memory data types shared across the package."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

MAGIC = 0x5941FF53

BYTES_PER_SPARE = 16
BYTES_PER_CHUNK = 512
CHUNK_SIZE_SHIFT = 9
CHUNKS_PER_BLOCK = 32
BYTES_PER_BLOCK = CHUNKS_PER_BLOCK * BYTES_PER_CHUNK

MIN_YAFFS2_CHUNK_SIZE = 1024
MIN_YAFFS2_SPARE_SIZE = 32

MAX_CHUNK_ID = 0x000FFFFF
UNUSED_OBJECT_ID = 0x0003FFFF

MAX_NAME_LENGTH = 255
MAX_ALIAS_LENGTH = 159
SHORT_NAME_LENGTH = 15

OBJECTID_ROOT = 1
OBJECTID_LOSTNFOUND = 2
OBJECTID_UNLINKED = 3
OBJECTID_DELETED = 4

OBJECTID_SB_HEADER = 0x10
OBJECTID_CHECKPOINT_DATA = 0x20
SEQUENCE_CHECKPOINT_DATA = 0x21

LOWEST_SEQUENCE_NUMBER = 0x00001000
HIGHEST_SEQUENCE_NUMBER = 0xEFFFFF00

LOSTNFOUND_NAME = "lost+found"
LOSTNFOUND_PREFIX = "obj"
ROOT_MODE = 0o666
LOSTNFOUND_MODE = 0o666

_SPARE_FORMAT = "<4sBB2s3s2s3s"


class EccResult(IntEnum):
    """Outcome of an ECC check on a read."""

    UNKNOWN = 0
    NO_ERROR = 1
    FIXED = 2
    UNFIXED = 3


class ObjectType(IntEnum):
    """Kind of file-system object."""

    UNKNOWN = 0
    FILE = 1
    SYMLINK = 2
    DIRECTORY = 3
    HARDLINK = 4
    SPECIAL = 5


class BlockState(IntEnum):
    """Life-cycle state of an erase block."""

    UNKNOWN = 0
    SCANNING = 1
    NEEDS_SCANNING = 2
    EMPTY = 3
    ALLOCATING = 4
    FULL = 5
    DIRTY = 6
    CHECKPOINT = 7
    COLLECTING = 8
    DEAD = 9


@dataclass
class ExtendedTags:
    """Tags of a chunk as held in memory, independent of the on-flash format."""

    valid_marker0: int = 0
    chunk_used: bool = False
    object_id: int = 0
    chunk_id: int = 0
    byte_count: int = 0

    ecc_result: EccResult = EccResult.UNKNOWN
    block_bad: bool = False

    chunk_deleted: bool = False
    serial_number: int = 0

    sequence_number: int = 0

    extra_header_info_available: bool = False
    extra_parent_object_id: int = 0
    extra_is_shrink_header: bool = False
    extra_shadows: bool = False
    extra_object_type: ObjectType = ObjectType.UNKNOWN
    extra_file_length: int = 0
    extra_equivalent_object_id: int = 0

    valid_marker1: int = 0


def _check_bytes(name: str, value: bytes, length: int) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return value


def _check_byte(name: str, value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must fit in one byte, got {value}")
    return value


@dataclass
class Spare:
    """The 16-byte spare (out-of-band) area of a 512-byte page."""

    tag_bytes: bytes = b"\xff" * 8
    page_status: int = 0xFF
    block_status: int = 0xFF
    ecc1: bytes = b"\xff" * 3
    ecc2: bytes = b"\xff" * 3

    def __post_init__(self) -> None:
        self.tag_bytes = _check_bytes("tag_bytes", self.tag_bytes, 8)
        self.ecc1 = _check_bytes("ecc1", self.ecc1, 3)
        self.ecc2 = _check_bytes("ecc2", self.ecc2, 3)
        _check_byte("page_status", self.page_status)
        _check_byte("block_status", self.block_status)

    def to_bytes(self) -> bytes:
        """Serialise in on-flash order."""
        tb = self.tag_bytes
        return struct.pack(
            _SPARE_FORMAT,
            tb[0:4],
            self.page_status,
            self.block_status,
            tb[4:6],
            self.ecc1,
            tb[6:8],
            self.ecc2,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Spare:
        """Parse 16 bytes of spare area."""
        data = _check_bytes("spare", data, BYTES_PER_SPARE)
        tb0, page_status, block_status, tb1, ecc1, tb2, ecc2 = struct.unpack(
            _SPARE_FORMAT, data
        )
        return cls(
            tag_bytes=tb0 + tb1 + tb2,
            page_status=page_status,
            block_status=block_status,
            ecc1=ecc1,
            ecc2=ecc2,
        )

    @classmethod
    def erased(cls) -> Spare:
        """A spare area as it reads after an erase: every byte 0xFF."""
        return cls.from_bytes(b"\xff" * BYTES_PER_SPARE)

    def is_erased(self) -> bool:
        """True when every byte is 0xFF."""
        return self.to_bytes() == b"\xff" * BYTES_PER_SPARE


@dataclass
class BlockInfo:
    """Runtime bookkeeping for one erase block."""

    soft_deletions: int = 0
    pages_in_use: int = 0
    block_state: BlockState = field(default=BlockState.UNKNOWN)
    needs_retiring: bool = False
    skip_erased_check: bool = False
    gc_prioritise: bool = False
    chunk_error_strikes: int = 0
    has_shrink_header: bool = False
    sequence_number: int = 0