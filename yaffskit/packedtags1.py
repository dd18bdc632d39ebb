"""Packing of YAFFS1-style tags into their 12-byte on-flash form."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .types import EccResult, ExtendedTags

_FORMAT = "<III"
PACKED_TAGS1_SIZE = struct.calcsize(_FORMAT)

_FIELD_BITS = {
    "chunk_id": 20,
    "serial_number": 2,
    "byte_count": 10,
    "object_id": 18,
    "ecc": 12,
    "deleted": 1,
    "unused_stuff": 1,
    "should_be_ff": 32,
}


def _mask(bits: int) -> int:
    return (1 << bits) - 1


@dataclass
class PackedTags1:
    """Bit-packed tags: two 32-bit words of fields and a word that must be all ones."""

    chunk_id: int = 0
    serial_number: int = 0
    byte_count: int = 0
    object_id: int = 0
    ecc: int = 0
    deleted: int = 0
    unused_stuff: int = 0
    should_be_ff: int = 0xFFFFFFFF

    def __post_init__(self) -> None:
        for name, bits in _FIELD_BITS.items():
            value = getattr(self, name)
            if not 0 <= value <= _mask(bits):
                raise ValueError(f"{name} must fit in {bits} bits, got {value}")

    def to_bytes(self) -> bytes:
        """Serialise as three little-endian 32-bit words."""
        word0 = self.chunk_id | (self.serial_number << 20) | (self.byte_count << 22)
        word1 = (
            self.object_id
            | (self.ecc << 18)
            | (self.deleted << 30)
            | (self.unused_stuff << 31)
        )
        return struct.pack(_FORMAT, word0, word1, self.should_be_ff)

    @classmethod
    def from_bytes(cls, data: bytes) -> PackedTags1:
        """Parse the 12-byte packed form."""
        data = bytes(data)
        if len(data) != PACKED_TAGS1_SIZE:
            raise ValueError(
                f"packed tags must be {PACKED_TAGS1_SIZE} bytes, got {len(data)}"
            )
        word0, word1, should_be_ff = struct.unpack(_FORMAT, data)
        return cls(
            chunk_id=word0 & _mask(20),
            serial_number=(word0 >> 20) & _mask(2),
            byte_count=(word0 >> 22) & _mask(10),
            object_id=word1 & _mask(18),
            ecc=(word1 >> 18) & _mask(12),
            deleted=(word1 >> 30) & 1,
            unused_stuff=(word1 >> 31) & 1,
            should_be_ff=should_be_ff,
        )


def pack_tags1(tags: ExtendedTags) -> PackedTags1:
    """Pack extended tags; values wider than their fields are truncated."""
    return PackedTags1(
        chunk_id=tags.chunk_id & _mask(20),
        serial_number=tags.serial_number & _mask(2),
        byte_count=tags.byte_count & _mask(10),
        object_id=tags.object_id & _mask(18),
        ecc=0,
        deleted=0 if tags.chunk_deleted else 1,
        unused_stuff=0,
        should_be_ff=0xFFFFFFFF,
    )


def unpack_tags1(packed: PackedTags1) -> ExtendedTags:
    """Unpack tags; an all-0xFF record yields zeroed, unused tags."""
    if packed.to_bytes() == b"\xff" * PACKED_TAGS1_SIZE:
        return ExtendedTags()
    return ExtendedTags(
        block_bad=packed.should_be_ff != 0xFFFFFFFF,
        chunk_used=True,
        object_id=packed.object_id,
        chunk_id=packed.chunk_id,
        byte_count=packed.byte_count,
        ecc_result=EccResult.NO_ERROR,
        chunk_deleted=not packed.deleted,
        serial_number=packed.serial_number,
    )