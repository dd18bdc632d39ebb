"""Packing of YAFFS2 extended tags into their 16-byte on-flash form."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .tagsvalidity import initialise_tags
from .types import EccResult, ExtendedTags, ObjectType

_FORMAT = "<IIII"
PACKED_TAGS2_SIZE = struct.calcsize(_FORMAT)

EXTRA_HEADER_INFO_FLAG = 0x80000000
EXTRA_SHRINK_FLAG = 0x40000000
EXTRA_SHADOWS_FLAG = 0x20000000
EXTRA_SPARE_FLAGS = 0x10000000
ALL_EXTRA_FLAGS = 0xF0000000

EXTRA_OBJECT_TYPE_SHIFT = 28
EXTRA_OBJECT_TYPE_MASK = 0x0F << EXTRA_OBJECT_TYPE_SHIFT

_WORD_MASK = 0xFFFFFFFF
_ERASED_SEQUENCE = 0xFFFFFFFF


@dataclass
class PackedTags2:
    """The tags part of a YAFFS2 chunk: four 32-bit words."""

    sequence_number: int = 0
    object_id: int = 0
    chunk_id: int = 0
    byte_count: int = 0

    def __post_init__(self) -> None:
        for name in ("sequence_number", "object_id", "chunk_id", "byte_count"):
            value = getattr(self, name)
            if not 0 <= value <= _WORD_MASK:
                raise ValueError(f"{name} must fit in 32 bits, got {value}")

    def to_bytes(self) -> bytes:
        """Serialise as four little-endian 32-bit words."""
        return struct.pack(
            _FORMAT,
            self.sequence_number,
            self.object_id,
            self.chunk_id,
            self.byte_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> PackedTags2:
        """Parse the 16-byte packed form."""
        data = bytes(data)
        if len(data) != PACKED_TAGS2_SIZE:
            raise ValueError(
                f"packed tags must be {PACKED_TAGS2_SIZE} bytes, got {len(data)}"
            )
        sequence_number, object_id, chunk_id, byte_count = struct.unpack(_FORMAT, data)
        return cls(
            sequence_number=sequence_number,
            object_id=object_id,
            chunk_id=chunk_id,
            byte_count=byte_count,
        )


def _object_type(value: int) -> ObjectType | int:
    try:
        return ObjectType(value)
    except ValueError:
        return value


def pack_tags2(tags: ExtendedTags) -> PackedTags2:
    """Pack extended tags, folding object-header extras into spare bits."""
    chunk_id = tags.chunk_id & _WORD_MASK
    sequence_number = tags.sequence_number & _WORD_MASK
    byte_count = tags.byte_count & _WORD_MASK
    object_id = tags.object_id & _WORD_MASK

    if tags.chunk_id == 0 and tags.extra_header_info_available:
        chunk_id = (EXTRA_HEADER_INFO_FLAG | tags.extra_parent_object_id) & _WORD_MASK
        if tags.extra_is_shrink_header:
            chunk_id |= EXTRA_SHRINK_FLAG
        if tags.extra_shadows:
            chunk_id |= EXTRA_SHADOWS_FLAG

        object_id &= ~EXTRA_OBJECT_TYPE_MASK & _WORD_MASK
        object_id |= (int(tags.extra_object_type) << EXTRA_OBJECT_TYPE_SHIFT) & _WORD_MASK

        if tags.extra_object_type == ObjectType.HARDLINK:
            byte_count = tags.extra_equivalent_object_id & _WORD_MASK
        elif tags.extra_object_type == ObjectType.FILE:
            byte_count = tags.extra_file_length & _WORD_MASK
        else:
            byte_count = 0

    return PackedTags2(
        sequence_number=sequence_number,
        object_id=object_id,
        chunk_id=chunk_id,
        byte_count=byte_count,
    )


def unpack_tags2(packed: PackedTags2) -> ExtendedTags:
    """Unpack tags; an erased sequence number yields initialised, unused tags."""
    tags = initialise_tags()
    if packed.sequence_number == _ERASED_SEQUENCE:
        return tags

    tags.ecc_result = EccResult.NO_ERROR
    tags.block_bad = False
    tags.chunk_used = True
    tags.object_id = packed.object_id
    tags.chunk_id = packed.chunk_id
    tags.byte_count = packed.byte_count
    tags.chunk_deleted = False
    tags.serial_number = 0
    tags.sequence_number = packed.sequence_number

    if packed.chunk_id & EXTRA_HEADER_INFO_FLAG:
        tags.chunk_id = 0
        tags.byte_count = 0
        tags.extra_header_info_available = True
        tags.extra_parent_object_id = packed.chunk_id & ~ALL_EXTRA_FLAGS & _WORD_MASK
        tags.extra_is_shrink_header = bool(packed.chunk_id & EXTRA_SHRINK_FLAG)
        tags.extra_shadows = bool(packed.chunk_id & EXTRA_SHADOWS_FLAG)
        tags.extra_object_type = _object_type(
            packed.object_id >> EXTRA_OBJECT_TYPE_SHIFT
        )
        tags.object_id &= ~EXTRA_OBJECT_TYPE_MASK & _WORD_MASK

        if tags.extra_object_type == ObjectType.HARDLINK:
            tags.extra_equivalent_object_id = packed.byte_count
        else:
            tags.extra_file_length = packed.byte_count

    return tags