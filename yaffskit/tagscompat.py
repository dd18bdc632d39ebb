"""Extended tags stored in the spare area of YAFFS1-formatted (512-byte page) NAND.

Data-area ECC is computed and checked by the driver: ``read_chunk`` reports
one correction result per 256-byte half of the page, as described in
:class:`yaffskit.device.NandDriver`. The tags carry their own ECC, which is
computed and corrected here.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from typing import Optional, TypeVar

from .device import Device, TaggedRead
from .types import BlockState, EccResult, ExtendedTags, Spare

TAGS_SIZE = 8
_FORMAT = "<II"
_BLOCK_GOOD = ord("Y")

_FIELD_BITS = {
    "chunk_id": 20,
    "serial_number": 2,
    "byte_count": 10,
    "object_id": 18,
    "ecc": 12,
    "unused_stuff": 2,
}

_Hook = TypeVar("_Hook", bound=Callable)


def _mask(bits: int) -> int:
    return (1 << bits) - 1


def _require(hook: Optional[_Hook], name: str) -> _Hook:
    if hook is None:
        raise RuntimeError(f"NAND driver has no {name} function")
    return hook


@dataclass(frozen=True)
class Tags:
    """YAFFS1 tags as packed into eight spare-area bytes."""

    chunk_id: int = 0
    serial_number: int = 0
    byte_count: int = 0
    object_id: int = 0
    ecc: int = 0
    unused_stuff: int = 0

    def __post_init__(self) -> None:
        for name, bits in _FIELD_BITS.items():
            value = getattr(self, name)
            if not 0 <= value <= _mask(bits):
                raise ValueError(f"{name} must fit in {bits} bits, got {value}")

    def to_bytes(self) -> bytes:
        """Serialise as two little-endian 32-bit words of bit fields."""
        word0 = self.chunk_id | (self.serial_number << 20) | (self.byte_count << 22)
        word1 = self.object_id | (self.ecc << 18) | (self.unused_stuff << 30)
        return struct.pack(_FORMAT, word0, word1)

    @classmethod
    def from_bytes(cls, data: bytes) -> Tags:
        """Parse the eight tag bytes."""
        data = bytes(data)
        if len(data) != TAGS_SIZE:
            raise ValueError(f"tags must be {TAGS_SIZE} bytes, got {len(data)}")
        word0, word1 = struct.unpack(_FORMAT, data)
        return cls(
            chunk_id=word0 & _mask(20),
            serial_number=(word0 >> 20) & _mask(2),
            byte_count=(word0 >> 22) & _mask(10),
            object_id=word1 & _mask(18),
            ecc=(word1 >> 18) & _mask(12),
            unused_stuff=(word1 >> 30) & _mask(2),
        )


def _bits(raw: bytes) -> Iterator[bool]:
    for byte in raw:
        for shift in range(8):
            yield bool(byte & (1 << shift))


def calc_tags_ecc(tags: Tags) -> int:
    """ECC over the tag bytes with the ECC field zeroed: XOR of set-bit numbers."""
    ecc = 0
    for number, is_set in enumerate(_bits(replace(tags, ecc=0).to_bytes()), start=1):
        if is_set:
            ecc ^= number
    return ecc


def check_ecc_on_tags(tags: Tags) -> tuple[Tags, EccResult]:
    """Check the tags' ECC, repairing a single flipped bit where possible."""
    computed = calc_tags_ecc(tags)
    syndrome = tags.ecc ^ computed
    checked = replace(tags, ecc=computed)
    if syndrome == 0:
        return checked, EccResult.NO_ERROR
    if syndrome <= 64:
        position = syndrome - 1
        raw = bytearray(checked.to_bytes())
        raw[position // 8] ^= 1 << (position & 7)
        repaired = Tags.from_bytes(raw)
        return replace(repaired, ecc=calc_tags_ecc(repaired)), EccResult.FIXED
    return checked, EccResult.UNFIXED


def _load_tags_into_spare(spare: Spare, tags: Tags) -> None:
    spare.tag_bytes = replace(tags, ecc=calc_tags_ecc(tags)).to_bytes()


def _tags_from_spare(dev: Device, spare: Spare) -> Tags:
    tags, result = check_ecc_on_tags(Tags.from_bytes(spare.tag_bytes))
    if result == EccResult.FIXED:
        dev.tags_ecc_fixed += 1
    elif result == EccResult.UNFIXED:
        dev.tags_ecc_unfixed += 1
    return tags


def _write_chunk(
    dev: Device, chunk: int, data: Optional[bytes], spare: Spare
) -> bool:
    if chunk < dev.start_block * dev.chunks_per_block:
        return False
    write = _require(dev.driver.write_chunk, "write_chunk")
    dev.page_writes += 1
    return bool(write(dev, chunk, data, spare))


def _read_chunk(
    dev: Device, chunk: int, want_data: bool
) -> Optional[tuple[Optional[bytes], Spare, EccResult]]:
    read = _require(dev.driver.read_chunk, "read_chunk")
    dev.page_reads += 1
    result = read(dev, chunk, want_data)
    if result is None:
        return None
    data, spare, (result1, result2) = result
    ecc_result = EccResult.UNKNOWN
    if data is not None:
        if not dev.use_nand_ecc:
            for outcome in (result1, result2):
                if outcome > 0:
                    dev.ecc_fixed += 1
                elif outcome < 0:
                    dev.ecc_unfixed += 1
        if result1 or result2:
            dev.block_info(chunk // dev.chunks_per_block).needs_retiring = True
        if result1 < 0 or result2 < 0:
            ecc_result = EccResult.UNFIXED
        elif result1 > 0 or result2 > 0:
            ecc_result = EccResult.FIXED
        else:
            ecc_result = EccResult.NO_ERROR
    return data, spare, ecc_result


def write_chunk_with_tags(
    dev: Device, chunk: int, data: Optional[bytes], tags: ExtendedTags
) -> bool:
    """Write a chunk, storing its tags (or a deletion mark) in the spare area."""
    spare = Spare.erased()
    if tags.chunk_deleted:
        spare.page_status = 0
    else:
        _load_tags_into_spare(
            spare,
            Tags(
                object_id=tags.object_id & _mask(18),
                chunk_id=tags.chunk_id & _mask(20),
                byte_count=tags.byte_count & _mask(10),
                serial_number=tags.serial_number & _mask(2),
            ),
        )
    return _write_chunk(dev, chunk, data, spare)


def read_chunk_with_tags(
    dev: Device, chunk: int, want_data: bool
) -> Optional[TaggedRead]:
    """Read a chunk and decode its tags; None when the driver read fails."""
    raw = _read_chunk(dev, chunk, want_data)
    if raw is None:
        return None
    data, spare, ecc_result = raw
    tags = ExtendedTags(
        chunk_deleted=spare.page_status.bit_count() < 7,
        ecc_result=ecc_result,
        block_bad=False,
        chunk_used=not spare.is_erased(),
    )
    if tags.chunk_used:
        stored = _tags_from_spare(dev, spare)
        tags.object_id = stored.object_id
        tags.chunk_id = stored.chunk_id
        tags.byte_count = stored.byte_count
        tags.serial_number = stored.serial_number
    return data, tags


def mark_block_bad(dev: Device, block: int) -> bool:
    """Mark a block bad in the spare areas of its first two chunks."""
    spare = Spare.erased()
    spare.block_status = _BLOCK_GOOD
    first = block * dev.chunks_per_block
    _write_chunk(dev, first, None, spare)
    _write_chunk(dev, first + 1, None, spare)
    return True


def query_block(dev: Device, block: int) -> tuple[BlockState, int]:
    """Initial state of a block and its sequence number (always 0 here).

    A block whose first two spare areas cannot be read is reported dead.
    """
    first = block * dev.chunks_per_block
    read0 = _read_chunk(dev, first, False)
    read1 = _read_chunk(dev, first + 1, False)
    if read0 is None or read1 is None:
        return BlockState.DEAD, 0
    spare0, spare1 = read0[1], read1[1]
    if (spare0.block_status & spare1.block_status).bit_count() < 7:
        return BlockState.DEAD, 0
    if spare0.is_erased():
        return BlockState.EMPTY, 0
    return BlockState.NEEDS_SCANNING, 0