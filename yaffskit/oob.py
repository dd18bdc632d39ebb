"""Layout of tags within the out-of-band area of a NAND page."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .types import Spare

OOB_TAG_BYTES = 8
_BLOCK_GOOD = ord("Y")


class OobLayoutError(ValueError):
    """The out-of-band free regions cannot hold the requested bytes."""


def spare_to_oob(spare: Spare) -> bytes:
    """Compress a spare into the 8 free OOB bytes, folding status into byte 5."""
    tb = spare.tag_bytes
    byte5 = tb[5] & 0x3F
    if spare.block_status != _BLOCK_GOOD:
        byte5 |= 0x80
    if spare.page_status != 0:
        byte5 |= 0x40
    return bytes((tb[0], tb[1], tb[2], tb[3], tb[4], byte5, tb[6], tb[7]))


def oob_to_spare(oob: bytes) -> Spare:
    """Expand 8 free OOB bytes back into a spare."""
    oob = bytes(oob)
    if len(oob) != OOB_TAG_BYTES:
        raise ValueError(f"oob must be {OOB_TAG_BYTES} bytes, got {len(oob)}")
    byte5 = oob[5]
    tag5 = 0xFF if byte5 == 0xFF else byte5 & 0x3F
    return Spare(
        tag_bytes=oob[:5] + bytes((tag5,)) + oob[6:8],
        block_status=0xFF if byte5 & 0x80 else _BLOCK_GOOD,
        page_status=0xFF if byte5 & 0x40 else 0,
    )


def _free_slots(
    oob_free: Iterable[Sequence[int]], count: int, limit: int, what: str
) -> list[int]:
    """Positions of the first ``count`` free OOB bytes, region by region."""
    regions = list(oob_free)
    if not regions or regions[0][1] == 0:
        raise OobLayoutError(f"No OOB space for {what}")
    slots: list[int] = []
    for offset, length in regions:
        if len(slots) >= count:
            break
        if length == 0:
            break
        if offset < 0 or offset + length > limit:
            raise OobLayoutError(
                f"free region ({offset}, {length}) lies outside {limit} OOB bytes"
            )
        slots.extend(range(offset, offset + length))
    if len(slots) < count:
        raise OobLayoutError(f"No OOB space for {what}")
    return slots[:count]


def place_tags(
    packed: bytes, oob_free: Iterable[Sequence[int]], oob_size: int
) -> bytes:
    """Scatter packed tags over the free OOB regions of a 0xFF-filled buffer."""
    packed = bytes(packed)
    buffer = bytearray(b"\xff" * oob_size)
    for position, value in zip(
        _free_slots(oob_free, len(packed), oob_size, "tags"), packed
    ):
        buffer[position] = value
    return bytes(buffer)


def extract_tags(
    buffer: bytes, oob_free: Iterable[Sequence[int]], size: int
) -> bytes:
    """Gather ``size`` tag bytes from the free OOB regions of a buffer."""
    buffer = bytes(buffer)
    return bytes(
        buffer[position]
        for position in _free_slots(oob_free, size, len(buffer), "tags")
    )