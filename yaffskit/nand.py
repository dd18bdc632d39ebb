"""Chunk and block access that dispatches to the driver or the compatibility layer."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional, TypeVar

from . import tagscompat
from .device import Device, TaggedRead
from .tagsvalidity import validate_tags
from .types import BlockState, EccResult, ExtendedTags

_Hook = TypeVar("_Hook", bound=Callable)


class UninitialisedTagsError(ValueError):
    """Tags handed to a write were missing or lacked their validity markers."""


def _require(hook: Optional[_Hook], name: str) -> _Hook:
    if hook is None:
        raise RuntimeError(f"NAND driver has no {name} function")
    return hook


def read_chunk_with_tags(
    dev: Device, chunk: int, want_data: bool
) -> Optional[TaggedRead]:
    """Read a chunk and its tags, reporting ECC trouble to the device."""
    realigned = chunk - dev.chunk_offset
    hook = dev.driver.read_chunk_with_tags
    if hook is not None:
        result = hook(dev, realigned, want_data)
    else:
        result = tagscompat.read_chunk_with_tags(dev, realigned, want_data)
    if result is not None:
        _, tags = result
        if tags.ecc_result > EccResult.NO_ERROR:
            info = dev.block_info(chunk // dev.chunks_per_block)
            if dev.chunk_error_handler is not None:
                dev.chunk_error_handler(dev, info)
    return result


def write_chunk_with_tags(
    dev: Device, chunk: int, data: Optional[bytes], tags: ExtendedTags
) -> bool:
    """Write a chunk; the tags get the device's sequence number and are marked used."""
    if tags is None:
        raise UninitialisedTagsError("writing with no tags")
    chunk -= dev.chunk_offset
    tags.sequence_number = dev.sequence_number
    tags.chunk_used = True
    if not validate_tags(tags):
        raise UninitialisedTagsError("writing uninitialised tags")
    hook = dev.driver.write_chunk_with_tags
    if hook is not None:
        return bool(hook(dev, chunk, data, tags))
    return tagscompat.write_chunk_with_tags(dev, chunk, data, tags)


def mark_block_bad(dev: Device, block: int) -> bool:
    """Mark a block bad on the flash."""
    block -= dev.block_offset
    hook = dev.driver.mark_block_bad
    if hook is not None:
        return bool(hook(dev, block))
    return tagscompat.mark_block_bad(dev, block)


def query_initial_block_state(dev: Device, block: int) -> tuple[BlockState, int]:
    """State and sequence number of a block as found on the flash."""
    block -= dev.block_offset
    hook = dev.driver.query_block
    if hook is not None:
        return hook(dev, block)
    return tagscompat.query_block(dev, block)


def erase_block(dev: Device, block: int) -> bool:
    """Erase a block, retrying once on failure."""
    erase = _require(dev.driver.erase_block, "erase_block")
    block -= dev.block_offset
    dev.block_erasures += 1
    result = bool(erase(dev, block))
    if not result:
        result = bool(erase(dev, block))
    return result


def initialise_nand(dev: Device) -> bool:
    """Run the driver's initialisation."""
    return bool(_require(dev.driver.initialise, "initialise")(dev))