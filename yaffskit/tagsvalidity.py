"""Validity markers for extended tags."""

from __future__ import annotations

from .types import ExtendedTags

VALID_MARKER0 = 0xAAAAAAAA
VALID_MARKER1 = 0x55555555


def initialise_tags() -> ExtendedTags:
    """Return zeroed tags carrying both validity markers."""
    return ExtendedTags(valid_marker0=VALID_MARKER0, valid_marker1=VALID_MARKER1)


def validate_tags(tags: ExtendedTags) -> bool:
    """True when the tags were produced by ``initialise_tags``."""
    return tags.valid_marker0 == VALID_MARKER0 and tags.valid_marker1 == VALID_MARKER1