import pytest

from yaffskit import nand
from yaffskit.device import Device, NandDriver
from yaffskit.nand import UninitialisedTagsError
from yaffskit.tagsvalidity import initialise_tags
from yaffskit.types import BlockState, EccResult, ExtendedTags, Spare


class RamFlash:
    def __init__(self):
        self.pages = {}
        self.spares = {}

    def write_chunk(self, dev, chunk, data, spare):
        if data is not None:
            self.pages[chunk] = bytes(data)
        if spare is not None:
            self.spares[chunk] = spare.to_bytes()
        return True

    def read_chunk(self, dev, chunk, want_data):
        data = None
        if want_data:
            data = self.pages.get(chunk, b"\xff" * dev.data_bytes_per_chunk)
        spare = Spare.from_bytes(self.spares.get(chunk, b"\xff" * 16))
        return data, spare, (0, 0)


def test_write_without_markers_raises():
    dev = Device(end_block=3, driver=NandDriver(write_chunk_with_tags=lambda *a: True))
    with pytest.raises(UninitialisedTagsError):
        nand.write_chunk_with_tags(dev, 0, b"", ExtendedTags())


def test_write_without_tags_raises():
    dev = Device(end_block=3)
    with pytest.raises(UninitialisedTagsError):
        nand.write_chunk_with_tags(dev, 0, b"", None)


def test_write_uses_hook_with_realigned_chunk():
    calls = []

    def hook(dev, chunk, data, tags):
        calls.append((chunk, data, tags))
        return True

    dev = Device(end_block=3, chunk_offset=4, sequence_number=0x1234,
                 driver=NandDriver(write_chunk_with_tags=hook))
    tags = initialise_tags()
    assert nand.write_chunk_with_tags(dev, 10, b"abc", tags)
    assert calls == [(6, b"abc", tags)]
    assert tags.sequence_number == 0x1234
    assert tags.chunk_used


def test_fallback_round_trip_through_compat():
    flash = RamFlash()
    dev = Device(end_block=3, chunks_per_block=4,
                 driver=NandDriver(write_chunk=flash.write_chunk,
                                   read_chunk=flash.read_chunk))
    tags = initialise_tags()
    tags.object_id = 9
    tags.chunk_id = 2
    tags.byte_count = 100
    data = b"\x5a" * 512
    assert nand.write_chunk_with_tags(dev, 6, data, tags)
    read_data, read_tags = nand.read_chunk_with_tags(dev, 6, True)
    assert read_data == data
    assert (read_tags.object_id, read_tags.chunk_id, read_tags.byte_count) == (9, 2, 100)
    assert read_tags.chunk_used


def test_read_ecc_error_reports_block():
    handled = []
    dev = Device(
        end_block=3,
        chunks_per_block=4,
        driver=NandDriver(
            read_chunk_with_tags=lambda d, c, w: (None, ExtendedTags(ecc_result=EccResult.FIXED))
        ),
        chunk_error_handler=lambda d, info: handled.append(info),
    )
    _, tags = nand.read_chunk_with_tags(dev, 9, False)
    assert tags.ecc_result == EccResult.FIXED
    assert len(handled) == 1
    assert handled[0] is dev.block_info(2)


def test_read_clean_does_not_report():
    handled = []
    dev = Device(
        end_block=3,
        driver=NandDriver(
            read_chunk_with_tags=lambda d, c, w: (b"x", ExtendedTags(ecc_result=EccResult.NO_ERROR))
        ),
        chunk_error_handler=lambda d, info: handled.append(info),
    )
    assert nand.read_chunk_with_tags(dev, 1, True)[0] == b"x"
    assert handled == []


def test_read_passes_realigned_chunk():
    seen = []

    def hook(dev, chunk, want_data):
        seen.append((chunk, want_data))
        return None

    dev = Device(end_block=3, chunk_offset=3, driver=NandDriver(read_chunk_with_tags=hook))
    assert nand.read_chunk_with_tags(dev, 8, True) is None
    assert seen == [(5, True)]


def test_mark_block_bad_subtracts_offset():
    seen = []
    dev = Device(end_block=3, block_offset=2,
                 driver=NandDriver(mark_block_bad=lambda d, b: seen.append(b) or True))
    assert nand.mark_block_bad(dev, 5)
    assert seen == [3]


def test_fallback_mark_bad_and_query():
    flash = RamFlash()
    dev = Device(end_block=3, chunks_per_block=4,
                 driver=NandDriver(write_chunk=flash.write_chunk,
                                   read_chunk=flash.read_chunk))
    assert nand.query_initial_block_state(dev, 2) == (BlockState.EMPTY, 0)
    assert nand.mark_block_bad(dev, 2)
    assert nand.query_initial_block_state(dev, 2) == (BlockState.DEAD, 0)


def test_query_uses_hook():
    seen = []

    def hook(dev, block):
        seen.append(block)
        return BlockState.NEEDS_SCANNING, 77

    dev = Device(end_block=3, block_offset=1, driver=NandDriver(query_block=hook))
    assert nand.query_initial_block_state(dev, 4) == (BlockState.NEEDS_SCANNING, 77)
    assert seen == [3]


def test_erase_retries_once():
    results = iter([False, True])
    calls = []

    def hook(dev, block):
        calls.append(block)
        return next(results)

    dev = Device(end_block=3, driver=NandDriver(erase_block=hook))
    assert nand.erase_block(dev, 2)
    assert calls == [2, 2]
    assert dev.block_erasures == 1


def test_erase_fails_after_retry():
    calls = []
    dev = Device(end_block=3,
                 driver=NandDriver(erase_block=lambda d, b: calls.append(b) or False))
    assert not nand.erase_block(dev, 1)
    assert len(calls) == 2


def test_erase_without_hook_raises():
    dev = Device(end_block=3)
    with pytest.raises(RuntimeError):
        nand.erase_block(dev, 0)


def test_initialise_nand():
    seen = []
    dev = Device(end_block=1, driver=NandDriver(initialise=lambda d: seen.append(d) or True))
    assert nand.initialise_nand(dev)
    assert seen == [dev]


def test_initialise_without_hook_raises():
    with pytest.raises(RuntimeError):
        nand.initialise_nand(Device(end_block=1))