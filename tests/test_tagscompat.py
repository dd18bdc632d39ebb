from dataclasses import replace

import pytest

from yaffskit import tagscompat
from yaffskit.device import Device, NandDriver
from yaffskit.tagscompat import Tags, calc_tags_ecc, check_ecc_on_tags
from yaffskit.types import BlockState, EccResult, ExtendedTags, Spare


class RamFlash:
    def __init__(self, ecc=(0, 0)):
        self.pages = {}
        self.spares = {}
        self.ecc = ecc
        self.fail_reads = False

    def write_chunk(self, dev, chunk, data, spare):
        if data is not None:
            self.pages[chunk] = bytes(data)
        if spare is not None:
            self.spares[chunk] = spare.to_bytes()
        return True

    def read_chunk(self, dev, chunk, want_data):
        if self.fail_reads:
            return None
        data = None
        if want_data:
            data = self.pages.get(chunk, b"\xff" * dev.data_bytes_per_chunk)
        spare = Spare.from_bytes(self.spares.get(chunk, b"\xff" * 16))
        return data, spare, self.ecc

    def driver(self):
        return NandDriver(write_chunk=self.write_chunk, read_chunk=self.read_chunk)


def make_device(flash, **kwargs):
    kwargs.setdefault("end_block", 3)
    return Device(chunks_per_block=4, driver=flash.driver(), **kwargs)


def test_tags_bytes_layout():
    assert Tags(chunk_id=1).to_bytes() == b"\x01" + b"\x00" * 7


def test_tags_round_trip():
    tags = Tags(chunk_id=0xABCDE, serial_number=3, byte_count=512, object_id=0x3FFFF,
                ecc=0x7F, unused_stuff=2)
    assert Tags.from_bytes(tags.to_bytes()) == tags


def test_tags_reject_oversized_field():
    with pytest.raises(ValueError):
        Tags(chunk_id=1 << 20)


def test_tags_from_bytes_rejects_wrong_length():
    with pytest.raises(ValueError):
        Tags.from_bytes(b"\x00" * 7)


def test_calc_ecc_single_bit():
    assert calc_tags_ecc(Tags(chunk_id=1)) == 1


def test_calc_ecc_ignores_stored_ecc():
    tags = Tags(chunk_id=77, object_id=300)
    assert calc_tags_ecc(tags) == calc_tags_ecc(replace(tags, ecc=0x55))


def test_check_ecc_clean_tags():
    tags = Tags(chunk_id=12, object_id=34, byte_count=56)
    tags = replace(tags, ecc=calc_tags_ecc(tags))
    checked, result = check_ecc_on_tags(tags)
    assert result == EccResult.NO_ERROR
    assert checked == tags


@pytest.mark.parametrize("bit", [0, 5, 19, 20, 22, 31])
def test_check_ecc_fixes_single_flip(bit):
    good = Tags(chunk_id=0x1234, serial_number=1, byte_count=200, object_id=0x2222)
    good = replace(good, ecc=calc_tags_ecc(good))
    raw = bytearray(good.to_bytes())
    raw[bit // 8] ^= 1 << (bit % 8)
    checked, result = check_ecc_on_tags(Tags.from_bytes(raw))
    assert result == EccResult.FIXED
    assert checked == good


def test_check_ecc_unfixable():
    good = Tags(chunk_id=4, object_id=7)
    good = replace(good, ecc=calc_tags_ecc(good))
    corrupted = replace(good, chunk_id=5, unused_stuff=2)
    _, result = check_ecc_on_tags(corrupted)
    assert result == EccResult.UNFIXED


def test_write_read_round_trip():
    flash = RamFlash()
    dev = make_device(flash)
    tags = ExtendedTags(object_id=42, chunk_id=3, byte_count=100, serial_number=2)
    data = bytes(range(256)) * 2
    assert tagscompat.write_chunk_with_tags(dev, 5, data, tags)
    read_data, read_tags = tagscompat.read_chunk_with_tags(dev, 5, True)
    assert read_data == data
    assert (read_tags.object_id, read_tags.chunk_id, read_tags.byte_count,
            read_tags.serial_number) == (42, 3, 100, 2)
    assert read_tags.chunk_used
    assert not read_tags.chunk_deleted
    assert read_tags.ecc_result == EccResult.NO_ERROR
    assert (dev.page_writes, dev.page_reads) == (1, 1)


def test_deleted_chunk():
    flash = RamFlash()
    dev = make_device(flash)
    tagscompat.write_chunk_with_tags(dev, 2, None, ExtendedTags(chunk_deleted=True))
    assert Spare.from_bytes(flash.spares[2]).page_status == 0
    _, tags = tagscompat.read_chunk_with_tags(dev, 2, False)
    assert tags.chunk_deleted
    assert tags.chunk_used


def test_unwritten_chunk_is_unused():
    dev = make_device(RamFlash())
    _, tags = tagscompat.read_chunk_with_tags(dev, 7, False)
    assert not tags.chunk_used
    assert not tags.chunk_deleted
    assert tags.ecc_result == EccResult.UNKNOWN


def test_write_below_start_block_fails():
    flash = RamFlash()
    dev = make_device(flash, start_block=1)
    assert not tagscompat.write_chunk_with_tags(dev, 0, None, ExtendedTags(object_id=1))
    assert flash.spares == {}
    assert dev.page_writes == 0


def test_read_failure_returns_none():
    flash = RamFlash()
    flash.fail_reads = True
    dev = make_device(flash)
    assert tagscompat.read_chunk_with_tags(dev, 1, True) is None


def test_data_ecc_fixed_marks_block():
    flash = RamFlash(ecc=(1, 0))
    dev = make_device(flash)
    _, tags = tagscompat.read_chunk_with_tags(dev, 5, True)
    assert tags.ecc_result == EccResult.FIXED
    assert dev.ecc_fixed == 1
    assert dev.block_info(1).needs_retiring


def test_data_ecc_unfixed():
    flash = RamFlash(ecc=(1, -1))
    dev = make_device(flash)
    _, tags = tagscompat.read_chunk_with_tags(dev, 0, True)
    assert tags.ecc_result == EccResult.UNFIXED
    assert (dev.ecc_fixed, dev.ecc_unfixed) == (1, 1)


def test_nand_ecc_results_not_counted():
    flash = RamFlash(ecc=(1, 0))
    dev = make_device(flash, use_nand_ecc=True)
    _, tags = tagscompat.read_chunk_with_tags(dev, 0, True)
    assert tags.ecc_result == EccResult.FIXED
    assert dev.ecc_fixed == 0


def test_no_data_means_no_ecc_check():
    flash = RamFlash(ecc=(-1, -1))
    dev = make_device(flash)
    _, tags = tagscompat.read_chunk_with_tags(dev, 4, False)
    assert tags.ecc_result == EccResult.UNKNOWN
    assert not dev.block_info(1).needs_retiring


def test_corrupted_spare_tags_are_repaired():
    flash = RamFlash()
    dev = make_device(flash)
    tagscompat.write_chunk_with_tags(dev, 3, None, ExtendedTags(object_id=9, chunk_id=6))
    raw = bytearray(flash.spares[3])
    raw[0] ^= 0x04
    flash.spares[3] = bytes(raw)
    _, tags = tagscompat.read_chunk_with_tags(dev, 3, False)
    assert (tags.object_id, tags.chunk_id) == (9, 6)
    assert dev.tags_ecc_fixed == 1


def test_mark_bad_then_query_dead():
    flash = RamFlash()
    dev = make_device(flash)
    assert tagscompat.mark_block_bad(dev, 1)
    assert Spare.from_bytes(flash.spares[4]).block_status == ord("Y")
    assert tagscompat.query_block(dev, 1) == (BlockState.DEAD, 0)


def test_query_empty_and_used():
    flash = RamFlash()
    dev = make_device(flash)
    tagscompat.write_chunk_with_tags(dev, 12, None, ExtendedTags(object_id=1))
    assert tagscompat.query_block(dev, 2) == (BlockState.EMPTY, 0)
    assert tagscompat.query_block(dev, 3) == (BlockState.NEEDS_SCANNING, 0)


def test_missing_write_hook():
    dev = Device(end_block=1, driver=NandDriver())
    with pytest.raises(RuntimeError):
        tagscompat.write_chunk_with_tags(dev, 0, None, ExtendedTags())