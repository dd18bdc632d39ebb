# yaffskit

Building blocks for YAFFS1 and YAFFS2 formatted NAND flash. The package
covers the layer beneath a filesystem: the tag formats stored next to each
chunk, the ECC that protects YAFFS1 tags, the placement of tags in the
out-of-band (OOB) area, and chunk and block access through a driver you
supply.

## Modules

- `yaffskit.types` holds the shared structures: `ExtendedTags`, the 16-byte
  YAFFS1 `Spare` area (`to_bytes`, `from_bytes`, `erased`, `is_erased`),
  `BlockInfo`, and the `EccResult`, `ObjectType` and `BlockState`
  enumerations. It also has the format's constants, for example `MAGIC`,
  `BYTES_PER_CHUNK` and `CHUNKS_PER_BLOCK`.
- `yaffskit.tagsvalidity` has two functions. `initialise_tags()` returns
  zeroed `ExtendedTags` that carry both validity markers, and
  `validate_tags(tags)` checks those markers.
- `yaffskit.packedtags1` provides `PackedTags1` (12 bytes), with
  `pack_tags1` and `unpack_tags1`. An all-0xFF record unpacks to zeroed,
  unused tags.
- `yaffskit.packedtags2` provides `PackedTags2` (16 bytes), with
  `pack_tags2` and `unpack_tags2`. For object-header chunks, the parent
  id, shrink and shadow flags, object type and file length or
  hard-link target are folded into spare bits. An erased sequence
  number (0xFFFFFFFF) unpacks to initialised, unused tags.
- `yaffskit.oob` converts between a `Spare` and 8 OOB bytes with
  `spare_to_oob` and `oob_to_spare`. `place_tags(packed, oob_free,
  oob_size)` spreads packed tags over the free `(offset, length)`
  regions of a buffer filled with 0xFF. `extract_tags(buffer, oob_free,
  size)` collects them again. Both raise `OobLayoutError` when the
  regions cannot hold the bytes.
- `yaffskit.device` describes the geometry of a partition, its runtime
  counters and its per-block `BlockInfo` list in `Device`. `NandDriver`
  is a set of optional hooks that you implement for your storage.
  `Device.block_info(block)` raises `InvalidBlockError` when the block is
  outside the range from `internal_start_block` to `internal_end_block`.
- `yaffskit.tagscompat` stores extended tags in the spare area of NAND
  with 512-byte pages. It provides `Tags`, `calc_tags_ecc` and
  `check_ecc_on_tags`, which repairs a single flipped bit. It also has
  `write_chunk_with_tags`, `read_chunk_with_tags`, `mark_block_bad` and
  `query_block`.
- `yaffskit.nand` is the entry point for chunk and block access. It
  subtracts the device's chunk and block offsets and uses the driver's
  YAFFS2 hooks when they are present. Otherwise it falls back to
  `tagscompat`. Its functions are `read_chunk_with_tags`,
  `write_chunk_with_tags`, `mark_block_bad`, `query_initial_block_state`,
  `erase_block` and `initialise_nand`.
  - Writes stamp the tags with the device's sequence number. They raise
    `UninitialisedTagsError` when the tags lack validity markers.
  - A failed erase is retried once.
  - When a read reports an ECC problem, the device's
    `chunk_error_handler` is called with the block's `BlockInfo`, if a
    handler is set.

## Installation

```
pip install .
```

## Examples

Packing YAFFS2 tags:

```python
from yaffskit.packedtags2 import PackedTags2, pack_tags2, unpack_tags2
from yaffskit.tagsvalidity import initialise_tags, validate_tags

tags = initialise_tags()
tags.object_id = 257
tags.chunk_id = 3
tags.byte_count = 2048
tags.sequence_number = 0x1000

raw = pack_tags2(tags).to_bytes()
restored = unpack_tags2(PackedTags2.from_bytes(raw))
assert validate_tags(restored)
assert restored.object_id == 257
```

Chunk access through an in-memory driver:

```python
from yaffskit import nand
from yaffskit.device import Device, NandDriver
from yaffskit.tagsvalidity import initialise_tags
from yaffskit.types import BlockState, Spare

pages = {}

def write_chunk(dev, chunk, data, spare):
    pages[chunk] = (data or b"\xff" * dev.data_bytes_per_chunk, spare)
    return True

def read_chunk(dev, chunk, want_data):
    data, spare = pages.get(
        chunk, (b"\xff" * dev.data_bytes_per_chunk, Spare.erased())
    )
    return (data if want_data else None), spare, (0, 0)

dev = Device(
    end_block=7,
    driver=NandDriver(write_chunk=write_chunk, read_chunk=read_chunk),
)

tags = initialise_tags()
tags.object_id = 5
tags.chunk_id = 1
tags.byte_count = 100
nand.write_chunk_with_tags(dev, 32, b"x" * 512, tags)

data, read_back = nand.read_chunk_with_tags(dev, 32, True)
assert (read_back.object_id, read_back.chunk_id) == (5, 1)
assert nand.query_initial_block_state(dev, 1) == (BlockState.NEEDS_SCANNING, 0)
assert nand.query_initial_block_state(dev, 2) == (BlockState.EMPTY, 0)
```

## What the package does not do

- It does not mount a filesystem. It does not manage files,
  directories or objects, scan flash, collect garbage or save
  checkpoints.
- It has no command-line tool and does not build filesystem images.
- It does not talk to real flash. All storage access goes through the
  `NandDriver` hooks you provide.
- It does not compute or correct ECC over the data area. The driver's
  `read_chunk` reports one correction result for each 256-byte half of
  the page.
- `pack_tags2` computes no ECC over YAFFS2 tags. `unpack_tags2` always
  reports `EccResult.NO_ERROR` for a used chunk.

## Tests

```
pip install .[test]
pytest
```