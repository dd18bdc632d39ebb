"""YAFFS1/YAFFS2 tag packing, tag ECC, OOB layout and NAND access layers."""

__version__ = "0.1.0"
__all__ = [
    "types",
    "tagsvalidity",
    "packedtags1",
    "packedtags2",
    "oob",
    "device",
    "tagscompat",
    "nand",
]