"""Bit-packed record classes, generated builders, sorted-order checks and sequence expansion."""

__version__ = "0.1.0"
__all__ = ["bits", "bitfield", "builder", "ordering", "seq"]