"""Bit-width specifiers and a byte buffer addressed by bit offsets.

Bits are numbered from the most significant bit of the first byte, so a
field at offset 0 begins at the top bit of byte 0. A value stored in a
field is right-aligned within that field.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

__all__ = [
    "MAX_BITS",
    "BitOverflowError",
    "BitStorage",
    "Specifier",
    "specifier",
    "storage_bytes",
]

MAX_BITS = 64


class BitOverflowError(ValueError):
    """Raised when a value needs more bits than its field allows."""

    def __init__(self, value_length: int, allowed_length: int) -> None:
        super().__init__(
            f"overflow when setting value: value length is {value_length} bits "
            f"but only {allowed_length} bits allowed"
        )
        self.value_length = value_length
        self.allowed_length = allowed_length


def storage_bytes(bits: int) -> int:
    """Size in bytes of the narrowest unsigned integer that holds ``bits`` bits."""
    if not 1 <= bits <= MAX_BITS:
        raise ValueError(f"bit width must be between 1 and {MAX_BITS}, got {bits}")
    for size in (1, 2, 4, 8):
        if bits <= size * 8:
            return size
    raise AssertionError("unreachable")


@dataclass(frozen=True)
class Specifier:
    """A field width of 1 to 64 bits, the counterpart of the B1..B64 markers."""

    bits: int

    def __post_init__(self) -> None:
        if isinstance(self.bits, bool) or not isinstance(self.bits, int):
            raise TypeError(f"bit width must be an int, got {self.bits!r}")
        if not 1 <= self.bits <= MAX_BITS:
            raise ValueError(
                f"bit width must be between 1 and {MAX_BITS}, got {self.bits}"
            )

    @property
    def name(self) -> str:
        return f"B{self.bits}"

    @property
    def storage_bytes(self) -> int:
        """Byte size of the unsigned integer type used by accessors."""
        return storage_bytes(self.bits)

    @property
    def max_value(self) -> int:
        return (1 << self.bits) - 1

    def __str__(self) -> str:
        return self.name


@lru_cache(maxsize=None)
def specifier(bits: int) -> Specifier:
    """Return the shared specifier for a width of ``bits`` bits."""
    return Specifier(bits)


class BitStorage:
    """A fixed-size byte buffer with bit-level field access."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"storage size must not be negative, got {size}")
        self.data = bytearray(size)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> BitStorage:
        storage = cls(len(data))
        storage.data[:] = data
        return storage

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return bytes(self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitStorage):
            return NotImplemented
        return self.data == other.data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({bytes(self.data)!r})"

    def _field_shift(self, offset_bits: int, length_bits: int) -> int:
        if offset_bits < 0 or length_bits < 0:
            raise ValueError("bit offset and length must not be negative")
        total_bits = len(self.data) * 8
        end = offset_bits + length_bits
        if end > total_bits:
            raise IndexError(
                f"bits {offset_bits}..{end} out of range for {total_bits}-bit storage"
            )
        return total_bits - end

    def set_bits_value(
        self, offset_bits: int, allowed_length_bits: int, value: int
    ) -> None:
        """Store ``value`` in the field of ``allowed_length_bits`` bits at ``offset_bits``."""
        if value < 0:
            raise ValueError(f"value must not be negative, got {value}")
        if value.bit_length() > MAX_BITS:
            raise BitOverflowError(value.bit_length(), MAX_BITS)
        if allowed_length_bits < value.bit_length():
            raise BitOverflowError(value.bit_length(), allowed_length_bits)
        shift = self._field_shift(offset_bits, allowed_length_bits)
        mask = ((1 << allowed_length_bits) - 1) << shift
        whole = int.from_bytes(self.data, "big")
        whole = (whole & ~mask) | (value << shift)
        self.data[:] = whole.to_bytes(len(self.data), "big")

    def get_bits_value(self, offset_bits: int, length_bits: int) -> int:
        """Read the field of ``length_bits`` bits at ``offset_bits``."""
        shift = self._field_shift(offset_bits, length_bits)
        whole = int.from_bytes(self.data, "big")
        return (whole >> shift) & ((1 << length_bits) - 1)