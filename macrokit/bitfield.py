"""Declarative bitfield classes packed into bytes, and enums usable as fields.

A bitfield class lists its fields as annotations. Each field is one of:

* ``Bits[n]`` (or any alias of it): an unsigned integer of ``n`` bits;
* ``bool``: a single bit read back as ``True`` or ``False``;
* an enum decorated with :func:`bitfield_specifier`.

A field may be assigned ``bits(n)`` in the class body to document its width.
The declaration then fails if the type is not exactly ``n`` bits wide.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from .bits import BitStorage, Specifier, specifier, storage_bytes

__all__ = [
    "BitfieldError",
    "Bits",
    "bitfield",
    "bitfield_specifier",
    "bits",
    "calculate_2_power",
    "to_snake_case",
]

_MISSING = object()
_EXCLUDED_NAMESPACE_KEYS = frozenset(
    {
        "__dict__",
        "__weakref__",
        "__annotations__",
        "__annotate__",
        "__annotate_func__",
        "__annotations_cache__",
    }
)


class BitfieldError(Exception):
    """Raised when a bitfield or specifier declaration is invalid."""


class Bits:
    """Width markers for integer fields: ``Bits[24]`` is a 24-bit field."""

    def __new__(cls, *args: Any, **kwargs: Any) -> Bits:
        raise TypeError("Bits is used as Bits[n], not instantiated")

    def __class_getitem__(cls, count: int) -> Specifier:
        return specifier(count)


@dataclass(frozen=True)
class _BitsCheck:
    count: int


def bits(count: int) -> _BitsCheck:
    """Declare the expected width of a field: ``mode: Mode = bits(3)``."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise BitfieldError(f"failed to parse bits count: {count!r}")
    return _BitsCheck(count)


def calculate_2_power(value: int) -> int | None:
    """Return ``n`` when ``value`` is ``2**n``, otherwise ``None``."""
    if value <= 0 or value & (value - 1):
        return None
    return value.bit_length() - 1


def to_snake_case(s: str) -> str:
    """Lower-case every upper-case letter, putting ``_`` before all but a leading one."""
    return "".join(
        ("_" if index else "") + ch.lower()[0] if ch.isupper() else ch
        for index, ch in enumerate(s)
    )


@dataclass(frozen=True)
class _Field:
    """A data descriptor reading and writing one field of a bitfield."""

    name: str
    offset: int
    width: int
    kind: type

    @property
    def storage_bytes(self) -> int:
        """Byte size of the narrowest unsigned integer holding this field."""
        return storage_bytes(self.width)

    def __get__(self, obj: BitStorage | None, owner: type | None = None) -> Any:
        if obj is None:
            return self
        raw = obj.get_bits_value(self.offset, self.width)
        if self.kind is bool:
            return raw != 0
        if self.kind is int:
            return raw
        return self.kind.from_storage(raw)

    def __set__(self, obj: BitStorage, value: Any) -> None:
        obj.set_bits_value(self.offset, self.width, self._encode(value))

    def _encode(self, value: Any) -> int:
        if self.kind is bool:
            if not isinstance(value, bool):
                raise TypeError(f"{self.name} expects a bool, got {value!r}")
            return int(value)
        if self.kind is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{self.name} expects an int, got {value!r}")
            return value
        if not isinstance(value, self.kind):
            raise TypeError(
                f"{self.name} expects a {self.kind.__name__}, got {value!r}"
            )
        return value.value


def _is_specifier_enum(annotation: Any) -> bool:
    if not (isinstance(annotation, type) and issubclass(annotation, enum.Enum)):
        return False
    namespace = vars(annotation)
    width = namespace.get("BITS")
    return (
        isinstance(width, int)
        and not isinstance(width, bool)
        and "from_storage" in namespace
    )


def _resolve(name: str, annotation: Any) -> tuple[int, type]:
    if annotation is bool:
        return 1, bool
    if isinstance(annotation, Specifier):
        return annotation.bits, int
    if _is_specifier_enum(annotation):
        return annotation.BITS, annotation
    raise BitfieldError(
        f"field {name}: {annotation!r} is not a bitfield specifier; "
        "use Bits[n], bool or an enum decorated with bitfield_specifier"
    )


def _annotations(cls: type) -> dict[str, Any]:
    """The annotations declared on ``cls`` itself, in declaration order."""
    annotations = cls.__dict__.get("__annotations__")
    if annotations is None:
        try:
            annotations = getattr(cls, "__annotations__", None) or {}
        except NameError as exc:
            raise BitfieldError(f"cannot resolve field types: {exc}") from exc
        if any(
            annotations is getattr(base, "__annotations__", None)
            for base in cls.__mro__[1:]
        ):
            annotations = {}
    annotations = dict(annotations)
    unresolved = [name for name, value in annotations.items() if isinstance(value, str)]
    if unresolved:
        raise BitfieldError(
            "cannot resolve field types: string annotations are not supported "
            f"({', '.join(unresolved)})"
        )
    return annotations


def bitfield(cls: type) -> type:
    """Replace a class declaring fields with one packed into a byte buffer."""
    if not isinstance(cls, type) or issubclass(cls, enum.Enum):
        raise BitfieldError("bitfield only supports plain classes")

    fields: list[_Field] = []
    offset = 0
    for name, annotation in _annotations(cls).items():
        if name == "data" or hasattr(BitStorage, name):
            raise BitfieldError(f"field name {name!r} is reserved")
        width, kind = _resolve(name, annotation)
        declared = cls.__dict__.get(name, _MISSING)
        if declared is not _MISSING:
            if not isinstance(declared, _BitsCheck):
                raise BitfieldError(
                    f"field {name}: only bits(n) may be assigned, got {declared!r}"
                )
            if declared.count != width:
                type_name = getattr(annotation, "__name__", str(annotation))
                raise BitfieldError(
                    f"field {name} is declared as {declared.count} bits "
                    f"but {type_name} is {width} bits wide"
                )
        fields.append(_Field(name, offset, width, kind))
        offset += width

    if offset % 8:
        raise BitfieldError(
            f"{cls.__name__} is {offset} bits in total, which is not a multiple of 8"
        )

    size = offset // 8
    field_names = frozenset(field.name for field in fields)
    layout = tuple(fields)

    def __init__(self: BitStorage, **values: Any) -> None:
        BitStorage.__init__(self, size)
        for key, value in values.items():
            if key not in field_names:
                raise TypeError(f"{type(self).__name__} has no field {key!r}")
            setattr(self, key, value)

    def __repr__(self: BitStorage) -> str:
        parts = ", ".join(f"{field.name}={getattr(self, field.name)!r}" for field in layout)
        return f"{type(self).__name__}({parts})"

    def __eq__(self: BitStorage, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.data == other.data

    def from_bytes(owner: type, data: bytes | bytearray) -> BitStorage:
        if len(data) != size:
            raise ValueError(
                f"{owner.__name__} needs {size} bytes, got {len(data)}"
            )
        instance = owner()
        instance.data[:] = data
        return instance

    namespace = {
        key: value
        for key, value in cls.__dict__.items()
        if key not in _EXCLUDED_NAMESPACE_KEYS
    }
    namespace.update({field.name: field for field in fields})
    namespace.update(
        {
            "__init__": __init__,
            "__repr__": __repr__,
            "__eq__": __eq__,
            "__hash__": None,
            "from_bytes": classmethod(from_bytes),
            "_bitfield_fields": layout,
        }
    )
    return type(cls.__name__, (BitStorage,), namespace)


def _enum_from_storage(cls: type[enum.Enum], raw: int) -> enum.Enum:
    try:
        return cls(raw)
    except ValueError:
        raise ValueError(f"bitfield: invalid enum {cls.__name__} value {raw}") from None


def bitfield_specifier(cls: type) -> type:
    """Make an enum usable as a bitfield field type.

    The enum needs a power-of-two number of members, at least two, with
    distinct integer values in ``range(len(members))``.
    """
    if not (isinstance(cls, type) and issubclass(cls, enum.Enum)):
        raise BitfieldError("bitfield_specifier only supports enums")

    names = list(cls.__members__)
    count = len(names)
    width = calculate_2_power(count)
    if width is None:
        raise BitfieldError(
            f"{cls.__name__}: expected a number of variants which is a power of 2, "
            f"got {count}"
        )
    if width == 0:
        raise BitfieldError(f"{cls.__name__}: expected at least two variants")

    for name, member in cls.__members__.items():
        if member.name != name:
            raise BitfieldError(
                f"{cls.__name__}.{name} repeats the discriminant of {member.name}"
            )
        value = member.value
        if isinstance(value, bool) or not isinstance(value, int):
            raise BitfieldError(
                f"{cls.__name__}.{name}: expected an integer discriminant, got {value!r}"
            )
        if not 0 <= value < count:
            raise BitfieldError(
                f"{cls.__name__}.{name} = {value} is outside the range 0..{count}"
            )

    cls.BITS = width
    cls.from_storage = classmethod(_enum_from_storage)
    return cls