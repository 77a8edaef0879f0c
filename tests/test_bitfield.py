import enum

import pytest

from macrokit.bitfield import (
    BitfieldError,
    Bits,
    bitfield,
    bitfield_specifier,
    bits,
    calculate_2_power,
    to_snake_case,
)
from macrokit.bits import BitOverflowError


class MyFourBytesSpec:
    a: Bits[1]
    b: Bits[3]
    c: Bits[4]
    d: Bits[24]


class TriggerMode(enum.Enum):
    EDGE = 0
    LEVEL = 1


class DeliveryMode(enum.Enum):
    FIXED = 0b000
    LOWEST = 0b001
    SMI = 0b010
    REMOTE_READ = 0b011
    NMI = 0b100
    INIT = 0b101
    STARTUP = 0b110
    EXTERNAL = 0b111


class RedirectionTableEntrySpec:
    acknowledged: bool
    trigger_mode: TriggerMode
    delivery_mode: DeliveryMode
    reserved: Bits[3]


F = 3
G = 0


class ImplicitDeliveryMode(enum.Enum):
    def _generate_next_value_(name, start, count, last_values):
        return last_values[-1] + 1 if last_values else start

    FIXED = F
    LOWEST = enum.auto()
    SMI = enum.auto()
    REMOTE_READ = enum.auto()
    NMI = enum.auto()
    INIT = G
    STARTUP = enum.auto()
    EXTERNAL = enum.auto()


class ImplicitEntrySpec:
    delivery_mode: ImplicitDeliveryMode
    reserved: Bits[5]


class EdgeCaseBytesSpec:
    a: Bits[9]
    b: Bits[6]
    c: Bits[13]
    d: Bits[4]


def _redirection_entry():
    bitfield_specifier(TriggerMode)
    bitfield_specifier(DeliveryMode)
    return bitfield(RedirectionTableEntrySpec)


def test_storage_size():
    my_four_bytes = bitfield(MyFourBytesSpec)
    assert len(my_four_bytes()) == 4
    assert bytes(my_four_bytes()) == b"\x00\x00\x00\x00"


def test_accessors():
    my_four_bytes = bitfield(MyFourBytesSpec)
    field = my_four_bytes()
    assert (field.a, field.b, field.c, field.d) == (0, 0, 0, 0)
    field.c = 14
    assert (field.a, field.b, field.c, field.d) == (0, 0, 14, 0)
    assert bytes(field) == b"\x0e\x00\x00\x00"


def test_not_multiple_of_eight_bits():
    A = Bits[1]
    B = Bits[3]
    C = Bits[4]
    D = Bits[23]

    class NotQuiteFourBytes:
        a: A
        b: B
        c: C
        d: D

    with pytest.raises(BitfieldError, match="31 bits"):
        bitfield(NotQuiteFourBytes)


def test_accessor_signatures_with_aliases():
    A = Bits[1]
    B = Bits[3]
    C = Bits[4]
    D = Bits[24]

    class AliasedSpec:
        a: A
        b: B
        c: C
        d: D

    aliased = bitfield(AliasedSpec)
    x = aliased()
    x.a = 1
    x.b = 1
    x.c = 1
    x.d = 1
    assert (x.a, x.b, x.c, x.d) == (1, 1, 1, 1)
    widths = [aliased.a, aliased.b, aliased.c, aliased.d]
    assert [f.storage_bytes for f in widths] == [1, 1, 1, 4]


def test_enums():
    entry_cls = _redirection_entry()
    assert len(entry_cls()) == 1
    entry = entry_cls()
    assert entry.acknowledged is False
    assert entry.trigger_mode is TriggerMode.EDGE
    assert entry.delivery_mode is DeliveryMode.FIXED

    entry.acknowledged = True
    entry.delivery_mode = DeliveryMode.SMI
    assert entry.acknowledged is True
    assert entry.trigger_mode is TriggerMode.EDGE
    assert entry.delivery_mode is DeliveryMode.SMI


def test_specifier_widths():
    assert bitfield_specifier(TriggerMode) is TriggerMode
    assert bitfield_specifier(DeliveryMode) is DeliveryMode
    assert TriggerMode.BITS == 1
    assert DeliveryMode.BITS == 3
    assert DeliveryMode.from_storage(2) is DeliveryMode.SMI


def test_optional_discriminant():
    bitfield_specifier(ImplicitDeliveryMode)
    entry_cls = bitfield(ImplicitEntrySpec)
    assert len(entry_cls()) == 1
    entry = entry_cls()
    assert entry.delivery_mode is ImplicitDeliveryMode.INIT
    entry.delivery_mode = ImplicitDeliveryMode.LOWEST
    assert entry.delivery_mode is ImplicitDeliveryMode.LOWEST
    assert ImplicitDeliveryMode.LOWEST.value == 4


def test_non_power_of_two():
    class Bad(enum.Enum):
        ZERO = 0
        ONE = 1
        TWO = 2

    with pytest.raises(BitfieldError, match="power of 2"):
        bitfield_specifier(Bad)


def test_variant_out_of_range():
    one = 1

    class OutOfRange(enum.Enum):
        def _generate_next_value_(name, start, count, last_values):
            return last_values[-1] + 1 if last_values else start

        FIXED = one
        LOWEST = enum.auto()
        SMI = enum.auto()
        REMOTE_READ = enum.auto()
        NMI = enum.auto()
        INIT = enum.auto()
        STARTUP = enum.auto()
        EXTERNAL = enum.auto()

    with pytest.raises(BitfieldError, match="outside the range"):
        bitfield_specifier(OutOfRange)


def test_bits_attribute():
    bitfield_specifier(TriggerMode)
    bitfield_specifier(DeliveryMode)

    class DocumentedSpec:
        trigger_mode: TriggerMode = bits(1)
        delivery_mode: DeliveryMode = bits(3)
        reserved: Bits[4]

    documented = bitfield(DocumentedSpec)
    entry = documented()
    entry.trigger_mode = TriggerMode.LEVEL
    entry.delivery_mode = DeliveryMode.EXTERNAL
    assert entry.trigger_mode is TriggerMode.LEVEL
    assert entry.delivery_mode is DeliveryMode.EXTERNAL
    assert len(entry) == 1


def test_bits_attribute_wrong():
    bitfield_specifier(TriggerMode)

    class Wrong:
        trigger_mode: TriggerMode = bits(9)
        reserved: Bits[7]

    with pytest.raises(BitfieldError, match="declared as 9 bits.*1 bits wide"):
        bitfield(Wrong)


def test_accessors_edge():
    edge_case_bytes = bitfield(EdgeCaseBytesSpec)
    field = edge_case_bytes()
    assert (field.a, field.b, field.c, field.d) == (0, 0, 0, 0)
    a = 0b1100_0011_1
    b = 0b101_010
    c = 0x1675
    d = 0b1110
    field.a = a
    field.b = b
    field.c = c
    field.d = d
    assert (field.a, field.b, field.c, field.d) == (a, b, c, d)
    assert bytes(field) == bytes([0xC3, 0xD5, 0x67, 0x5E])


def test_setter_overflow():
    my_four_bytes = bitfield(MyFourBytesSpec)
    field = my_four_bytes()
    with pytest.raises(BitOverflowError):
        field.c = 16
    assert field.c == 0


def test_setter_type_checks():
    entry = _redirection_entry()()
    with pytest.raises(TypeError):
        entry.acknowledged = 1
    assert entry.acknowledged is False
    with pytest.raises(TypeError):
        entry.delivery_mode = 2
    assert entry.delivery_mode is DeliveryMode.FIXED
    with pytest.raises(TypeError):
        entry.reserved = True
    assert entry.reserved == 0
    assert bytes(entry) == b"\x00"


def test_keyword_init_and_repr():
    entry_cls = _redirection_entry()
    entry = entry_cls(acknowledged=True, reserved=5)
    assert entry.acknowledged is True
    assert entry.reserved == 5
    assert repr(entry) == (
        "RedirectionTableEntrySpec(acknowledged=True, "
        "trigger_mode=<TriggerMode.EDGE: 0>, "
        "delivery_mode=<DeliveryMode.FIXED: 0>, reserved=5)"
    )
    with pytest.raises(TypeError):
        entry_cls(missing=1)


def test_from_bytes_round_trip():
    edge_case_bytes = bitfield(EdgeCaseBytesSpec)
    original = edge_case_bytes(a=300, b=7, c=4000, d=9)
    copy = edge_case_bytes.from_bytes(bytes(original))
    assert copy == original
    assert (copy.a, copy.b, copy.c, copy.d) == (300, 7, 4000, 9)
    with pytest.raises(ValueError):
        edge_case_bytes.from_bytes(b"\x00")


def test_invalid_declarations():
    with pytest.raises(BitfieldError):
        bitfield(42)
    with pytest.raises(BitfieldError):
        bitfield(TriggerMode)

    class Unsupported:
        name: str

    with pytest.raises(BitfieldError, match="not a bitfield specifier"):
        bitfield(Unsupported)

    class Reserved:
        data: Bits[8]

    with pytest.raises(BitfieldError, match="reserved"):
        bitfield(Reserved)

    with pytest.raises(BitfieldError):
        bitfield_specifier(MyFourBytesSpec)


def test_string_annotations_rejected():
    class Stringly:
        a: "Bits[8]"

    with pytest.raises(BitfieldError, match="string annotations"):
        bitfield(Stringly)


def test_undecorated_enum_rejected():
    class Plain(enum.Enum):
        A = 0
        B = 1

    class UsesPlain:
        mode: Plain
        rest: Bits[7]

    with pytest.raises(BitfieldError, match="not a bitfield specifier"):
        bitfield(UsesPlain)


def test_duplicate_discriminant():
    class Dup(enum.Enum):
        A = 0
        B = 0

    with pytest.raises(BitfieldError, match="repeats"):
        bitfield_specifier(Dup)


def test_bits_helpers():
    assert Bits[24].bits == 24
    with pytest.raises(ValueError):
        Bits[0]
    with pytest.raises(TypeError):
        Bits()
    with pytest.raises(BitfieldError, match="failed to parse"):
        bits(-1)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0, None), (1, 0), (2, 1), (3, None), (8, 3), (12, None), (1024, 10)],
)
def test_calculate_2_power(value, expected):
    assert calculate_2_power(value) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("RemoteRead", "remote_read"),
        ("_Fixed0", "__fixed0"),
        ("SMI", "s_m_i"),
        ("already_snake", "already_snake"),
    ],
)
def test_to_snake_case(text, expected):
    assert to_snake_case(text) == expected