# macrokit

Class decorators and text utilities that generate code and data layouts:
bit-packed records, builder classes, sorted-order checks, and expansion of
token sequences over an integer range. The package has no dependencies
outside the standard library.

## Modules

### `macrokit.bits`

- `Specifier(bits)` is a frozen width of 1 to 64 bits. It has the properties
  `name` (`"B24"`), `storage_bytes` and `max_value`. `specifier(bits)`
  returns a shared instance.
- `storage_bytes(bits)` gives the byte size of the narrowest unsigned integer
  that holds `bits` bits: 1, 2, 4 or 8.
- `BitStorage(size)` is a byte buffer (`.data`, a `bytearray`) with
  `set_bits_value(offset_bits, allowed_length_bits, value)` and
  `get_bits_value(offset_bits, length_bits)`. Bits are numbered from the most
  significant bit of the first byte. A value too wide for its field raises
  `BitOverflowError`, a `ValueError`. A range past the end of the buffer
  raises `IndexError`. `BitStorage.from_bytes(data)` builds a buffer from
  existing bytes.

### `macrokit.bitfield`

`@bitfield` replaces a class that declares annotated fields with a
`BitStorage` subclass. The fields are packed, in declaration order, into just
enough bytes. A field's type is one of:

- `Bits[n]`: an unsigned integer of `n` bits. A type alias such as
  `A = Bits[1]` works too.
- `bool`: one bit.
- an enum decorated with `@bitfield_specifier`.

Fields are read and written as attributes. They can also be set as keyword
arguments to the constructor. Writing a value of the wrong type raises
`TypeError`, and writing a value that is too wide raises `BitOverflowError`.

Assigning `bits(n)` to a field in the class body states its expected width.
The class then fails to declare if the width differs. `BitfieldError` is
raised in these cases:

- the total width is not a multiple of 8;
- a field type is not a specifier;
- a field name is reserved;
- a declared width is wrong.

`@bitfield_specifier` gives an enum a `BITS` width and a `from_storage(raw)`
class method. The enum needs a power-of-two number of members, at least two.
Their integer values must be distinct and lie in `range(len(members))`.

The helpers `calculate_2_power(value)` and `to_snake_case(s)` are also
public.

```python
import enum
from macrokit.bitfield import Bits, bitfield, bitfield_specifier, bits

@bitfield_specifier
class DeliveryMode(enum.Enum):
    FIXED = 0
    LOWEST = 1
    SMI = 2
    REMOTE_READ = 3
    NMI = 4
    INIT = 5
    STARTUP = 6
    EXTERNAL = 7

@bitfield
class RedirectionTableEntry:
    acknowledged: bool
    delivery_mode: DeliveryMode = bits(3)
    reserved: Bits[4]

entry = RedirectionTableEntry()
entry.acknowledged = True
entry.delivery_mode = DeliveryMode.SMI
assert entry.delivery_mode is DeliveryMode.SMI
assert len(entry) == 1
```

Annotations must be evaluated when the class is declared. String annotations,
such as those from `from __future__ import annotations`, raise
`BitfieldError`.

### `macrokit.builder`

`@builder` turns a class into a dataclass and adds a `builder()` class
method. The builder has one chainable setter per field and a `build()`
method. Setters check the type of the value they receive and raise
`TypeError` on a mismatch.

When `build()` runs, fields that were never set are filled in as follows:

- a field annotated `Optional[T]` or `T | None` is built as `None`;
- any other field is built from its type's no-argument value, such as `""`
  or `[]`. If the type has none, `BuilderError` is raised.

Assigning `each("name")` to a list field replaces the whole-list setter with
a method `name` that appends one element per call.

```python
from typing import Optional
from macrokit.builder import builder, each

@builder
class Command:
    executable: str
    args: list[str] = each("arg")
    env: list[str]
    current_dir: Optional[str]

command = Command.builder().executable("cargo").arg("build").arg("--release").build()
assert command.args == ["build", "--release"]
assert command.current_dir is None
```

### `macrokit.ordering`

Each check raises `SortedError` at the first name that sorts before an
earlier one, with a message like `Fmt should sort before Io`.

- `check_names(names)` checks a sequence of names.
- `sorted_enum(cls)` checks the members of an enum, used as a decorator.
- `check_match_arms(patterns)` checks match-arm patterns given as text. It
  compares them by `pattern_to_string(pattern)`, which is the text before the
  first `(` with spaces removed. Only path, tuple-struct, struct, binding and
  wildcard patterns are accepted. Any other pattern raises
  `UnsupportedPatternError`.

### `macrokit.seq`

`seq(text)` expands input of the form `N in 0..4 { body }`, or `N in 16..=20
{ body }` for an inclusive range, and returns the result as text. The body is
repeated once for each value of `N`. In each copy:

- `N` becomes the integer;
- `name~N` becomes the single identifier `name0`, `name1` and so on.

If the body contains `#( ... )*` sections, only those sections are repeated.

```python
from macrokit.seq import seq

print(seq("N in 1..4 { fn f~N () -> u64 { N * 2 } }"))
# fn f1 () -> u64 { 1 * 2 } fn f2 () -> u64 { 2 * 2 } fn f3 () -> u64 { 3 * 2 }
```

The lower-level pieces are also public:

- `tokenize` and `render`;
- `Token`, `TokenKind` and `Group`;
- `SeqContent.parse(text)` and `SeqContent.expand()`;
- `replace_ident` and `partial_match`.

Malformed input raises `SeqError`.

## What it does not do

- There is no command-line program; everything is used from Python.
- `macrokit.ordering` and `macrokit.seq` work on names and token text handed
  to them. They do not read, parse or rewrite source files.

## Tests

```
pip install -e .[test]
pytest
```