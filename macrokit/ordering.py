"""Checks that enum members and match-arm patterns are written in sorted order.

Names are compared as plain strings. A pattern is compared by its text up
to the first ``(`` with spaces removed, so ``Error::Io(e)`` sorts as
``Error::Io``. Only path, tuple-struct, struct, binding and wildcard patterns
can be checked.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable

__all__ = [
    "SortedError",
    "UnsupportedPatternError",
    "check_match_arms",
    "check_names",
    "pattern_to_string",
    "sorted_enum",
]

_IDENT = r"(?:r#)?[A-Za-z_][A-Za-z0-9_]*"
_PATH_RE = re.compile(rf"(?:::\s*)?{_IDENT}(?:\s*::\s*{_IDENT})*")
_BINDING_RE = re.compile(rf"(?:ref\s+)?(?:mut\s+)?({_IDENT})(?:\s*@\s*\S.*)?", re.S)
_LITERAL_WORDS = frozenset({"true", "false"})
_PAIRS = {"(": ")", "[": "]", "{": "}"}


class SortedError(Exception):
    """Raised when names or patterns are not in sorted order, or cannot be checked."""


class UnsupportedPatternError(SortedError):
    """Raised for a match-arm pattern whose order cannot be compared."""

    def __init__(self, pattern: str) -> None:
        super().__init__(f"unsupported by sorted: {pattern}")
        self.pattern = pattern


def check_names(names: Iterable[str]) -> list[str]:
    """Return the names as a list, raising if one sorts before an earlier one."""
    original = list(names)
    ordered = sorted(original)
    for orig, expected in zip(original, ordered):
        if orig != expected:
            raise SortedError(f"{expected} should sort before {orig}")
    return original


def sorted_enum(cls: type) -> type:
    """Require the members of an enum to be declared in sorted order."""
    if not (isinstance(cls, type) and issubclass(cls, enum.Enum)):
        raise SortedError("expected enum or match expression")
    check_names(cls.__members__)
    return cls


def pattern_to_string(pattern: str) -> str:
    """The comparison key of a pattern: its text before ``(``, without spaces."""
    return pattern.split("(", 1)[0].replace(" ", "")


def _closing(text: str, start: int) -> int:
    """Index of the bracket closing the one at ``start``, or -1."""
    stack: list[str] = []
    for index in range(start, len(text)):
        ch = text[index]
        if ch in _PAIRS:
            stack.append(_PAIRS[ch])
        elif ch in _PAIRS.values():
            if not stack or stack.pop() != ch:
                return -1
            if not stack:
                return index
    return -1


def _is_supported(pattern: str) -> bool:
    text = pattern.strip()
    if not text or text in _LITERAL_WORDS:
        return False
    if text == "_":
        return True
    binding = _BINDING_RE.fullmatch(text)
    if binding and binding.group(1) not in _LITERAL_WORDS:
        return True
    path = _PATH_RE.match(text)
    if path is None:
        return False
    rest = text[path.end():].lstrip()
    if not rest:
        return True
    if rest[0] not in "({":
        return False
    return _closing(rest, 0) == len(rest) - 1


def check_match_arms(patterns: Iterable[str]) -> list[str]:
    """Check match-arm patterns for sorted order and return their comparison keys."""
    arms = list(patterns)
    for pattern in arms:
        if not _is_supported(pattern):
            raise UnsupportedPatternError(pattern)
    keys = [pattern_to_string(pattern) for pattern in arms]
    order = sorted(range(len(arms)), key=keys.__getitem__)
    for position, index in enumerate(order):
        if position != index:
            raise SortedError(f"{keys[index]} should sort before {keys[position]}")
    return keys