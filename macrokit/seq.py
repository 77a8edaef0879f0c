"""Repetition of token sequences over an integer range.

The input has the form ``N in 0..4 { body }``, or ``N in 16..=20 { body }``
for an inclusive range. The body is a token sequence that is repeated once
per value of ``N``. In each copy:

* the identifier ``N`` becomes the integer literal for that value;
* an identifier followed by ``~N``, as in ``f~N``, becomes one pasted
  identifier such as ``f0``;
* any other ``~`` is dropped.

When the body holds a section written ``#( ... )*``, only that section is
repeated and the rest of the body is kept once, unchanged.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Union

__all__ = [
    "Group",
    "SeqContent",
    "SeqError",
    "Token",
    "TokenKind",
    "partial_match",
    "render",
    "replace_ident",
    "seq",
    "tokenize",
]

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_CLOSE = {"(": ")", "[": "]", "{": "}"}
_PUNCT_CHARS = frozenset("~!@#$%^&*-=+|;:,.<>/?'")

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<line_comment>//[^\n]*)
    | (?P<block_comment>/\*.*?\*/)
    | (?P<raw_string>b?r(?P<hashes>\#*)".*?"(?P=hashes))
    | (?P<string>b?"(?:\\.|[^"\\])*")
    | (?P<char>b?'(?:\\(?:u\{[0-9a-fA-F]{1,6}\}|x[0-9a-fA-F]{2}|.)|[^'\\\n])')
    | (?P<number>\d[0-9A-Za-z_]*(?:\.(?!\.)\d[0-9_]*(?:[eE][+-]?\d+)?)?)
    | (?P<ident>(?:r\#)?[^\W\d]\w*)
    | (?P<open>[(\[{])
    | (?P<close>[)\]}])
    | (?P<punct>[~!@\#$%^&*\-=+|;:,.<>/?'])
    """,
    re.VERBOSE | re.DOTALL,
)
_SKIPPED = ("ws", "line_comment", "block_comment")
_LITERALS = ("raw_string", "string", "char", "number")


class SeqError(Exception):
    """Raised when the input cannot be tokenized or is not a valid loop."""


class TokenKind(enum.Enum):
    IDENT = "ident"
    PUNCT = "punct"
    LITERAL = "literal"


@dataclass(frozen=True)
class Token:
    """A single identifier, punctuation character or literal.

    ``joint`` is set on a punctuation character written directly before
    another one, as the ``-`` in ``->``.
    """

    kind: TokenKind
    text: str
    joint: bool = False

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == char

    def is_ident(self, name: str | None = None) -> bool:
        return self.kind is TokenKind.IDENT and (name is None or self.text == name)


@dataclass(frozen=True)
class Group:
    """A token sequence enclosed in ``()``, ``[]`` or ``{}``."""

    delimiter: str
    tokens: tuple[Union[Token, "Group"], ...] = ()

    def __post_init__(self) -> None:
        if self.delimiter not in _CLOSE:
            raise ValueError(f"invalid group delimiter {self.delimiter!r}")
        object.__setattr__(self, "tokens", tuple(self.tokens))

    def with_tokens(self, tokens: Iterable[TokenTree]) -> Group:
        return Group(self.delimiter, tuple(tokens))

    def __str__(self) -> str:
        inner = render(self.tokens)
        if self.delimiter == "{" and inner:
            return f"{{ {inner} }}"
        return f"{self.delimiter}{inner}{_CLOSE[self.delimiter]}"


TokenTree = Union[Token, Group]


def tokenize(text: str) -> list[TokenTree]:
    """Split ``text`` into token trees, grouping bracketed sections."""
    stack: list[tuple[str, list[TokenTree]]] = [("", [])]
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise SeqError(
                f"unexpected character {text[position]!r} at offset {position}"
            )
        position = match.end()
        current = stack[-1][1]
        if any(match.group(name) is not None for name in _SKIPPED):
            continue
        if any(match.group(name) is not None for name in _LITERALS):
            current.append(Token(TokenKind.LITERAL, match.group()))
        elif match.group("ident") is not None:
            current.append(Token(TokenKind.IDENT, match.group()))
        elif match.group("open") is not None:
            stack.append((match.group(), []))
        elif match.group("close") is not None:
            if len(stack) == 1:
                raise SeqError(f"unexpected closing delimiter {match.group()!r}")
            opening, items = stack.pop()
            if _CLOSE[opening] != match.group():
                raise SeqError(
                    f"mismatched closing delimiter {match.group()!r} for {opening!r}"
                )
            stack[-1][1].append(Group(opening, tuple(items)))
        else:
            char = match.group()
            following = text[position : position + 1]
            joint = char == "'" or following in _PUNCT_CHARS
            current.append(Token(TokenKind.PUNCT, char, joint))
    if len(stack) > 1:
        raise SeqError(f"unclosed delimiter {stack[-1][0]!r}")
    return stack[0][1]


def render(tokens: Iterable[TokenTree]) -> str:
    """Write token trees back as text, one space between separate tokens."""
    pieces: list[str] = []
    for tree in tokens:
        pieces.append(str(tree) if isinstance(tree, Group) else tree.text)
        pieces.append("" if isinstance(tree, Token) and tree.joint else " ")
    if pieces:
        pieces.pop()
    return "".join(pieces)


def replace_ident(variable: str, value: int, tokens: Iterable[TokenTree]) -> list[TokenTree]:
    """Return ``tokens`` with the loop variable set to ``value``.

    ``variable`` becomes an integer literal, ``X ~ variable`` becomes the
    identifier ``X<value>`` and every other ``~`` is dropped.
    """
    items = list(tokens)
    result: list[TokenTree] = []
    skip_until = 0
    for index, tree in enumerate(items):
        if index < skip_until:
            continue
        if isinstance(tree, Group):
            result.append(tree.with_tokens(replace_ident(variable, value, tree.tokens)))
        elif tree.is_ident(variable):
            result.append(Token(TokenKind.LITERAL, str(value)))
        elif tree.kind is TokenKind.IDENT:
            tilde, target = (items[index + 1 : index + 3] + [None, None])[:2]
            if (
                isinstance(tilde, Token)
                and tilde.is_punct("~")
                and isinstance(target, Token)
                and target.is_ident(variable)
            ):
                result.append(Token(TokenKind.IDENT, f"{tree.text}{value}"))
                skip_until = index + 3
            else:
                result.append(tree)
        elif not tree.is_punct("~"):
            result.append(tree)
    return result


def partial_match(
    variable: str, start: int, end: int, tokens: Iterable[TokenTree]
) -> list[TokenTree] | None:
    """Expand every ``#( ... )*`` section for ``start <= variable < end``.

    Returns the whole sequence with the sections expanded, or ``None`` when
    no such section occurs anywhere in ``tokens``.
    """
    items = list(tokens)
    matched = False
    result: list[TokenTree] = []
    skip_until = 0
    for index, tree in enumerate(items):
        if index < skip_until:
            continue
        if isinstance(tree, Group):
            inner = partial_match(variable, start, end, tree.tokens)
            if inner is None:
                result.append(tree)
            else:
                matched = True
                result.append(tree.with_tokens(inner))
            continue
        if tree.is_punct("#"):
            body, star = (items[index + 1 : index + 3] + [None, None])[:2]
            if (
                isinstance(body, Group)
                and body.delimiter == "("
                and isinstance(star, Token)
                and star.is_punct("*")
            ):
                matched = True
                for value in range(start, end):
                    result.extend(replace_ident(variable, value, body.tokens))
                skip_until = index + 3
                continue
        result.append(tree)
    return result if matched else None


def _next_tree(trees: Iterable[TokenTree], expected: str) -> TokenTree:
    try:
        return next(iter(trees))
    except StopIteration:
        raise SeqError(f"unexpected end of input, expected {expected}") from None


def _int_literal(tree: TokenTree) -> int:
    if not isinstance(tree, Token) or tree.kind is not TokenKind.LITERAL:
        raise SeqError(f"expected integer literal, found {render([tree])}")
    if not re.fullmatch(r"\d+", tree.text):
        raise SeqError(f"invalid digit found in integer literal {tree.text}")
    value = int(tree.text)
    if not _I32_MIN <= value <= _I32_MAX:
        raise SeqError(f"number too large to fit in target type: {tree.text}")
    return value


@dataclass(frozen=True)
class SeqContent:
    """A parsed loop: variable, bounds and the body to repeat."""

    variable: str
    start: int
    end: int
    inclusive: bool
    body: Group

    @property
    def values(self) -> range:
        return range(self.start, self.end + 1 if self.inclusive else self.end)

    @classmethod
    def parse(cls, text: str) -> SeqContent:
        """Parse ``VAR in START..END { body }`` or ``VAR in START..=END { body }``."""
        trees = iter(tokenize(text))

        variable = _next_tree(trees, "identifier")
        if not (isinstance(variable, Token) and variable.is_ident()):
            raise SeqError(f"expected identifier, found {render([variable])}")

        in_mark = _next_tree(trees, "`in`")
        if not (isinstance(in_mark, Token) and in_mark.is_ident("in")):
            raise SeqError(f"expected `in`, found {render([in_mark])}")

        start = _int_literal(_next_tree(trees, "integer literal"))

        first_dot = _next_tree(trees, "`..`")
        second_dot = _next_tree(trees, "`..`")
        if not (
            isinstance(first_dot, Token)
            and first_dot.is_punct(".")
            and first_dot.joint
            and isinstance(second_dot, Token)
            and second_dot.is_punct(".")
        ):
            raise SeqError("expected `..`")

        bound = _next_tree(trees, "integer literal")
        inclusive = isinstance(bound, Token) and bound.is_punct("=")
        if inclusive:
            bound = _next_tree(trees, "integer literal")
        end = _int_literal(bound)

        body = _next_tree(trees, "a delimited body")
        if not isinstance(body, Group):
            raise SeqError(f"expected a delimited body, found {render([body])}")

        rest = list(trees)
        if rest:
            raise SeqError(f"unexpected tokens after the body: {render(rest)}")
        return cls(variable.text, start, end, inclusive, body)

    def expand(self) -> list[TokenTree]:
        """The expanded token trees of this loop."""
        values = self.values
        partial = partial_match(
            self.variable, values.start, values.stop, self.body.tokens
        )
        if partial is not None:
            return partial
        result: list[TokenTree] = []
        for value in values:
            result.extend(replace_ident(self.variable, value, self.body.tokens))
        return result


def seq(text: str) -> str:
    """Expand a loop written as text and return the resulting code."""
    return render(SeqContent.parse(text).expand())