"""Builder classes generated from annotated classes.

Decorating a class with :func:`builder` turns it into a dataclass and gives
it a ``builder()`` class method. The returned builder has one chainable
setter per field and a ``build()`` method that creates the instance.

* A field annotated ``Optional[T]`` (or ``T | None``) may be left unset and
  is then built as ``None``; its setter takes a ``T``.
* Any other field left unset is built from its type's default value
  (``""`` for ``str``, ``[]`` for ``list[...]``, ``0`` for ``int``).
* A list field assigned ``each("name")`` in the class body gets a method
  ``name`` that appends one element at a time, instead of a whole-list setter.
"""

from __future__ import annotations

import copy
import dataclasses
import enum
import keyword
import types
from dataclasses import dataclass
from typing import Any, Callable, Union, get_args, get_origin

__all__ = ["BuilderError", "builder", "each"]

_MISSING = object()
_EACH_HINT = 'expected `builder(each = "...")`'
_UNION_ORIGINS = (Union, types.UnionType)


class BuilderError(Exception):
    """Raised when a class cannot be given a builder, or a field cannot be built."""


@dataclass(frozen=True)
class _Each:
    name: str


def each(name: str) -> _Each:
    """Mark a list field so that its builder appends one element per call to ``name``."""
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise BuilderError(f"{_EACH_HINT}: {name!r} is not a method name")
    return _Each(name)


@dataclass(frozen=True)
class _FieldPlan:
    name: str
    annotation: Any
    optional: bool
    value_type: Any
    each: str | None
    item_type: Any = Any


def _type_name(tp: Any) -> str:
    return tp.__name__ if isinstance(tp, type) else str(tp)


def _optional_inner(tp: Any) -> Any:
    """Return ``T`` for ``Optional[T]``, or the marker when ``tp`` is not optional."""
    if get_origin(tp) not in _UNION_ORIGINS:
        return _MISSING
    args = get_args(tp)
    if type(None) not in args:
        return _MISSING
    rest = tuple(arg for arg in args if arg is not type(None))
    if not rest:
        raise BuilderError("can not find type in Option")
    return rest[0] if len(rest) == 1 else Union[rest]


def _list_item(tp: Any) -> Any:
    """Return the element type of a list annotation, or the marker if it is not a list."""
    if tp is list:
        return Any
    if get_origin(tp) is list:
        args = get_args(tp)
        return args[0] if args else Any
    return _MISSING


def _matches(expected: Any, value: Any) -> bool:
    origin = get_origin(expected)
    if origin in _UNION_ORIGINS:
        return any(_matches(arg, value) for arg in get_args(expected))
    base = origin or expected
    if isinstance(base, type):
        return isinstance(value, base)
    return True


def _check(field: str, expected: Any, value: Any) -> None:
    if not _matches(expected, value):
        raise TypeError(f"{field} expects {_type_name(expected)}, got {value!r}")


def _default(plan: _FieldPlan) -> Any:
    base = get_origin(plan.annotation) or plan.annotation
    if isinstance(base, type):
        try:
            return base()
        except TypeError:
            pass
    raise BuilderError(
        f"field {plan.name} was not set and {_type_name(plan.annotation)} has no default"
    )


def _annotations(cls: type) -> dict[str, Any]:
    """The annotations declared on ``cls`` itself, in declaration order."""
    annotations = cls.__dict__.get("__annotations__")
    if annotations is None:
        try:
            annotations = getattr(cls, "__annotations__", None) or {}
        except NameError as exc:
            raise BuilderError(f"cannot resolve field types: {exc}") from exc
        if any(
            annotations is getattr(base, "__annotations__", None)
            for base in cls.__mro__[1:]
        ):
            annotations = {}
    annotations = dict(annotations)
    unresolved = [name for name, value in annotations.items() if isinstance(value, str)]
    if unresolved:
        raise BuilderError(
            "cannot resolve field types: string annotations are not supported "
            f"({', '.join(unresolved)})"
        )
    return annotations


def _plan_field(cls: type, name: str, annotation: Any) -> _FieldPlan:
    declared = cls.__dict__.get(name, _MISSING)
    each_name: str | None = None
    if declared is not _MISSING:
        if not isinstance(declared, _Each):
            raise BuilderError(f"field {name}: {_EACH_HINT}")
        each_name = declared.name

    inner = _optional_inner(annotation)
    if inner is not _MISSING:
        return _FieldPlan(name, annotation, True, inner, None)

    if each_name is None:
        return _FieldPlan(name, annotation, False, annotation, None)

    item = _list_item(annotation)
    if item is _MISSING:
        raise BuilderError(f"field {name}: `each=()` used on a not vector field")
    return _FieldPlan(name, annotation, False, annotation, each_name, item)


class _BuilderBase:
    _target: type
    _plans: tuple[_FieldPlan, ...]

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def build(self) -> Any:
        """Create the target instance from the values set so far."""
        values: dict[str, Any] = {}
        for plan in self._plans:
            if plan.name in self._values:
                values[plan.name] = copy.deepcopy(self._values[plan.name])
            elif plan.optional:
                values[plan.name] = None
            else:
                values[plan.name] = _default(plan)
        return self._target(**values)

    def __repr__(self) -> str:
        parts = ", ".join(f"{key}={value!r}" for key, value in self._values.items())
        return f"{type(self).__name__}({parts})"


def _setter(plan: _FieldPlan) -> Callable[[Any, Any], Any]:
    def set_value(self: _BuilderBase, value: Any) -> _BuilderBase:
        _check(plan.name, plan.value_type, value)
        self._values[plan.name] = value
        return self

    set_value.__name__ = set_value.__qualname__ = plan.name
    set_value.__doc__ = f"Set {plan.name}."
    return set_value


def _appender(plan: _FieldPlan) -> Callable[[Any, Any], Any]:
    def append(self: _BuilderBase, item: Any) -> _BuilderBase:
        _check(plan.name, plan.item_type, item)
        self._values.setdefault(plan.name, []).append(item)
        return self

    name = plan.each or plan.name
    append.__name__ = append.__qualname__ = name
    append.__doc__ = f"Append one element to {plan.name}."
    return append


def builder(cls: type) -> type:
    """Make ``cls`` a dataclass and attach a ``builder()`` class method to it."""
    if not isinstance(cls, type) or issubclass(cls, enum.Enum):
        raise BuilderError("invalid derive type: not a struct")
    annotations = _annotations(cls)
    if "builder" in annotations:
        raise BuilderError("field name 'builder' is reserved")

    plans = tuple(
        _plan_field(cls, name, annotation) for name, annotation in annotations.items()
    )

    methods: dict[str, Callable[[Any, Any], Any]] = {}
    for plan in plans:
        method_name = plan.each or plan.name
        if method_name in ("build", "_values") or method_name.startswith("__"):
            raise BuilderError(f"builder method name {method_name!r} is reserved")
        if method_name in methods:
            raise BuilderError(f"duplicate builder method {method_name!r}")
        methods[method_name] = _appender(plan) if plan.each else _setter(plan)

    if any(isinstance(cls.__dict__.get(plan.name), _Each) for plan in plans):
        if dataclasses.is_dataclass(cls):
            raise BuilderError("apply builder to a plain class, not a dataclass")
        for plan in plans:
            if isinstance(cls.__dict__.get(plan.name), _Each):
                delattr(cls, plan.name)
    if not dataclasses.is_dataclass(cls):
        cls = dataclass(cls)

    namespace: dict[str, Any] = dict(methods)
    namespace.update({"_target": cls, "_plans": plans, "__slots__": ()})
    builder_cls = type(f"{cls.__name__}Builder", (_BuilderBase,), namespace)
    builder_cls.__module__ = cls.__module__

    def make_builder(owner: type) -> _BuilderBase:
        return builder_cls()

    make_builder.__name__ = "builder"
    make_builder.__doc__ = f"Return an empty {builder_cls.__name__}."
    cls.builder = classmethod(make_builder)
    return cls