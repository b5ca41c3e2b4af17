"""Destination shapes derived from type hints.

Every destination type hint is classified once into a Shape describing how to
decode it: a record, a fixed-length tuple, a variable-length sequence, a
mapping, a scalar, a raw node list, or a type with its own ``unmarshal_html``.
Shapes are memoized per hint so the decode path never re-inspects types.

``Optional[T]`` and ``Annotated[T, ...]`` are indirection levels: they are
unwrapped on the way to the underlying type, and a custom decoder found at
any level takes precedence over everything else.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import functools
import types
from collections.abc import Callable
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    ClassVar,
    Protocol,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from lxml import etree
from pydantic import BaseModel

from cssdecode.markers import query_of
from cssdecode.tag import Tag


@runtime_checkable
class Unmarshaler(Protocol):
    """A type that decodes itself from the raw matched nodes."""

    def unmarshal_html(self, nodes: list[etree._Element], /) -> None: ...


def is_unmarshaler(tp: object) -> bool:
    """Check if ``tp`` is a class exposing ``unmarshal_html``."""
    return isinstance(tp, type) and callable(getattr(tp, "unmarshal_html", None))


def _is_optional(origin: object) -> bool:
    return origin is Union or origin is types.UnionType


def indirect(hint: Any) -> tuple[type | None, Any]:
    """Follow Annotated and Optional levels down to the concrete type.

    Returns:
        ``(decoder_cls, base)`` where ``decoder_cls`` is the first class with
        ``unmarshal_html`` met on the way (or None), and ``base`` the hint
        left once all levels are unwrapped.
    """
    while True:
        if is_unmarshaler(hint):
            return hint, hint
        origin = get_origin(hint)
        if is_unmarshaler(origin):
            return origin, hint
        if origin is Annotated:
            hint = get_args(hint)[0]
            continue
        if _is_optional(origin):
            non_none = [a for a in get_args(hint) if a is not type(None)]
            if len(non_none) == 1:
                hint = non_none[0]
                continue
        return None, hint


# ── Shapes ──────────────────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class Shape:
    """Base of all destination shapes. ``hint`` is the unwrapped type hint."""

    hint: Any


@dataclass(frozen=True, eq=False)
class CustomShape(Shape):
    cls: type


@dataclass(frozen=True, eq=False)
class RawShape(Shape):
    """A list of lxml elements that receives matched nodes verbatim."""


@dataclass(frozen=True, eq=False)
class ScalarShape(Shape):
    pass


@dataclass(frozen=True, eq=False)
class TupleShape(Shape):
    items: tuple[Shape, ...]


@dataclass(frozen=True, eq=False)
class SequenceShape(Shape):
    item: Shape
    factory: Callable[[list[Any]], Any] = list


@dataclass(frozen=True, eq=False)
class MapShape(Shape):
    key: Shape
    value: Shape


@dataclass(frozen=True)
class FieldSpec:
    """One decodable attribute of a record."""

    name: str
    tag: Tag
    shape: Shape


@dataclass(frozen=True, eq=False)
class RecordShape(Shape):
    cls: type

    @functools.cached_property
    def fields(self) -> tuple[FieldSpec, ...]:
        # Resolved lazily so records may refer to themselves.
        return tuple(
            FieldSpec(name=name, tag=Tag.parse(raw), shape=shape_of(hint))
            for name, hint, raw in _record_fields(self.cls)
        )


# ── Classification ──────────────────────────────────────────────────────

_SEQUENCES = {
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Collection,
    collections.abc.Iterable,
}
_SETS = {set, frozenset, collections.abc.Set, collections.abc.MutableSet}
_MAPPINGS = {dict, collections.abc.Mapping, collections.abc.MutableMapping}
_BARE = {list, tuple, set, frozenset, dict}
_SCALARS = (str, bytes, int, float, bool)


def shape_of(hint: Any) -> Shape:
    """Return the (memoized) Shape for a destination type hint."""
    try:
        hash(hint)
    except TypeError:
        return _build(hint)
    return _cached_shape(hint)


@functools.lru_cache(maxsize=None)
def _cached_shape(hint: Any) -> Shape:
    return _build(hint)


def _build(hint: Any) -> Shape:
    decoder, base = indirect(hint)
    if decoder is not None:
        return CustomShape(hint=base, cls=decoder)
    if base is Any or base is object:
        return ScalarShape(hint=base)

    origin, args = get_origin(base), get_args(base)
    if isinstance(base, type) and base in _BARE:
        origin, args = base, ()

    if origin in _SEQUENCES:
        item = args[0] if args else Any
        if origin is list and _is_element_type(item):
            return RawShape(hint=base)
        return SequenceShape(hint=base, item=shape_of(item))
    if origin is tuple:
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            item = args[0] if args else Any
            return SequenceShape(hint=base, item=shape_of(item), factory=tuple)
        return TupleShape(hint=base, items=tuple(shape_of(a) for a in args))
    if origin in _SETS:
        item = args[0] if args else Any
        factory = frozenset if origin is frozenset else set
        return SequenceShape(hint=base, item=shape_of(item), factory=factory)
    if origin in _MAPPINGS:
        key, value = args if len(args) == 2 else (Any, Any)
        return MapShape(hint=base, key=shape_of(key), value=shape_of(value))
    if _is_record(base):
        return RecordShape(hint=base, cls=base)
    return ScalarShape(hint=base)


def _is_element_type(hint: Any) -> bool:
    if get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    return isinstance(hint, type) and issubclass(hint, etree._Element)


def _is_record(tp: Any) -> bool:
    if not isinstance(tp, type) or issubclass(tp, (*_SCALARS, etree._Element)):
        return False
    if issubclass(tp, BaseModel) or dataclasses.is_dataclass(tp):
        return True
    return bool(getattr(tp, "__annotations__", None))


def _record_fields(cls: type):
    """Yield ``(name, hint, annotation)`` for each decodable attribute of ``cls``."""
    if issubclass(cls, BaseModel):
        for name, info in cls.model_fields.items():
            yield name, info.annotation, query_of(tuple(info.metadata))
        return

    hints = get_type_hints(cls, include_extras=True)
    if dataclasses.is_dataclass(cls):
        names = [f.name for f in dataclasses.fields(cls)]
    else:
        names = [
            n for n, h in hints.items()
            if not n.startswith("_") and get_origin(h) is not ClassVar
        ]
    for name in names:
        hint = hints.get(name, Any)
        raw = query_of(get_args(hint)[1:]) if get_origin(hint) is Annotated else ""
        yield name, hint, raw
