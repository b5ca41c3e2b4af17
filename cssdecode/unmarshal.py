"""Declarative decoding of HTML selections into typed destinations.

The decoder walks a destination Shape top-down. At every record field the
field's annotation narrows the current selection; containers hand the
remaining annotation to their elements; scalars read a string through the
annotation's value function and convert it.

Rules, in precedence order:

- A type with ``unmarshal_html`` (at any Optional/Annotated level) receives
  the raw matched nodes and does its own decoding.
- ``list[HtmlElement]`` receives the matched nodes verbatim.
- Records decode each annotated field; fields without an annotation are left
  alone.
- ``tuple[A, B, ...]`` needs exactly one matched node per item.
- ``list[T]`` (and other variable sequences) decode one element per node.
- ``dict[K, V]`` needs a key selector in slot 1. Keys come from the shallowest
  generation of descendants containing a match; values are decoded from each
  key node with slot 1 popped, so they only ever see the key node's subtree.
- Scalars convert the value function's string to ``str``, ``int``, ``float``,
  ``bool`` or (for ``Any``) leave it as a string.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, get_origin

from pydantic import BaseModel, ValidationError

from cssdecode.exceptions import Reason, UnmarshalError
from cssdecode.selection import Document, Selection
from cssdecode.shapes import (
    CustomShape,
    MapShape,
    RawShape,
    RecordShape,
    SequenceShape,
    Shape,
    TupleShape,
    shape_of,
)
from cssdecode.tag import Tag
from cssdecode.valuefunc import value_func

logger = logging.getLogger(__name__)

# Sentinel for "the destination holds no value yet".
_MISSING = object()

_ROOT_TAG = Tag.parse("")

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def unmarshal(data: bytes | str, dest: Any) -> Any:
    """Parse ``data`` as HTML and decode it into ``dest``.

    Parse errors from lxml propagate unchanged; decoding errors are raised as
    UnmarshalError.
    """
    return unmarshal_selection(Document.parse(data), dest)


def unmarshal_selection(selection: Selection, dest: Any) -> Any:
    """Decode ``selection`` into ``dest``.

    Args:
        selection: The selection to decode, usually a parsed Document.
        dest: Either a type hint (``Page``, ``list[Item]``, ``dict[str, int]``),
            in which case a new value is built, or a record / custom decoder
            instance, which is populated in place.

    Returns:
        The decoded value (``dest`` itself for in-place decoding).

    Raises:
        UnmarshalError: If ``dest`` cannot be decoded into, or decoding fails.
    """
    if dest is None:
        raise UnmarshalError(Reason.NIL_VALUE, dest)
    if _is_type_hint(dest):
        return decode(selection, shape_of(dest), _ROOT_TAG)

    shape = shape_of(type(dest))
    if not isinstance(shape, (RecordShape, CustomShape)):
        raise UnmarshalError(Reason.NON_POINTER, dest)
    return decode(selection, shape, _ROOT_TAG, dest)


def decode(selection: Selection, shape: Shape, tag: Tag, current: Any = _MISSING) -> Any:
    """Decode ``selection`` into a value of ``shape`` using the remaining ``tag``.

    ``current`` is the value the destination already holds, if any: records
    and custom decoders are filled in place, sequences and raw node lists are
    appended to, and mappings are updated.
    """
    if isinstance(shape, CustomShape):
        return _decode_custom(selection, shape, current)
    if isinstance(shape, RawShape):
        existing = list(current) if isinstance(current, list) else []
        return existing + selection.nodes
    if isinstance(shape, RecordShape):
        return _decode_record(selection, shape, current)
    if isinstance(shape, TupleShape):
        return _decode_tuple(selection, shape, tag)
    if isinstance(shape, SequenceShape):
        return _decode_sequence(selection, shape, tag, current)
    if isinstance(shape, MapShape):
        return _decode_map(selection, shape, tag, current)
    return _decode_scalar(selection, shape, tag)


def _is_type_hint(dest: Any) -> bool:
    return dest is Any or isinstance(dest, type) or get_origin(dest) is not None


# ── Records and custom decoders ─────────────────────────────────────────


def _decode_custom(selection: Selection, shape: CustomShape, current: Any) -> Any:
    target = current if isinstance(current, shape.cls) else _new_instance(shape.cls)
    logger.debug("delegating %d node(s) to %s.unmarshal_html", len(selection), shape.cls.__qualname__)
    try:
        target.unmarshal_html(list(selection.nodes))
    except Exception as e:
        raise UnmarshalError(Reason.CUSTOM_DECODER, shape.hint, cause=e) from e
    return target


def _decode_record(selection: Selection, shape: RecordShape, current: Any) -> Any:
    in_place = isinstance(current, shape.cls)
    values: dict[str, Any] = {}

    for entry in shape.fields:
        tag = entry.tag
        if tag.ignored:
            continue
        # Unannotated fields keep whatever they hold, unless they decode themselves.
        if not tag and not isinstance(entry.shape, CustomShape):
            logger.debug("%s.%s has no annotation; leaving it alone", shape.cls.__qualname__, entry.name)
            continue

        existing = _current_value(current, entry.name) if in_place else _MISSING
        try:
            values[entry.name] = decode(tag.narrow(selection), entry.shape, tag, existing)
        except UnmarshalError as e:
            raise UnmarshalError(
                Reason.TYPE_CONVERSION, shape.hint, field=entry.name, cause=e
            ) from e

    if in_place:
        for name, value in values.items():
            _assign(current, name, value)
        return current
    return _build_record(shape, values)


def _build_record(shape: RecordShape, values: dict[str, Any]) -> Any:
    cls = shape.cls
    if issubclass(cls, BaseModel):
        config = getattr(cls, "decode_config", None) or {}
        if not config.get("validate"):
            return cls.model_construct(**values)
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise UnmarshalError(Reason.TYPE_CONVERSION, shape.hint, cause=e) from e

    record = _new_instance(cls)
    for name, value in values.items():
        _assign(record, name, value)
    return record


def _new_instance(cls: type) -> Any:
    """Create an empty instance of ``cls`` holding only declared defaults."""
    if issubclass(cls, BaseModel):
        return cls.model_construct()
    if dataclasses.is_dataclass(cls):
        record = cls.__new__(cls)
        for f in dataclasses.fields(cls):
            if f.default is not dataclasses.MISSING:
                object.__setattr__(record, f.name, f.default)
            elif f.default_factory is not dataclasses.MISSING:
                object.__setattr__(record, f.name, f.default_factory())
        return record
    return cls()


def _current_value(record: Any, name: str) -> Any:
    """Value ``record`` itself holds for ``name``, or ``_MISSING``.

    Plain classes declare defaults as class attributes shared by every
    instance, so only the instance dict counts for them.
    """
    if isinstance(record, BaseModel) or dataclasses.is_dataclass(record):
        return getattr(record, name, _MISSING)
    if hasattr(record, "__dict__"):
        return vars(record).get(name, _MISSING)
    return getattr(record, name, _MISSING)


def _assign(record: Any, name: str, value: Any) -> None:
    if dataclasses.is_dataclass(record) and record.__dataclass_params__.frozen:
        object.__setattr__(record, name, value)
    else:
        setattr(record, name, value)


# ── Sequences ───────────────────────────────────────────────────────────


def _decode_tuple(selection: Selection, shape: TupleShape, tag: Tag) -> tuple[Any, ...]:
    if len(selection) != len(shape.items):
        raise UnmarshalError(Reason.ARRAY_LENGTH_MISMATCH, shape.hint)

    items = []
    for i, (single, item_shape) in enumerate(zip(selection, shape.items)):
        try:
            items.append(decode(single, item_shape, tag))
        except UnmarshalError as e:
            raise UnmarshalError(Reason.TYPE_CONVERSION, shape.hint, field=i, cause=e) from e
    return tuple(items)


def _decode_sequence(selection: Selection, shape: SequenceShape, tag: Tag, current: Any) -> Any:
    items = list(current) if current is not _MISSING and current is not None else []
    for i, single in enumerate(selection):
        try:
            items.append(decode(single, shape.item, tag))
        except UnmarshalError as e:
            raise UnmarshalError(Reason.TYPE_CONVERSION, shape.hint, field=i, cause=e) from e
    return shape.factory(items)


# ── Mappings ────────────────────────────────────────────────────────────


def children_until_match(selection: Selection, css: str) -> Selection:
    """Descend generation by generation until one contains a match for ``css``.

    Returns the matching nodes of that generation, or ``selection`` itself
    when no generation below it matches.
    """
    generation = selection.children()
    matches = generation.filter(css)
    while len(generation) and not len(matches):
        generation = generation.children()
        matches = generation.filter(css)
    if not len(generation):
        logger.debug("no descendants match key selector %r; keying on the selection itself", css)
        return selection
    return matches


def _decode_map(selection: Selection, shape: MapShape, tag: Tag, current: Any) -> dict[Any, Any]:
    key_css = tag.selector(1)
    if not key_css:
        raise UnmarshalError(Reason.MISSING_VALUE_SELECTOR, shape.hint)

    result = current if isinstance(current, dict) else {}
    value_tag = tag.pop()

    for single in children_until_match(selection, key_css):
        try:
            key = decode(single, shape.key, tag)
        except UnmarshalError as e:
            raise UnmarshalError(
                Reason.MAP_KEY, shape.hint, value=value_func(value_tag)(single), cause=e
            ) from e
        try:
            value = decode(single, shape.value, value_tag)
        except UnmarshalError as e:
            raise UnmarshalError(Reason.TYPE_CONVERSION, shape.hint, field=key, cause=e) from e
        result[key] = value
    return result


# ── Scalars ─────────────────────────────────────────────────────────────


def _decode_scalar(selection: Selection, shape: Shape, tag: Tag) -> Any:
    raw = value_func(tag)(selection)
    try:
        return convert_literal(raw, shape.hint)
    except (TypeError, ValueError) as e:
        raise UnmarshalError(Reason.TYPE_CONVERSION, shape.hint, value=raw, cause=e) from e


def _check_number(raw: str) -> None:
    # int() and float() also take digit separators and surrounding blanks.
    if "_" in raw or raw != raw.strip():
        raise ValueError(f"invalid number literal {raw!r}")


def convert_literal(raw: str, tp: Any) -> Any:
    """Convert a literal string to the scalar type ``tp``.

    Raises:
        ValueError: If ``raw`` is not a valid literal for ``tp``.
        TypeError: If ``tp`` has no conversion from text.
    """
    if tp is Any or tp is object:
        return raw
    if isinstance(tp, type):
        if issubclass(tp, bool):
            if raw in _TRUE:
                return True
            if raw in _FALSE:
                return False
            raise ValueError(f"invalid boolean literal {raw!r}")
        if issubclass(tp, int):
            _check_number(raw)
            return tp(int(raw, 10))
        if issubclass(tp, float):
            _check_number(raw)
            return tp(float(raw))
        if issubclass(tp, str):
            return tp(raw)
    raise TypeError(f"cannot convert text to {tp!r}")
