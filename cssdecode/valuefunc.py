"""Value functions: turning a narrowed selection into a literal string.

Slot 1 of an annotation picks the rule:

- absent, ``text`` or anything unrecognised: trimmed text of all nodes
- ``html``: trimmed inner markup of the first node
- ``[name]``: attribute ``name`` of the first node, ``""`` when absent

Resolved functions are cached per annotation string for the life of the
process by the shared ``ValueFuncCache``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cssdecode.selection import Selection
    from cssdecode.tag import Tag

logger = logging.getLogger(__name__)

ValueFunc = Callable[["Selection"], str]


def text_value(selection: Selection) -> str:
    return selection.text().strip()


def html_value(selection: Selection) -> str:
    return selection.html().strip()


@dataclass(frozen=True)
class AttrValue:
    """Read a named attribute from the first node, untrimmed."""

    name: str

    def __call__(self, selection: Selection) -> str:
        return selection.attr(self.name)


def resolve(tag: Tag) -> ValueFunc:
    """Pick the value function for ``tag`` without consulting the cache."""
    src = tag.selector(1)
    if not src:
        return text_value
    if src.startswith("[") and src.endswith("]") and len(src) >= 2:
        return AttrValue(src[1:-1])
    if src == "html":
        return html_value
    if src != "text":
        logger.debug("value selector %r in %r is not recognised; using text", src, tag.raw)
    return text_value


def describe(fn: ValueFunc) -> str:
    """Short label for a value function (``text``, ``html`` or ``[name]``)."""
    if isinstance(fn, AttrValue):
        return f"[{fn.name}]"
    if fn is html_value:
        return "html"
    return "text"


class ValueFuncCache:
    """Process-wide map from annotation string to resolved value function.

    Lookups and inserts hold a lock so concurrent decodes never observe a
    partially written entry. Entries are never evicted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._funcs: dict[str, ValueFunc] = {}

    def get(self, tag: Tag) -> ValueFunc:
        with self._lock:
            fn = self._funcs.get(tag.raw)
            if fn is None:
                fn = resolve(tag)
                self._funcs[tag.raw] = fn
            return fn

    def __contains__(self, raw: object) -> bool:
        with self._lock:
            return raw in self._funcs

    def __len__(self) -> int:
        with self._lock:
            return len(self._funcs)


CACHE = ValueFuncCache()


def value_func(tag: Tag) -> ValueFunc:
    """Resolve ``tag``'s value function through the shared cache."""
    return CACHE.get(tag)
