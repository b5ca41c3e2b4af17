"""Selector annotations: parsing, narrowing and value-selector consumption.

Grammar::

    [!directive,]*selector0[,selector1[,selector2...]]

Slot 0 narrows the current selection, slot 1 is the value selector (or the
map key selector), and later slots are handed down to nested containers as
slot 1 is popped off at each level.
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass

from cssdecode.markers import IGNORE
from cssdecode.selection import Selection

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "!"


@dataclass(frozen=True)
class Tag:
    """A parsed selector annotation.

    Attributes:
        raw: The annotation exactly as written.
        directives: Selection method names to call before narrowing.
        selectors: Positional selector slots (never empty).
    """

    raw: str
    directives: tuple[str, ...]
    selectors: tuple[str, ...]

    @classmethod
    def parse(cls, raw: str) -> Tag:
        return _parse(raw)

    def __str__(self) -> str:
        return self.raw

    def __bool__(self) -> bool:
        return self.raw != ""

    @property
    def ignored(self) -> bool:
        return self.raw == IGNORE

    def selector(self, which: int) -> str:
        """Selector in slot ``which``, or ``""`` when the slot is absent."""
        if which >= len(self.selectors):
            return ""
        return self.selectors[which]

    def pop(self) -> Tag:
        """Drop the value selector in slot 1, shifting later slots down.

        This is what lets one annotation feed arbitrarily nested containers:
        ``"ul,[id],a"`` on a ``dict[str, list[str]]`` keys on ``[id]`` and
        hands ``"ul,a"`` to the list.
        """
        if len(self.selectors) < 2:
            return self
        selectors = (self.selectors[0], *self.selectors[2:])
        tokens = [DIRECTIVE_PREFIX + d for d in self.directives] + list(selectors)
        return _parse(",".join(tokens))

    def preprocess(self, selection: Selection) -> Selection:
        """Apply every directive to ``selection`` in order.

        Each directive names a zero-argument Selection method (``!parent``,
        ``!next``, ``!children`` ...). Unknown names are skipped and the
        selection passes through unchanged.
        """
        for name in self.directives:
            method = None if name.startswith("_") else getattr(selection, name, None)
            if not callable(method) or not _takes_no_args(method):
                logger.debug("ignoring unknown directive %r in %r", name, self.raw)
                continue
            result = method()
            if isinstance(result, Selection):
                selection = result
        return selection

    def narrow(self, selection: Selection) -> Selection:
        """Apply directives, then find descendants matching slot 0."""
        selection = self.preprocess(selection)
        primary = self.selector(0)
        if primary:
            selection = selection.find(primary)
        return selection


@functools.lru_cache(maxsize=4096)
def _parse(raw: str) -> Tag:
    tokens = raw.split(",")
    offset = 0
    # The last token is always a selector, even if it starts with the prefix.
    while offset < len(tokens) - 1 and tokens[offset].startswith(DIRECTIVE_PREFIX):
        offset += 1
    directives = tuple(t[len(DIRECTIVE_PREFIX):] for t in tokens[:offset])
    return Tag(raw=raw, directives=directives, selectors=tuple(tokens[offset:]))


def _takes_no_args(method: object) -> bool:
    try:
        inspect.signature(method).bind()
    except (TypeError, ValueError):
        return False
    return True
