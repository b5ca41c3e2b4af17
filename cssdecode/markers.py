"""Annotation markers for decodable fields.

These markers are used with typing.Annotated to attach a selector annotation
to a record field. The decoder reads them when it walks a record's fields.
"""

from __future__ import annotations

from dataclasses import dataclass

IGNORE = "!ignore"


@dataclass(frozen=True)
class Query:
    """Marker carrying a field's selector annotation.

    The annotation is a comma-separated list: optional ``!directive`` tokens,
    then a CSS selector that narrows the current selection, then value
    selectors (``text``, ``html`` or ``[attr]``) consumed one per nesting
    level.

    Usage:
        class Story(Record):
            title: Annotated[str, Query("a.title")]
            url: Annotated[str, Query("a.title,[href]")]
            tags: Annotated[list[str], Query("!parent,span.tag")]
    """

    raw: str = ""


def query_of(metadata: tuple[object, ...]) -> str:
    """Return the annotation string found in ``Annotated`` metadata.

    A ``Query`` marker wins; a bare string is accepted as shorthand. Returns
    ``""`` when neither is present.
    """
    for m in metadata:
        if isinstance(m, Query):
            return m.raw
    for m in metadata:
        if isinstance(m, str):
            return m
    return ""
