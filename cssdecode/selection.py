"""Selections over parsed HTML.

A Selection is an ordered, duplicate-free list of lxml elements with the
jQuery-style query surface the decoder needs: find descendants by CSS
selector, walk children/parents/siblings, and read text, inner markup or
attributes.

CSS selectors are translated to XPath by ``cssselect`` and evaluated by
``lxml``. Matching is evaluated against the whole tree, so a selector such as
``"ul li"`` may use ancestors above the node it is searched from, the same
way browsers evaluate ``element.querySelectorAll``.
"""

from __future__ import annotations

import functools
import html
from collections.abc import Callable, Iterable, Iterator

import lxml.html
from cssselect import HTMLTranslator
from lxml import etree

_translator = HTMLTranslator()

# Destination type that captures matched nodes verbatim.
Nodes = list[lxml.html.HtmlElement]


@functools.lru_cache(maxsize=1024)
def _compile(css: str) -> etree.XPath:
    """Compile a CSS selector to an XPath evaluated from the tree root."""
    return etree.XPath(_translator.css_to_xpath(css, prefix="descendant-or-self::"))


def _is_element(node: object) -> bool:
    # Comments and processing instructions carry a callable tag.
    return isinstance(getattr(node, "tag", None), str)


MatchCache = dict[tuple[etree._Element, str], dict[etree._Element, None]]


def _matching(cache: MatchCache, node: etree._Element, css: str) -> dict[etree._Element, None]:
    """All elements in ``node``'s tree matching ``css``, in document order.

    The selector is evaluated once per (tree root, selector) and the result
    kept in ``cache``, so narrowing many nodes of one tree stays linear in
    the size of the tree.
    """
    root = node.getroottree().getroot()
    key = (root, css)
    matches = cache.get(key)
    if matches is None:
        matches = dict.fromkeys(_compile(css)(root))
        cache[key] = matches
    return matches


def _unique(nodes: Iterable[etree._Element]) -> list[etree._Element]:
    seen: set[etree._Element] = set()
    out: list[etree._Element] = []
    for n in nodes:
        if n is None or n in seen:
            continue
        seen.add(n)
        out.append(n)
    return out


def _inner_html(node: etree._Element) -> str:
    parts = [html.escape(node.text, quote=False)] if node.text else []
    parts.extend(etree.tostring(child, method="html", encoding="unicode") for child in node)
    return "".join(parts)


class Selection:
    """An ordered set of matched document nodes.

    Usage:
        sel = Document.parse(page)
        for item in sel.find("li.item"):
            print(item.find("a").attr("href"))
    """

    def __init__(self, nodes: Iterable[etree._Element] = (), *, matches: MatchCache | None = None):
        self.nodes: list[etree._Element] = _unique(nodes)
        # Selector matches shared by every selection derived from this one.
        self._matches: MatchCache = {} if matches is None else matches

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Selection]:
        """Yield a single-node Selection per matched node, in order."""
        for node in self.nodes:
            yield self._derive([node])

    def __repr__(self) -> str:
        tags = ", ".join(str(n.tag) for n in self.nodes[:5])
        more = ", ..." if len(self.nodes) > 5 else ""
        return f"{type(self).__name__}([{tags}{more}])"

    def _derive(self, nodes: Iterable[etree._Element] = ()) -> Selection:
        return Selection(nodes, matches=self._matches)

    # ── Construction ────────────────────────────────────────────────────

    def add_nodes(self, *nodes: etree._Element) -> Selection:
        """Return a new Selection with ``nodes`` appended."""
        return self._derive([*self.nodes, *nodes])

    def eq(self, index: int) -> Selection:
        """Selection holding only the node at ``index`` (empty if out of range)."""
        if -len(self.nodes) <= index < len(self.nodes):
            return self._derive([self.nodes[index]])
        return self._derive()

    def first(self) -> Selection:
        return self.eq(0)

    def last(self) -> Selection:
        return self.eq(-1)

    # ── Queries ─────────────────────────────────────────────────────────

    def find(self, css: str) -> Selection:
        """Descendants of every node that match ``css`` (nodes themselves excluded)."""
        found: list[etree._Element] = []
        for node in self.nodes:
            matches = _matching(self._matches, node, css)
            if matches:
                found.extend(d for d in node.iterdescendants() if d in matches)
        return self._derive(found)

    def filter(self, css: str) -> Selection:
        """Nodes of this selection that match ``css``."""
        return self._derive(
            n for n in self.nodes if _is_element(n) and n in _matching(self._matches, n, css)
        )

    def children(self) -> Selection:
        return self._derive(c for n in self.nodes for c in n if _is_element(c))

    def parent(self) -> Selection:
        return self._derive(n.getparent() for n in self.nodes)

    def parents(self) -> Selection:
        return self._derive(a for n in self.nodes for a in n.iterancestors())

    def next(self) -> Selection:
        return self._derive(_sibling(n, forward=True) for n in self.nodes)

    def prev(self) -> Selection:
        return self._derive(_sibling(n, forward=False) for n in self.nodes)

    def siblings(self) -> Selection:
        out: list[etree._Element] = []
        for n in self.nodes:
            parent = n.getparent()
            if parent is not None:
                out.extend(c for c in parent if c is not n and _is_element(c))
        return self._derive(out)

    def each_with_break(self, fn: Callable[[int, Selection], bool]) -> Selection:
        """Call ``fn(i, single)`` for every node until it returns False."""
        for i, single in enumerate(self):
            if not fn(i, single):
                break
        return self

    # ── Values ──────────────────────────────────────────────────────────

    def text(self) -> str:
        """Combined text content of every node, descendants included."""
        return "".join(str(n.xpath("string()")) for n in self.nodes)

    def html(self) -> str:
        """Inner markup of the first node."""
        if not self.nodes:
            return ""
        return _inner_html(self.nodes[0])

    def attr(self, name: str, default: str = "") -> str:
        """Value of attribute ``name`` on the first node."""
        if not self.nodes:
            return default
        value = self.nodes[0].get(name)
        return default if value is None else value


def _sibling(node: etree._Element, *, forward: bool) -> etree._Element | None:
    sib = node.getnext() if forward else node.getprevious()
    while sib is not None and not _is_element(sib):
        sib = sib.getnext() if forward else sib.getprevious()
    return sib


class Document(Selection):
    """Selection over a whole parsed document.

    The document sits above the root ``<html>`` element, so ``find`` also
    considers the root itself and ``children`` returns it.
    """

    @classmethod
    def parse(cls, data: bytes | str) -> Document:
        """Parse markup into a Document. lxml parse errors propagate as-is."""
        return cls([lxml.html.document_fromstring(data)])

    def find(self, css: str) -> Selection:
        return self._derive(n for root in self.nodes for n in _matching(self._matches, root, css))

    def children(self) -> Selection:
        return self._derive(self.nodes)

    def parent(self) -> Selection:
        return self._derive()

    def html(self) -> str:
        if not self.nodes:
            return ""
        return etree.tostring(self.nodes[0], method="html", encoding="unicode")


def node_selector(nodes: Iterable[etree._Element]) -> Selection:
    """Build a Selection from raw nodes.

    Handy inside ``unmarshal_html`` implementations, which receive the raw
    node list rather than a Selection.
    """
    return Selection(nodes)
