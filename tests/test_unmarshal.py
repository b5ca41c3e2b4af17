"""Tests for the type dispatcher: records, sequences, scalars and custom decoders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

import lxml.html
import pytest

from cssdecode import (
    IGNORE,
    Document,
    Nodes,
    Query,
    Reason,
    Record,
    UnmarshalError,
    node_selector,
    unmarshal,
    unmarshal_selection,
)
import cssdecode.selection as selection_module
from cssdecode.unmarshal import convert_literal

PAGE = """
<html><body>
  <h1 id="heading">  Front page  </h1>
  <span id="count" data-raw=" 42">42</span>
  <span id="ratio">0.75</span>
  <span id="flag">true</span>
  <span id="bad-flag">yes</span>
  <ul id="stories" data-kind="news">
    <li class="story" data-id="101">
      <a class="title" href="/a">Alpha</a>
      <span class="score">10</span>
    </li>
    <li class="story" data-id="102">
      <a class="title" href="/b">Beta</a>
      <span class="score">20</span>
    </li>
  </ul>
</body></html>
"""


# ── Destination types ───────────────────────────────────────────────────


class Story(Record):
    title: Annotated[str, Query(".title")] = ""
    id: Annotated[str, Query(",[data-id]")] = ""
    href: Annotated[str, Query(".title,[href]")] = ""
    score: Annotated[int, Query(".score")] = 0
    kind: Annotated[str, Query("!parent,,[data-kind]")] = ""


class FrontPage(Record):
    heading: Annotated[str, Query("#heading")] = ""
    count: Annotated[int, Query("#count")] = 0
    ratio: Annotated[float, Query("#ratio")] = 0.0
    flag: Annotated[bool, Query("#flag")] = False
    stories: Annotated[list[Story], Query("li.story")] = []


class Untouched(Record):
    a: str = "keep"
    b: int = 7
    c: list[str] = ["x"]


class Ignoring(Record):
    heading: Annotated[str, Query(IGNORE)] = "unchanged"
    count: Annotated[int, Query("#count")] = 0


class Titles(Record):
    pair: Annotated[tuple[str, str], Query("a.title")] = ("", "")
    mixed: Annotated[tuple[str, int], Query("span.score")] = ("", 0)


class TooMany(Record):
    triple: Annotated[tuple[str, str, str], Query("a.title")] = ("", "", "")


class Scores(Record):
    as_list: Annotated[list[int], Query(".score")] = []
    as_tuple: Annotated[tuple[int, ...], Query(".score")] = ()
    as_set: Annotated[set[str], Query(".title,[href]")] = set()
    hrefs: Annotated[list[str], Query(".title,[href]")] = []


class BadFlag(Record):
    flag: Annotated[bool, Query("#bad-flag")] = False


class BadStory(Record):
    title: Annotated[int, Query(".title")] = 0


class BadScores(Record):
    stories: Annotated[list[BadStory], Query("li.story")] = []


class Shout:
    """Custom decoder: upper-cases the text of whatever it is given."""

    def __init__(self):
        self.value = ""
        self.node_count = 0

    def unmarshal_html(self, nodes):
        self.node_count = len(nodes)
        self.value = node_selector(nodes).text().strip().upper()


class Broken:
    def unmarshal_html(self, nodes):
        raise ValueError("refusing to decode")


class WithCustom(Record):
    # The [href] value selector would apply to a plain str; the decoder wins.
    title: Annotated[Shout, Query("a.title,[href]")] = None
    maybe: Annotated[Optional[Shout], Query("#heading")] = None
    whole: Shout = None


class WithBroken(Record):
    broken: Annotated[Broken, Query("#heading")] = None


class Raw(Record):
    items: Annotated[Nodes, Query("li.story")] = []


class Generic(Record):
    anything: Annotated[Any, Query("#count")] = None


class Binary(Record):
    value: Annotated[bytes, Query("#count")] = b""


@dataclass
class Counts:
    count: Annotated[int, Query("#count")] = 0
    extra: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FrozenCounts:
    count: Annotated[int, Query("#count")] = 0


class Heading:
    text: Annotated[str, Query("#heading")]

    def __init__(self):
        self.text = ""


class Table:
    table: Annotated[dict[str, str], Query("ul,[data-k]")] = {}


class SpacedCount(Record):
    count: Annotated[int, Query("#count,[data-raw]")] = 0


# =============================================================================
# Test: records
# =============================================================================


class TestRecords:
    def test_decode_front_page(self):
        page = unmarshal(PAGE, FrontPage)
        assert page.heading == "Front page"
        assert page.count == 42
        assert page.ratio == 0.75
        assert page.flag is True
        assert [s.title for s in page.stories] == ["Alpha", "Beta"]

    def test_nested_records_in_document_order(self):
        stories = unmarshal(PAGE, FrontPage).stories
        assert len(stories) == 2
        assert [(s.title, s.id) for s in stories] == [("Alpha", "101"), ("Beta", "102")]
        assert [s.href for s in stories] == ["/a", "/b"]
        assert [s.score for s in stories] == [10, 20]

    def test_directive_reaches_parent(self):
        stories = unmarshal(PAGE, FrontPage).stories
        assert {s.kind for s in stories} == {"news"}

    def test_unannotated_record_is_untouched(self):
        before = Untouched(a="mine", b=1, c=["y"])
        after = unmarshal(PAGE, before)
        assert after is before
        assert after.model_dump() == {"a": "mine", "b": 1, "c": ["y"]}

    def test_unannotated_record_type_keeps_defaults(self):
        assert unmarshal(PAGE, Untouched).model_dump() == {"a": "keep", "b": 7, "c": ["x"]}

    def test_ignore(self):
        rec = unmarshal(PAGE, Ignoring)
        assert rec.heading == "unchanged"
        assert rec.count == 42

    def test_in_place_record(self):
        page = FrontPage(heading="old")
        assert unmarshal(PAGE, page) is page
        assert page.heading == "Front page"

    def test_in_place_list_field_appends(self):
        scores = Scores(hrefs=["/existing"])
        unmarshal(PAGE, scores)
        assert scores.hrefs == ["/existing", "/a", "/b"]

    def test_dataclass_record(self):
        counts = unmarshal(PAGE, Counts)
        assert counts == Counts(count=42, extra=[])

    def test_frozen_dataclass_record(self):
        assert unmarshal(PAGE, FrozenCounts).count == 42

    def test_plain_class_record(self):
        assert unmarshal(PAGE, Heading).text == "Front page"

    def test_plain_class_default_map_is_not_shared(self):
        """In-place decoding never writes into a class-level default."""
        first = unmarshal('<ul><li data-k="a">1</li></ul>', Table())
        second = unmarshal('<ul><li data-k="b">2</li></ul>', Table())
        assert first.table == {"a": "1"}
        assert second.table == {"b": "2"}
        assert Table.table == {}

    def test_plain_class_instance_map_is_updated(self):
        table = Table()
        held = table.table = {"pre": "0"}
        unmarshal('<ul><li data-k="a">1</li></ul>', table)
        assert table.table is held
        assert held == {"pre": "0", "a": "1"}

    def test_unmarshal_selection_from_subtree(self):
        first = Document.parse(PAGE).find("li.story").first()
        story = unmarshal_selection(first, Story)
        assert story.title == "Alpha"
        assert story.id == "101"


# =============================================================================
# Test: sequences
# =============================================================================


class TestSequences:
    def test_variable_sequences(self):
        scores = unmarshal(PAGE, Scores)
        assert scores.as_list == [10, 20]
        assert scores.as_tuple == (10, 20)
        assert scores.as_set == {"/a", "/b"}
        assert scores.hrefs == ["/a", "/b"]

    def test_fixed_tuple_exact_length(self):
        titles = unmarshal(PAGE, Titles)
        assert titles.pair == ("Alpha", "Beta")
        assert titles.mixed == ("10", 20)

    def test_fixed_tuple_length_mismatch(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, TooMany)
        inner = exc.value.__cause__
        assert inner.reason is Reason.ARRAY_LENGTH_MISMATCH
        assert inner.target == tuple[str, str, str]
        assert exc.value.path == ("triple",)

    def test_fixed_tuple_too_few_matches(self):
        doc = "<ul><li><a class='title'>only</a></li></ul>"
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(doc, Titles)
        assert exc.value.__cause__.reason is Reason.ARRAY_LENGTH_MISMATCH

    def test_root_list_of_scalars(self):
        doc = Document.parse(PAGE)
        assert unmarshal_selection(doc.find(".score"), list[int]) == [10, 20]

    def test_empty_selection_yields_empty_list(self):
        doc = Document.parse(PAGE)
        assert unmarshal_selection(doc.find("table"), list[str]) == []


# =============================================================================
# Test: scalars
# =============================================================================


class TestScalars:
    def test_root_scalar_is_document_text(self):
        assert unmarshal("<p> hi </p>", str) == "hi"

    def test_generic_is_string(self):
        assert unmarshal(PAGE, Generic).anything == "42"

    def test_invalid_bool(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, BadFlag)
        inner = exc.value.__cause__
        assert inner.reason is Reason.TYPE_CONVERSION
        assert inner.value == "yes"
        assert inner.target is bool

    def test_unsupported_scalar_type(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, Binary)
        assert exc.value.__cause__.value == "42"
        assert isinstance(exc.value.root_cause, TypeError)

    def test_nested_failure_path(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, BadScores)
        assert exc.value.path == ("stories", 0, "title")
        assert exc.value.reason is Reason.TYPE_CONVERSION
        assert "'Alpha'" in str(exc.value)
        assert isinstance(exc.value.root_cause, ValueError)

    @pytest.mark.parametrize("literal", ["1", "t", "T", "TRUE", "true", "True"])
    def test_true_literals(self, literal):
        assert unmarshal(f"<p>{literal}</p>", bool) is True

    @pytest.mark.parametrize("literal", ["0", "f", "F", "FALSE", "false", "False"])
    def test_false_literals(self, literal):
        assert unmarshal(f"<p>{literal}</p>", bool) is False

    @pytest.mark.parametrize("literal", ["1_000", " 42", "42 ", "\t7"])
    def test_int_rejects_separators_and_blanks(self, literal):
        with pytest.raises(ValueError):
            convert_literal(literal, int)

    @pytest.mark.parametrize("literal", ["1_000.5", " 0.5", "0.5\n"])
    def test_float_rejects_separators_and_blanks(self, literal):
        with pytest.raises(ValueError):
            convert_literal(literal, float)

    def test_signed_numbers(self):
        assert convert_literal("-12", int) == -12
        assert convert_literal("+1.5", float) == 1.5

    def test_untrimmed_attribute_is_not_a_number(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, SpacedCount)
        assert exc.value.__cause__.value == " 42"


# =============================================================================
# Test: custom decoders and raw nodes
# =============================================================================


class TestCustomDecoders:
    def test_custom_decoder_wins_over_scalar_annotation(self):
        rec = unmarshal(PAGE, WithCustom)
        assert rec.title.value == "ALPHABETA"
        assert rec.title.node_count == 2

    def test_optional_custom_decoder(self):
        assert unmarshal(PAGE, WithCustom).maybe.value == "FRONT PAGE"

    def test_unannotated_custom_decoder_gets_record_selection(self):
        whole = unmarshal(PAGE, WithCustom).whole
        assert whole.node_count == 1
        assert "FRONT PAGE" in whole.value

    def test_custom_decoder_at_root(self):
        shout = unmarshal("<p>quiet</p>", Shout)
        assert isinstance(shout, Shout)
        assert shout.value == "QUIET"

    def test_custom_decoder_instance_in_place(self):
        shout = Shout()
        assert unmarshal("<p>quiet</p>", shout) is shout
        assert shout.value == "QUIET"

    def test_custom_decoder_failure_is_wrapped(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, WithBroken)
        inner = exc.value.__cause__
        assert exc.value.path == ("broken",)
        assert inner.reason is Reason.CUSTOM_DECODER
        assert isinstance(inner.__cause__, ValueError)


class TestRawNodes:
    def test_raw_nodes_are_captured(self):
        raw = unmarshal(PAGE, Raw)
        assert len(raw.items) == 2
        assert all(isinstance(n, lxml.html.HtmlElement) for n in raw.items)
        assert [n.get("data-id") for n in raw.items] == ["101", "102"]

    def test_raw_nodes_append_in_place(self):
        marker = lxml.html.fragment_fromstring("<i>kept</i>")
        raw = Raw(items=[marker])
        unmarshal(PAGE, raw)
        assert raw.items[0] is marker
        assert len(raw.items) == 3


# =============================================================================
# Test: destination errors
# =============================================================================


class TestDestinations:
    def test_none_destination(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, None)
        assert exc.value.reason is Reason.NIL_VALUE

    def test_immutable_destination(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, "not a destination")
        assert exc.value.reason is Reason.NON_POINTER

    def test_untyped_container_instance(self):
        with pytest.raises(UnmarshalError) as exc:
            unmarshal(PAGE, [])
        assert exc.value.reason is Reason.NON_POINTER


# =============================================================================
# Test: selector evaluation cost
# =============================================================================


class Row(Record):
    name: Annotated[str, Query(".name")] = ""
    price: Annotated[int, Query(".price")] = 0


class Listing(Record):
    rows: Annotated[list[Row], Query("li.row")] = []


def _listing(n: int) -> str:
    rows = "".join(
        f'<li class="row"><b class="name">item {i}</b><i class="price">{i}</i></li>'
        for i in range(n)
    )
    return f"<html><body><ul>{rows}</ul></body></html>"


@pytest.fixture
def evaluations(monkeypatch) -> list[str]:
    """Record every whole-tree selector evaluation."""
    calls: list[str] = []
    compile_css = selection_module._compile

    def counting(css):
        xpath = compile_css(css)

        def run(root):
            calls.append(css)
            return xpath(root)

        return run

    monkeypatch.setattr(selection_module, "_compile", counting)
    return calls


class TestSelectorEvaluation:
    def test_each_selector_runs_once_per_document(self, evaluations):
        listing = unmarshal(_listing(300), Listing)
        assert len(listing.rows) == 300
        assert listing.rows[299].price == 299
        assert sorted(evaluations) == [".name", ".price", "li.row"]

    def test_cost_does_not_grow_with_rows(self, evaluations):
        unmarshal(_listing(10), Listing)
        small = len(evaluations)
        evaluations.clear()
        unmarshal(_listing(1000), Listing)
        assert len(evaluations) == small

    def test_separate_documents_do_not_share_matches(self, evaluations):
        first = unmarshal(_listing(2), Listing)
        second = unmarshal(_listing(3), Listing)
        assert [r.name for r in first.rows] == ["item 0", "item 1"]
        assert len(second.rows) == 3
        assert evaluations.count("li.row") == 2
