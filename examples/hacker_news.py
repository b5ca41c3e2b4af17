"""Hacker News front page example.

Demonstrates:
- Records with per-field selector annotations
- Value selectors for attributes (``[href]``) and directives (``!next``)
- A custom decoder (``Age``) taking over from the annotation
- A map keyed by attribute, with values read from the key node's subtree
- Raw node capture for anything left to post-process

Usage:
    # Decode the bundled sample page and print a summary
    uv run python examples/hacker_news.py

    # Decode a saved copy of the real front page
    uv run python examples/hacker_news.py page.html

    # Same thing through the CLI, as JSON
    uv run cssdecode decode examples.hacker_news:FrontPage page.html
"""

from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import Annotated

from cssdecode import Decoder, Nodes, Query, Record, node_selector, unmarshal


# =============================================================================
# Sample page
# =============================================================================

SAMPLE = """
<html><body>
<table id="hnmain">
  <tr><td><span class="pagetop"><b class="hnname">Hacker News</b></span></td></tr>
  <tr><td><table class="itemlist">
    <tr class="athing" id="4101">
      <td class="title"><span class="rank">1.</span></td>
      <td class="title"><span class="titleline">
        <a href="https://example.com/lxml">Parsing HTML with lxml</a>
        <span class="sitebit"><span class="sitestr">example.com</span></span>
      </span></td>
    </tr>
    <tr>
      <td class="subtext">
        <span class="score" id="score_4101">212 points</span>
        by <a class="hnuser" href="user?id=ada">ada</a>
        <span class="age" title="2024-05-01T09:30:00"><a href="item?id=4101">3 hours ago</a></span>
      </td>
    </tr>
    <tr class="athing" id="4102">
      <td class="title"><span class="rank">2.</span></td>
      <td class="title"><span class="titleline">
        <a href="item?id=4102">Ask HN: Favourite CSS selector tricks?</a>
      </span></td>
    </tr>
    <tr>
      <td class="subtext">
        <span class="score" id="score_4102">48 points</span>
        by <a class="hnuser" href="user?id=bob">bob</a>
        <span class="age" title="2024-05-01T11:05:00"><a href="item?id=4102">1 hour ago</a></span>
      </td>
    </tr>
  </table></td></tr>
</table>
</body></html>
"""


# =============================================================================
# Custom decoders
# =============================================================================

_AGE = re.compile(r"(\d+)\s+(minute|hour|day)s?\s+ago")
_MINUTES = {"minute": 1, "hour": 60, "day": 60 * 24}


class Age:
    """'3 hours ago' as a number of minutes, plus the exact timestamp."""

    def __init__(self):
        self.minutes = 0
        self.timestamp = ""

    def unmarshal_html(self, nodes):
        sel = node_selector(nodes)
        self.timestamp = sel.attr("title")
        m = _AGE.search(sel.text())
        if m is None:
            raise ValueError(f"unrecognised age {sel.text().strip()!r}")
        self.minutes = int(m.group(1)) * _MINUTES[m.group(2)]

    def __repr__(self):
        return f"Age({self.minutes} min)"


# =============================================================================
# Records
# =============================================================================


class Story(Record):
    id: Annotated[str, Query(",[id]")] = ""
    rank: Annotated[str, Query(".rank")] = ""
    title: Annotated[str, Query(".titleline > a")] = ""
    link: Annotated[str, Query(".titleline > a,[href]")] = ""
    site: Annotated[str, Query(".sitestr")] = ""
    # The subtext row is the next sibling of the story row.
    score: Annotated[str, Query("!next,.score")] = ""
    user: Annotated[str, Query("!next,.hnuser")] = ""
    age: Annotated[Age, Query("!next,.age")] = None


class Headline(Record):
    title: Annotated[str, Query(".titleline > a")] = ""


class FrontPage(Record):
    name: Annotated[str, Query(".hnname")] = ""
    stories: Annotated[list[Story], Query("tr.athing")] = []
    # story id -> headline, keyed on the id attribute of each story row
    headlines: Annotated[dict[str, Headline], Query("table.itemlist,[id]")] = {}
    raw_rows: Annotated[Nodes, Query("table.itemlist tr")] = []


# =============================================================================
# Main
# =============================================================================


def main():
    parser = argparse.ArgumentParser(description="Decode a Hacker News front page")
    parser.add_argument("page", nargs="?", help="saved front page HTML (default: bundled sample)")
    args = parser.parse_args()

    if args.page:
        page = Decoder(Path(args.page)).decode(FrontPage)
    else:
        page = unmarshal(SAMPLE, FrontPage)

    print(f"{page.name}: {len(page.stories)} stories, {len(page.raw_rows)} rows")
    for story in page.stories:
        print(f"{story.rank:>4} {story.title} ({story.site or 'self'})")
        print(f"     {story.score} by {story.user}, {story.age.minutes} min ago -> {story.link}")


if __name__ == "__main__":
    main()
