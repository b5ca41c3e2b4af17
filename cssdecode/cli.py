"""cssdecode CLI - decode HTML documents into annotated models.

Commands:
    cssdecode decode <module:Model> <file>   Decode a document and print JSON
    cssdecode tag <annotation>               Show how an annotation is parsed
"""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Annotated, Any

import pydantic_core
import typer
from lxml import etree

from cssdecode.decoder import Decoder
from cssdecode.exceptions import UnmarshalError
from cssdecode.tag import Tag
from cssdecode.valuefunc import describe, resolve

app = typer.Typer(
    name="cssdecode",
    help="Decode HTML into typed models with CSS selector annotations",
    no_args_is_help=True,
)


def _load_target(target: str) -> Any:
    """Load a destination type from ``module:Attr``.

    The attribute may be a record class or any other importable type hint,
    e.g. a module-level alias ``Stories = list[Story]``.
    """
    if ":" not in target:
        raise typer.BadParameter(f"Expected module:Name, got '{target}'")
    module_name, attr_name = target.rsplit(":", 1)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {e}")

    if not hasattr(module, attr_name):
        raise typer.BadParameter(f"Module '{module_name}' has no attribute '{attr_name}'")
    return getattr(module, attr_name)


def _node_json(value: Any) -> Any:
    """JSON fallback: serialize raw lxml nodes as markup."""
    if isinstance(value, etree._Element):
        return etree.tostring(value, method="html", encoding="unicode", with_tail=False)
    return repr(value)


@app.command("decode")
def decode_file(
    target: Annotated[
        str,
        typer.Argument(help="Destination type to decode into (e.g., 'myapp.models:FrontPage')"),
    ],
    path: Annotated[
        Path,
        typer.Argument(help="HTML file to decode", exists=True, dir_okay=False),
    ],
    indent: Annotated[
        int,
        typer.Option("--indent", "-i", help="JSON indentation (0 for compact output)"),
    ] = 2,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log decoding decisions to stderr"),
    ] = False,
):
    """Decode an HTML file and print the result as JSON.

    Examples:
        cssdecode decode examples.hacker_news:FrontPage page.html
        cssdecode decode myapp.models:Listing listing.html -i 0
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    dest = _load_target(target)
    try:
        value = Decoder(path).decode(dest)
    except UnmarshalError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except (OSError, ValueError, etree.LxmlError) as e:
        typer.echo(f"Error: cannot read {path}: {e}", err=True)
        raise typer.Exit(1)

    out = pydantic_core.to_json(value, indent=indent or None, fallback=_node_json)
    typer.echo(out.decode())


@app.command("tag")
def show_tag(
    annotation: Annotated[
        str,
        typer.Argument(help="Annotation string, e.g. '!parent,li,[href]'"),
    ],
):
    """Print the directives, selector slots and value function of an annotation.

    Examples:
        cssdecode tag 'ul.links,[href]'
        cssdecode tag '!parent,dl,dt,dd'
    """
    tag = Tag.parse(annotation)
    typer.echo(f"directives: {', '.join(tag.directives) or '-'}")
    for i, sel in enumerate(tag.selectors):
        typer.echo(f"slot {i}: {sel or '(empty)'}")
    typer.echo(f"value: {describe(resolve(tag))}")
    popped = tag.pop()
    if popped is not tag:
        typer.echo(f"next level: {popped.raw}")


def main():
    app()


if __name__ == "__main__":
    main()
