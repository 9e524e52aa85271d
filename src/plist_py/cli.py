"""Click CLI for inspecting and converting property lists."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

import click

from plist_py.decoding.session import Decoder
from plist_py.errors import EndOfInput, PlistError
from plist_py.serialization import get_serializer
from plist_py.types.node import Node, PlistKind


def print_error(message: str, use_json: bool = False) -> None:
    """Print an error message, respecting output mode."""
    if use_json:
        click.echo(json.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)


def describe_node(node: Node) -> str:
    """One-line summary of a document root, e.g. ``dict (5 entries)``."""
    kind = node.kind.name.lower()
    if node.kind == PlistKind.DICT:
        return f"{kind} ({len(node.value)} entries)"
    if node.kind == PlistKind.ARRAY:
        return f"{kind} ({len(node.value)} items)"
    if node.kind == PlistKind.DATA:
        return f"{kind} ({len(node.value)} bytes)"
    return kind


@click.group()
@click.option(
    "--json",
    "use_json",
    is_flag=True,
    default=False,
    help="Report errors and info as JSON.",
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.pass_context
def cli(ctx: click.Context, use_json: bool, verbose: bool) -> None:
    """Property list tools powered by plist-py."""
    ctx.ensure_object(dict)
    ctx.obj["use_json"] = use_json

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("file", type=click.File("rb"))
@click.option("--pretty", is_flag=True, default=False, help="Indent JSON output.")
@click.option("--sort-keys", is_flag=True, default=False, help="Sort dict keys.")
@click.pass_context
def dump(ctx: click.Context, file: IO[bytes], pretty: bool, sort_keys: bool) -> None:
    """Print every plist document in FILE as JSON.

    FILE may be ``-`` to read from standard input.
    """
    use_json: bool = ctx.obj["use_json"]
    serializer = get_serializer("json", pretty=pretty, sort_keys=sort_keys)
    try:
        for value in Decoder(file):
            click.echo(serializer.encode(value).decode("utf-8"))
    except PlistError as e:
        print_error(str(e), use_json)
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.File("rb"))
@click.pass_context
def info(ctx: click.Context, file: IO[bytes]) -> None:
    """Summarise the format and root value of each document in FILE."""
    use_json: bool = ctx.obj["use_json"]
    decoder = Decoder(file)
    documents: list[dict[str, Any]] = []
    try:
        while True:
            try:
                node = decoder.next_node()
            except EndOfInput:
                break
            fmt = decoder.last_format
            documents.append(
                {
                    "index": len(documents),
                    "format": fmt.name.lower() if fmt is not None else None,
                    "root": describe_node(node),
                }
            )
    except PlistError as e:
        print_error(str(e), use_json)
        sys.exit(1)

    if use_json:
        click.echo(json.dumps(documents, indent=2))
        return
    for doc in documents:
        click.echo(f"  document {doc['index']}  {doc['format']:<6}  {doc['root']}")


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
