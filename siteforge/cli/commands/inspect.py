"""Small decoding helpers: ``siteforge patch-id`` and ``siteforge content-type``."""

from __future__ import annotations

import typer
from rich.console import Console

from siteforge.core.content_type import content_type_from_path
from siteforge.core.patch_id import FormatError, decode_patch_id

console = Console()


def patch_id_cmd(
    locator: str = typer.Argument(..., help="Quilt patch locator (URL-safe base64)."),
) -> None:
    """Decode a quilt patch locator into its on-chain patch reference."""
    try:
        console.print(decode_patch_id(locator))
    except FormatError as exc:
        console.print(f"[bold red]Invalid patch id:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc


def content_type_cmd(
    path: str = typer.Argument(..., help="File path or name."),
) -> None:
    """Print the content type inferred from a file extension."""
    console.print(content_type_from_path(path))
