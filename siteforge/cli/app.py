"""Main Typer application — imports and registers all CLI commands.

Entry point: ``siteforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from siteforge.cli.commands.inspect import content_type_cmd, patch_id_cmd
from siteforge.cli.commands.plan import plan_cmd
from siteforge.config import config

app = typer.Typer(
    name="siteforge",
    help="Siteforge: incremental static-site deployment to a blob network and ledger.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="plan", help="Show what deploying a site directory would change.")(plan_cmd)
app.command(name="patch-id", help="Decode a quilt patch locator.")(patch_id_cmd)
app.command(name="content-type", help="Show the content type for a file path.")(content_type_cmd)


def configure_logging(level: str | None = None) -> None:
    """Route library logging through Rich at the configured level."""
    logging.basicConfig(
        level=(level or config.log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
