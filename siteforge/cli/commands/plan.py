"""``siteforge plan SITE_DIR`` — show what a deployment would change.

Builds the manifest from a local site directory and diffs it against a
published manifest snapshot (or against nothing, for a new site).
No network access is needed.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from siteforge.core.diff_engine import compute_site_diff, has_update
from siteforge.core.manifest_builder import ManifestValidationError, build_site_manifest
from siteforge.core.site_loader import SiteLoadError, load_site_directory
from siteforge.models.manifest import SiteManifest
from siteforge.monitor.renderer import DeployRenderer

console = Console()


def plan_cmd(
    site_dir: Path = typer.Argument(
        ...,
        help="Directory containing the built site.",
    ),
    settings: Path = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to ws-resources.json (defaults to SITE_DIR/ws-resources.json).",
    ),
    current: Path = typer.Option(
        None,
        "--current",
        "-c",
        help="JSON snapshot of the published manifest. Omit for a new site.",
    ),
    show_unchanged: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Also list unchanged resources.",
    ),
) -> None:
    """Diff a local site against its published manifest."""
    try:
        assets, site_settings = load_site_directory(site_dir, settings)
        next_manifest = build_site_manifest(assets, site_settings)
    except (SiteLoadError, ManifestValidationError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    published = SiteManifest.empty()
    if current is not None:
        try:
            published = SiteManifest.model_validate_json(current.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            console.print(f"[bold red]Cannot read snapshot {current}:[/bold red] {exc}")
            raise typer.Exit(code=1) from exc

    diff = compute_site_diff(next_manifest, published)
    DeployRenderer(console).print_diff(diff, show_unchanged=show_unchanged)

    if has_update(diff):
        console.print("[bold]Changes pending.[/bold]")
    else:
        console.print("[green]Site is up to date.[/green]")
