"""Rich terminal renderer for site diffs and deployment progress.

Color scheme
------------
- green     : created / update
- red       : deleted
- dim       : unchanged / noop
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from siteforge.models.deployment import (
    CertifiedBlob,
    ProgressEvent,
    ProgressStatus,
    RecordedTransaction,
)
from siteforge.models.diff import BlockOp, ResourceOpKind, SiteManifestDiff

if TYPE_CHECKING:
    from siteforge.core.deploy_flow import DeploymentFlow


# ---------------------------------------------------------------------------
# Op -> Rich markup mapping
# ---------------------------------------------------------------------------

_RESOURCE_OP_MARKUP: dict[ResourceOpKind, str] = {
    ResourceOpKind.CREATED: "[green]created[/green]",
    ResourceOpKind.DELETED: "[red]deleted[/red]",
    ResourceOpKind.UNCHANGED: "[dim]unchanged[/dim]",
}

_BLOCK_OP_MARKUP: dict[BlockOp, str] = {
    BlockOp.UPDATE: "[green]update[/green]",
    BlockOp.NOOP: "[dim]noop[/dim]",
}

_PROGRESS_MARKUP: dict[ProgressStatus, str] = {
    ProgressStatus.STARTED: "[yellow]STARTED[/yellow]",
    ProgressStatus.COMPLETED: "[green]COMPLETED[/green]",
    ProgressStatus.FAILED: "[bold red]FAILED[/bold red]",
}


class DeployRenderer:
    """Renders diffs, transaction logs and progress events.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def render_diff(self, diff: SiteManifestDiff, *, show_unchanged: bool = False) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Op", min_width=10, justify="center")
        table.add_column("Path", min_width=25)
        table.add_column("Headers", justify="right", width=8)

        counts = {op: 0 for op in ResourceOpKind}
        for change in sorted(diff.resources, key=lambda c: (c.op.value, c.data.path)):
            counts[change.op] += 1
            if change.op == ResourceOpKind.UNCHANGED and not show_unchanged:
                continue
            table.add_row(
                _RESOURCE_OP_MARKUP[change.op],
                change.data.path,
                str(len(change.data.headers)),
            )

        summary = "  |  ".join(
            [
                f"[bold]Created:[/bold] {counts[ResourceOpKind.CREATED]}",
                f"[bold]Deleted:[/bold] {counts[ResourceOpKind.DELETED]}",
                f"[bold]Unchanged:[/bold] {counts[ResourceOpKind.UNCHANGED]}",
                f"[bold]Routes:[/bold] {_BLOCK_OP_MARKUP[diff.routes.op]}",
                f"[bold]Metadata:[/bold] {_BLOCK_OP_MARKUP[diff.metadata.op]}",
                f"[bold]Name:[/bold] {_BLOCK_OP_MARKUP[diff.site_name.op]}",
            ]
        )

        parts: list = [table, Text(""), Text.from_markup(summary)]
        if diff.routes.op == BlockOp.UPDATE:
            routes = diff.routes.data or []
            if routes:
                parts.append(Text(""))
                for route in routes:
                    parts.append(Text(f"  {route.route_path} -> {route.target_path}"))
            else:
                parts.append(Text.from_markup("[dim]  all routes removed[/dim]"))

        return Panel(Group(*parts), title="[bold]Site diff[/bold]", border_style="blue")

    def print_diff(self, diff: SiteManifestDiff, *, show_unchanged: bool = False) -> None:
        self.console.print(self.render_diff(diff, show_unchanged=show_unchanged))

    # ------------------------------------------------------------------
    # Transactions and certified blobs
    # ------------------------------------------------------------------

    def render_transactions(self, transactions: list[RecordedTransaction]) -> Table:
        table = Table(title="Transactions", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", justify="right", width=4)
        table.add_column("Digest", style="cyan")
        table.add_column("Description")
        table.add_column("Time", style="dim")
        for i, tx in enumerate(transactions, start=1):
            table.add_row(
                str(i),
                tx.digest,
                tx.description,
                tx.timestamp.strftime("%H:%M:%S"),
            )
        return table

    def render_certified(self, blobs: list[CertifiedBlob]) -> Table:
        table = Table(title="Certified files", show_header=True, header_style="bold cyan")
        table.add_column("Identifier")
        table.add_column("Blob id", style="cyan")
        table.add_column("Patch id", style="dim")
        table.add_column("End epoch", justify="right")
        for blob in blobs:
            table.add_row(blob.identifier, blob.blob_id, blob.patch_id, str(blob.end_epoch))
        return table

    # ------------------------------------------------------------------
    # Live progress
    # ------------------------------------------------------------------

    def print_progress(self, event: ProgressEvent) -> None:
        status = _PROGRESS_MARKUP[event.status]
        self.console.print(f"{status} [bold]{event.phase.value}[/bold] {event.message}")

    def print_transaction(self, tx: RecordedTransaction) -> None:
        self.console.print(f"[cyan]tx[/cyan] {tx.digest}  {tx.description}")

    def attach(self, flow: DeploymentFlow) -> None:
        """Print the flow's progress and transaction events as they happen."""
        flow.events.on_progress(self.print_progress)
        flow.events.on_transaction(self.print_transaction)
