"""
Mapping file commands.

Inspect a resource mapping file written by an import session.
"""

from collections import Counter
from pathlib import Path

import click
from rich.table import Table

from aztf_bridge.cli.context import BridgeContext
from aztf_bridge.cli.decorators import handle_errors, pass_context
from aztf_bridge.cli.utils import console
from aztf_bridge.reporting.colors import ImportColors, status_style
from aztf_bridge.session.models import ImportStatus
from aztf_bridge.session.state import read_mapping_file


@click.group(name="mapping")
def mapping() -> None:
    """Inspect resource mapping files."""
    pass


@mapping.command(name="show")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in ImportStatus]),
    multiple=True,
    help="Only show records with this status (repeatable)",
)
@pass_context
@handle_errors
def show_mapping(ctx: BridgeContext, path: Path, status_filter: tuple[str, ...]) -> None:
    """Show the records of a mapping file and a count per status."""
    records = read_mapping_file(path)

    table = Table(title=str(path), header_style=ImportColors.LABEL, expand=True)
    table.add_column("Status")
    table.add_column("Address", style=ImportColors.ADDRESS, overflow="fold")
    table.add_column("Resource ID", overflow="fold")
    table.add_column("Error", style=ImportColors.ERROR, overflow="fold")

    counts: Counter[str] = Counter()
    for cloud_id, record in records.items():
        status = record["status"]
        counts[status] += 1
        if status_filter and status not in status_filter:
            continue
        address = record.get("target_address") or (
            f"{record['resource_type']}.{record['resource_name']}"
            if record["resource_type"]
            else "-"
        )
        table.add_row(
            f"[{status_style(ImportStatus(status))}]{status}[/]",
            address,
            cloud_id,
            record.get("error") or "",
        )

    console.print(table)
    summary = "  ".join(f"{status}: {count}" for status, count in sorted(counts.items()))
    console.print(f"[bold]{len(records)} record(s)[/bold]  {summary}")
