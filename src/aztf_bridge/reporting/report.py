"""Import report generation.

This module renders a session outcome as a console summary and as JSON or
Markdown report files.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from aztf_bridge.session.models import ItemSnapshot, SessionOutcome
from aztf_bridge.utils.logging import get_logger

from .colors import ImportColors, status_style

logger = get_logger(__name__)


def _item_entry(snapshot: ItemSnapshot) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "resource_id": snapshot.cloud_id,
        "target_address": snapshot.target_address,
        "status": snapshot.status.value,
    }
    if snapshot.is_recommended:
        entry["recommended"] = True
    error = snapshot.import_error or snapshot.validation_error
    if error:
        entry["error"] = error
    return entry


class ImportReport:
    """Report of one import session."""

    def __init__(self, outcome: SessionOutcome):
        self.outcome = outcome
        self.generated_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_version": "1.0",
            "generated_at": self.generated_at.isoformat(),
            "mapping_file": str(self.outcome.mapping_file) if self.outcome.mapping_file else None,
            "fatal_error": self.outcome.fatal_error,
            "counts": self.outcome.counts,
            "imported": [_item_entry(s) for s in self.outcome.imported],
            "skipped": [_item_entry(s) for s in self.outcome.skipped],
            "errored": [_item_entry(s) for s in self.outcome.errored],
            "unresolved": [_item_entry(s) for s in self.outcome.unresolved],
        }

    def generate_json(self, output_path: str | Path | None = None) -> str:
        """Generate JSON report.

        Args:
            output_path: Optional path to save report

        Returns:
            JSON report as string
        """
        json_str = json.dumps(self.to_dict(), indent=2, default=str)
        if output_path:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            Path(output_path).write_text(json_str)
            logger.info("json_report_saved", path=str(output_path))
        return json_str

    def generate_markdown(self, output_path: str | Path | None = None) -> str:
        """Generate Markdown report.

        Args:
            output_path: Optional path to save report

        Returns:
            Markdown report as string
        """
        counts = self.outcome.counts
        lines = [
            "# Terraform Import Report",
            "",
            f"**Generated:** {self.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}  ",
            f"**Mapping file:** `{self.outcome.mapping_file}`  ",
            "",
            "| Status | Count |",
            "|--------|------:|",
        ]
        lines.extend(f"| {name.title()} | {count:,} |" for name, count in counts.items())
        lines.append("")

        if self.outcome.fatal_error:
            lines.extend(["## Fatal error", "", f"`{self.outcome.fatal_error}`", ""])

        if self.outcome.errored:
            lines.extend(["## Errors", ""])
            for snapshot in self.outcome.errored:
                lines.append(f"- `{snapshot.target_address}`: {snapshot.import_error}")
            lines.append("")

        markdown = "\n".join(lines)
        if output_path:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            Path(output_path).write_text(markdown)
            logger.info("markdown_report_saved", path=str(output_path))
        return markdown


def print_summary(outcome: SessionOutcome, console: Console | None = None) -> None:
    """Print the outcome of a session as a table."""
    console = console or Console()

    table = Table(title="Import Summary", header_style=ImportColors.LABEL)
    table.add_column("Status")
    table.add_column("Address", style=ImportColors.ADDRESS, overflow="fold")
    table.add_column("Resource ID", overflow="fold")
    table.add_column("Error", style=ImportColors.ERROR, overflow="fold")

    for group in (outcome.imported, outcome.skipped, outcome.errored, outcome.unresolved):
        for snapshot in group:
            table.add_row(
                f"[{status_style(snapshot.status)}]{snapshot.status.value}[/]",
                snapshot.target_address or "-",
                snapshot.cloud_id,
                snapshot.import_error or snapshot.validation_error or "",
            )

    if outcome.imported or outcome.skipped or outcome.errored or outcome.unresolved:
        console.print(table)

    counts = outcome.counts
    console.print(
        f"[{ImportColors.SUCCESS}]Imported: {counts['imported']}[/]  "
        f"[{ImportColors.WARNING}]Skipped: {counts['skipped']}[/]  "
        f"[{ImportColors.ERROR}]Errored: {counts['errored']}[/]  "
        f"[{ImportColors.PENDING}]Unresolved: {counts['unresolved']}[/]"
    )
    if outcome.mapping_file:
        console.print(f"Mapping file: [bold]{outcome.mapping_file}[/bold]")
    if outcome.fatal_error:
        console.print(f"[{ImportColors.ERROR}]Fatal: {outcome.fatal_error}[/]")
