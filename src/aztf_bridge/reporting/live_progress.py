"""Live progress display using Rich library.

This module provides the progress display for non-interactive import runs.
The display subscribes to the session controller's transition events and
keeps the latest snapshot of every item keyed by cloud ID, since imports
complete in any order.

Design notes:
    1. Single Live display, created once and only updated afterwards
    2. Console logging (RichHandler) is detached while Live is running and
       restored on stop; file logging is left alone
"""

import logging
import time

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from aztf_bridge.session.models import ImportStatus, ItemSnapshot, TransitionEvent

from .colors import ImportColors, status_style

SCHEDULED_STATUSES = frozenset(
    {ImportStatus.VALIDATED, ImportStatus.IMPORTING, ImportStatus.IMPORTED, ImportStatus.ERRORED}
)
DONE_STATUSES = frozenset({ImportStatus.IMPORTED, ImportStatus.ERRORED})


class ImportProgressDisplay:
    """Live progress display for import runs.

    Example:
        >>> with ImportProgressDisplay() as display:
        >>>     controller.subscribe(display.on_transition)
        >>>     await controller.run()
    """

    def __init__(self, enabled: bool = True, title: str = "Terraform Import", max_rows: int = 15):
        """Initialize progress display.

        Args:
            enabled: Whether to show live progress (set False for CI/CD)
            title: Display title for the progress panel
            max_rows: Most recent items shown in the panel
        """
        self.enabled = enabled
        self.title = title
        self.max_rows = max_rows

        # State is tracked even when disabled so counts stay available
        self.items: dict[str, ItemSnapshot] = {}
        self._updated_at: dict[str, float] = {}
        self._original_log_handlers: list[logging.Handler] = []
        self._live_started = False
        self._task: TaskID | None = None

        if not self.enabled:
            return

        self.console = Console(stderr=True)
        self.progress = Progress(
            SpinnerColumn(style=ImportColors.SPINNER),
            TextColumn("[bold]Imports", style=ImportColors.HEADER),
            BarColumn(bar_width=None, style=ImportColors.PROGRESS),
            MofNCompleteColumn(),
            TextColumn("{task.fields[metrics]}"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.live = Live(
            self._render(), console=self.console, refresh_per_second=4, transient=False
        )

    @property
    def scheduled(self) -> int:
        return sum(1 for s in self.items.values() if s.status in SCHEDULED_STATUSES)

    @property
    def done(self) -> int:
        return sum(1 for s in self.items.values() if s.status in DONE_STATUSES)

    @property
    def failed(self) -> int:
        return sum(1 for s in self.items.values() if s.status == ImportStatus.ERRORED)

    def start(self) -> None:
        """Start the live display, detaching console logging."""
        if not self.enabled or self._live_started:
            return

        root_logger = logging.getLogger()
        self._original_log_handlers = root_logger.handlers[:]
        for handler in root_logger.handlers[:]:
            if "RichHandler" in handler.__class__.__name__:
                root_logger.removeHandler(handler)

        self._task = self.progress.add_task("imports", total=0, metrics="")
        self.live.start()
        self._live_started = True

    def stop(self) -> None:
        """Stop the live display and restore console logging."""
        if not self.enabled:
            return
        if self._live_started:
            self.live.update(self._render(), refresh=True)
            self.live.stop()
            self._live_started = False

        if self._original_log_handlers:
            root_logger = logging.getLogger()
            for handler in self._original_log_handlers:
                if handler not in root_logger.handlers:
                    root_logger.addHandler(handler)
            self._original_log_handlers = []

    def on_transition(self, event: TransitionEvent) -> None:
        """Transition listener; refreshes the item's row."""
        self.items[event.cloud_id] = event.snapshot
        self._updated_at[event.cloud_id] = time.time()

        if not self.enabled or not self._live_started:
            return
        if self._task is not None:
            self.progress.update(
                self._task,
                total=self.scheduled,
                completed=self.done,
                metrics=f"[{ImportColors.ERROR}]Err:{self.failed}[/{ImportColors.ERROR}]",
            )
        self.live.update(self._render())

    def _render(self) -> Group:
        table = Table(show_header=True, header_style=ImportColors.LABEL, expand=True, box=None)
        table.add_column("Status", width=10)
        table.add_column("Address", style=ImportColors.ADDRESS, overflow="fold")
        table.add_column("Resource ID", overflow="fold")

        recent = sorted(self.items, key=lambda k: self._updated_at[k], reverse=True)
        for cloud_id in recent[: self.max_rows]:
            snapshot = self.items[cloud_id]
            table.add_row(
                f"[{status_style(snapshot.status)}]{snapshot.status.value}[/]",
                snapshot.target_address or "-",
                cloud_id,
            )

        return Group(
            Panel(table, title=self.title, title_align="left", border_style=ImportColors.BORDER),
            self.progress,
        )

    def __enter__(self) -> "ImportProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
