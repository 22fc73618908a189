"""Interactive resource list for the terminal.

A prompt-driven front end over ``ImportListModel``: the list is printed as a
table, typed commands become UI events, and the model calls the session
controller. Each ``__call__`` is one editing round; it returns True when the
user commits the batch for import and False when they quit.
"""

import asyncio

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from aztf_bridge.reporting.colors import ImportColors, status_style
from aztf_bridge.session.controller import SessionController
from aztf_bridge.session.editor import (
    Commit,
    Enter,
    Escape,
    FocusState,
    ImportListModel,
    Input,
    Quit,
    Select,
    Skip,
)

HELP_TEXT = (
    "[bold]<n>[/bold] edit item n  "
    "[bold]s <n>[/bold] skip item n  "
    "[bold]c[/bold] import validated items  "
    "[bold]q[/bold] quit"
)

EDIT_HELP = "Type a resource type, '-' to skip the resource, or 'esc' to cancel"


class RichImportList:
    """Prompt-based interactive front end."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.model: ImportListModel | None = None

    async def __call__(self, controller: SessionController) -> bool:
        if self.model is None or self.model.controller is not controller:
            self.model = ImportListModel(controller)
        model = self.model
        model.reset_round()

        while not model.finished:
            self.render(model)
            # prompts block, so they run off the event loop
            command = await asyncio.to_thread(Prompt.ask, "Command", console=self.console)
            command = command.strip()
            await self.handle_command(model, command)

        return model.committed

    def _cloud_id_at(self, model: ImportListModel, position: str) -> str | None:
        items = model.controller.session.items
        if not position.isdigit() or not 1 <= int(position) <= len(items):
            model.status_message = f"No item {position}"
            return None
        return items[int(position) - 1].cloud_id

    async def handle_command(self, model: ImportListModel, command: str) -> None:
        """Translate one typed command into UI events."""
        parts = command.split()
        if not parts or parts[0] in ("?", "h", "help"):
            model.status_message = HELP_TEXT
        elif parts[0] == "c":
            await model.dispatch(Commit())
        elif parts[0] == "q":
            await model.dispatch(Quit())
        elif parts[0] == "s" and len(parts) == 2:
            cloud_id = self._cloud_id_at(model, parts[1])
            if cloud_id:
                await model.dispatch(Skip(cloud_id))
        elif len(parts) == 1 and parts[0].isdigit():
            cloud_id = self._cloud_id_at(model, parts[0])
            if cloud_id:
                await model.dispatch(Select(cloud_id))
                await model.dispatch(Enter())
                if model.focus == FocusState.FOCUSED:
                    await self.edit(model)
        else:
            model.status_message = f"Unknown command {command!r}. {HELP_TEXT}"

    async def edit(self, model: ImportListModel) -> None:
        """Prompt for the type of the focused item."""
        self.console.print(f"[{ImportColors.INFO}]{EDIT_HELP}[/]")
        value = await asyncio.to_thread(
            Prompt.ask,
            f"Type for {model.selected}",
            console=self.console,
            default=model.buffer,
            show_default=bool(model.buffer),
        )
        value = value.strip()

        if value == "esc":
            await model.dispatch(Escape())
            return
        await model.dispatch(Input("" if value == "-" else value))
        await model.dispatch(Enter())

    def render(self, model: ImportListModel) -> None:
        table = Table(header_style=ImportColors.LABEL, expand=True)
        table.add_column("#", justify="right")
        table.add_column("Status")
        table.add_column("Type", style=ImportColors.ADDRESS)
        table.add_column("Name")
        table.add_column("Resource ID", overflow="fold")
        table.add_column("Message", style=ImportColors.ERROR, overflow="fold")

        for position, snapshot in enumerate(model.controller.session.snapshots(), 1):
            resource_type = snapshot.target_type or "-"
            if snapshot.is_recommended:
                resource_type += " (recommended)"
            table.add_row(
                str(position),
                f"[{status_style(snapshot.status)}]{snapshot.status.value}[/]",
                resource_type,
                snapshot.target_name,
                snapshot.cloud_id,
                snapshot.import_error or snapshot.validation_error or "",
            )

        self.console.print(table)
        if model.status_message:
            self.console.print(model.status_message)
