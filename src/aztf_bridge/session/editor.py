"""Interactive list model.

UI front ends translate key presses or typed commands into the events
below and hand them to ``ImportListModel.dispatch``. The model tracks which
item is selected and whether its editor has focus, and calls the matching
controller operation. It never touches items itself.
"""

from dataclasses import dataclass
from enum import Enum

from aztf_bridge.client.exceptions import BridgeError
from aztf_bridge.session.controller import SessionController
from aztf_bridge.session.models import ImportStatus


class FocusState(str, Enum):
    UNFOCUSED = "unfocused"
    FOCUSED = "focused"


@dataclass(frozen=True)
class Select:
    cloud_id: str


@dataclass(frozen=True)
class Input:
    text: str


@dataclass(frozen=True)
class Enter:
    pass


@dataclass(frozen=True)
class Escape:
    pass


@dataclass(frozen=True)
class Skip:
    cloud_id: str


@dataclass(frozen=True)
class Commit:
    pass


@dataclass(frozen=True)
class Quit:
    pass


UIEvent = Select | Input | Enter | Escape | Skip | Commit | Quit


class ImportListModel:
    """Selection and focus state of the interactive resource list."""

    def __init__(self, controller: SessionController):
        self.controller = controller
        self.focus = FocusState.UNFOCUSED
        self.selected: str | None = None
        self.buffer = ""
        self.status_message = ""
        self.committed = False
        self.quit = False

    @property
    def finished(self) -> bool:
        """Whether the current round is over (committed or quit)."""
        return self.committed or self.quit

    def reset_round(self) -> None:
        """Prepare for another editing round after a batch was imported."""
        self.committed = False
        self.status_message = ""

    async def dispatch(self, event: UIEvent) -> None:
        """Route one UI event.

        Errors raised by controller operations are turned into the status
        message rather than propagated, so the user can correct them.
        """
        try:
            if self.focus == FocusState.FOCUSED:
                await self._dispatch_focused(event)
            else:
                await self._dispatch_unfocused(event)
        except BridgeError as e:
            self.status_message = str(e)

    async def _dispatch_unfocused(self, event: UIEvent) -> None:
        if isinstance(event, Select):
            if event.cloud_id not in self.controller.session:
                self.status_message = f"Unknown resource {event.cloud_id}"
                return
            self.selected = event.cloud_id
            self.status_message = ""
        elif isinstance(event, Enter):
            if self.selected is None:
                self.status_message = "No resource selected"
                return
            snapshot = await self.controller.begin_edit(self.selected)
            self.buffer = snapshot.target_type
            self.focus = FocusState.FOCUSED
            self.status_message = ""
        elif isinstance(event, Skip):
            if event.cloud_id not in self.controller.session:
                self.status_message = f"Unknown resource {event.cloud_id}"
                return
            await self.controller.skip(event.cloud_id)
            self.status_message = f"Skipped {event.cloud_id}"
        elif isinstance(event, Escape):
            self.selected = None
        elif isinstance(event, Commit):
            self.committed = True
            batch = self.controller.session.by_status(
                ImportStatus.VALIDATED, ImportStatus.RECOMMENDED
            )
            self.status_message = f"Importing {len(batch)} resource(s)"
        elif isinstance(event, Quit):
            self.quit = True
        elif isinstance(event, Input):
            self.status_message = "Select a resource before typing a type"

    async def _dispatch_focused(self, event: UIEvent) -> None:
        assert self.selected is not None
        if isinstance(event, Input):
            self.buffer = event.text
        elif isinstance(event, Enter):
            snapshot = self.controller.confirm_edit(self.selected, self.buffer)
            self.focus = FocusState.UNFOCUSED
            if snapshot.status == ImportStatus.PENDING:
                self.status_message = snapshot.validation_error or ""
            else:
                self.status_message = ""
        elif isinstance(event, Escape):
            self.controller.cancel_edit(self.selected)
            self.focus = FocusState.UNFOCUSED
            self.status_message = ""
        elif isinstance(event, Skip):
            if event.cloud_id.lower() != self.selected.lower():
                self.status_message = "Finish editing the current resource first"
                return
            await self.controller.skip(event.cloud_id)
            self.focus = FocusState.UNFOCUSED
            self.status_message = f"Skipped {event.cloud_id}"
        elif isinstance(event, Quit):
            self.controller.cancel_edit(self.selected)
            self.focus = FocusState.UNFOCUSED
            self.quit = True
        else:
            self.status_message = "Finish editing the current resource first"
