"""Data model for an import session.

A session holds one ``ResourceItem`` per discovered Azure resource, in
discovery order. Items move through a small state machine; the legal
moves are listed in ``ALLOWED_TRANSITIONS`` and every applied transition
bumps the item's ``version`` by exactly one.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from aztf_bridge.client.exceptions import InvalidTransitionError


class ImportStatus(str, Enum):
    """Resolution status of a resource item."""

    PENDING = "pending"
    RECOMMENDED = "recommended"
    EDITING = "editing"
    VALIDATED = "validated"
    SKIPPED = "skipped"
    IMPORTING = "importing"
    IMPORTED = "imported"
    ERRORED = "errored"


TERMINAL_STATUSES = frozenset({ImportStatus.SKIPPED, ImportStatus.IMPORTED, ImportStatus.ERRORED})

ALLOWED_TRANSITIONS: dict[ImportStatus, frozenset[ImportStatus]] = {
    ImportStatus.PENDING: frozenset(
        {
            ImportStatus.RECOMMENDED,
            ImportStatus.EDITING,
            ImportStatus.VALIDATED,
            ImportStatus.SKIPPED,
        }
    ),
    ImportStatus.RECOMMENDED: frozenset(
        {ImportStatus.EDITING, ImportStatus.VALIDATED, ImportStatus.SKIPPED}
    ),
    # Escape returns an item to whatever it was before the editor opened.
    ImportStatus.EDITING: frozenset(
        {
            ImportStatus.VALIDATED,
            ImportStatus.PENDING,
            ImportStatus.RECOMMENDED,
            ImportStatus.SKIPPED,
            ImportStatus.ERRORED,
        }
    ),
    # PENDING: the session stopped before the item was scheduled.
    ImportStatus.VALIDATED: frozenset(
        {ImportStatus.IMPORTING, ImportStatus.PENDING, ImportStatus.EDITING}
    ),
    ImportStatus.SKIPPED: frozenset({ImportStatus.EDITING}),
    ImportStatus.IMPORTING: frozenset({ImportStatus.IMPORTED, ImportStatus.ERRORED}),
    ImportStatus.IMPORTED: frozenset({ImportStatus.EDITING}),
    ImportStatus.ERRORED: frozenset({ImportStatus.EDITING}),
}


def module_prefix(module_path: str | None) -> str:
    """Terraform address prefix for a dotted module path.

    ``"a.b"`` becomes ``"module.a.module.b."``; no module path gives ``""``.
    """
    if not module_path:
        return ""
    return "".join(f"module.{name}." for name in module_path.split("."))


@dataclass(frozen=True)
class ResourceDescriptor:
    """A discovered resource before type resolution.

    Attributes:
        cloud_id: Azure resource ID
        display_name: Informational name
        target_name: Terraform resource name (the last address segment)
        recommended_type: Type suggested by discovery, if any
        resource_type: Type fixed by the user or a saved mapping, if any
    """

    cloud_id: str
    display_name: str
    target_name: str
    recommended_type: str | None = None
    resource_type: str | None = None


@dataclass(frozen=True)
class ItemSnapshot:
    """Read-only view of a resource item handed to renderers and reports."""

    cloud_id: str
    display_name: str
    target_name: str
    target_type: str
    target_address: str
    status: ImportStatus
    validation_error: str | None
    import_error: str | None
    is_recommended: bool
    version: int


@dataclass
class ResourceItem:
    """One discovered candidate resource and its current binding.

    Only the session controller mutates items; everything else works on
    ``snapshot()`` copies.
    """

    cloud_id: str
    display_name: str
    target_name: str
    target_type: str = ""
    module_path: str | None = None
    fixed_type: str | None = None
    recommended_type: str | None = None
    status: ImportStatus = ImportStatus.PENDING
    validation_error: Exception | None = None
    import_error: Exception | None = None
    is_recommended: bool = False
    version: int = 0
    previous_status: ImportStatus | None = None

    @classmethod
    def from_descriptor(
        cls, descriptor: ResourceDescriptor, module_path: str | None = None
    ) -> "ResourceItem":
        """Create a pending item from a discovered descriptor."""
        return cls(
            cloud_id=descriptor.cloud_id,
            display_name=descriptor.display_name,
            target_name=descriptor.target_name,
            module_path=module_path,
            fixed_type=descriptor.resource_type or None,
            recommended_type=descriptor.recommended_type or None,
        )

    @property
    def target_address(self) -> str:
        """Terraform address, or ``""`` while no type is assigned."""
        if not self.target_type:
            return ""
        return f"{module_prefix(self.module_path)}{self.target_type}.{self.target_name}"

    @property
    def is_terminal(self) -> bool:
        """Whether the item is skipped, imported or errored."""
        return self.status in TERMINAL_STATUSES

    def apply_transition(self, new_status: ImportStatus) -> ImportStatus:
        """Move to ``new_status`` if the state machine allows it.

        Returns:
            The previous status

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        old_status = self.status
        if new_status not in ALLOWED_TRANSITIONS[old_status]:
            raise InvalidTransitionError(self.cloud_id, old_status.value, new_status.value)
        self.status = new_status
        self.version += 1
        return old_status

    def snapshot(self) -> ItemSnapshot:
        """Immutable copy of the item's current state."""
        return ItemSnapshot(
            cloud_id=self.cloud_id,
            display_name=self.display_name,
            target_name=self.target_name,
            target_type=self.target_type,
            target_address=self.target_address,
            status=self.status,
            validation_error=str(self.validation_error) if self.validation_error else None,
            import_error=str(self.import_error) if self.import_error else None,
            is_recommended=self.is_recommended,
            version=self.version,
        )


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted by the controller after every applied item transition."""

    cloud_id: str
    old_status: ImportStatus
    new_status: ImportStatus
    snapshot: ItemSnapshot


@dataclass
class ImportSession:
    """Ordered set of resource items discovered in one run plus run settings."""

    parallelism: int = 10
    continue_on_error: bool = False
    output_dir: Path = field(default_factory=lambda: Path("."))
    items: list[ResourceItem] = field(default_factory=list)
    _index: dict[str, ResourceItem] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        items, self.items = self.items, []
        for item in items:
            self.add(item)

    def add(self, item: ResourceItem) -> None:
        """Append an item; cloud IDs are unique within a session.

        Raises:
            ValueError: If an item with the same cloud ID exists
        """
        key = item.cloud_id.lower()
        if key in self._index:
            raise ValueError(f"Duplicate resource in session: {item.cloud_id}")
        self._index[key] = item
        self.items.append(item)

    def get(self, cloud_id: str) -> ResourceItem:
        """Look up an item by cloud ID (case-insensitive).

        Raises:
            KeyError: If the session has no such item
        """
        return self._index[cloud_id.lower()]

    def __contains__(self, cloud_id: object) -> bool:
        return isinstance(cloud_id, str) and cloud_id.lower() in self._index

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def by_status(self, *statuses: ImportStatus) -> list[ResourceItem]:
        """Items currently in any of ``statuses``, in discovery order."""
        return [item for item in self.items if item.status in statuses]

    def snapshots(self) -> list[ItemSnapshot]:
        """Snapshots of every item in discovery order."""
        return [item.snapshot() for item in self.items]


@dataclass
class SessionOutcome:
    """Final report of a session handed back to the caller."""

    imported: list[ItemSnapshot] = field(default_factory=list)
    skipped: list[ItemSnapshot] = field(default_factory=list)
    errored: list[ItemSnapshot] = field(default_factory=list)
    unresolved: list[ItemSnapshot] = field(default_factory=list)
    mapping_file: Path | None = None
    fatal_error: str | None = None

    @classmethod
    def from_session(
        cls,
        session: ImportSession,
        mapping_file: Path | None = None,
        fatal_error: str | None = None,
    ) -> "SessionOutcome":
        """Bucket every item of a session by its resolution state."""
        outcome = cls(mapping_file=mapping_file, fatal_error=fatal_error)
        for snap in session.snapshots():
            if snap.status == ImportStatus.IMPORTED:
                outcome.imported.append(snap)
            elif snap.status == ImportStatus.SKIPPED:
                outcome.skipped.append(snap)
            elif snap.status == ImportStatus.ERRORED:
                outcome.errored.append(snap)
            else:
                outcome.unresolved.append(snap)
        return outcome

    @property
    def counts(self) -> dict[str, int]:
        """Number of items per resolution state."""
        return {
            "imported": len(self.imported),
            "skipped": len(self.skipped),
            "errored": len(self.errored),
            "unresolved": len(self.unresolved),
        }

    @property
    def exit_code(self) -> int:
        """Process exit status: non-zero if any item errored or the run was fatal."""
        return 1 if self.errored or self.fatal_error else 0
