"""
Import session controller.

The controller is the only component that changes resource items. Every
status change goes through ``_transition``, which applies the state machine,
records the item to the state store, logs it and notifies listeners (the
progress display, the interactive list). Imports run as worker tasks that
only see item snapshots and report back over a queue; the controller applies
their completions one at a time.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from aztf_bridge.client.exceptions import (
    CompensationFailedError,
    DiscoveryError,
    EngineError,
    EngineUnavailableError,
    InvalidTransitionError,
    InvalidTypeError,
)
from aztf_bridge.engine.executor import ImportCompletion, ImportExecutor
from aztf_bridge.engine.terraform import IaCEngine
from aztf_bridge.session.models import (
    ALLOWED_TRANSITIONS,
    ImportSession,
    ImportStatus,
    ItemSnapshot,
    ResourceDescriptor,
    ResourceItem,
    SessionOutcome,
    TransitionEvent,
)
from aztf_bridge.session.resolver import TypeResolver
from aztf_bridge.session.state import ImportStateStore
from aztf_bridge.utils.logging import get_logger, log_transition

logger = get_logger(__name__)

TransitionListener = Callable[[TransitionEvent], None]
InteractiveFrontend = Callable[["SessionController"], Awaitable[bool]]


def build_session(
    descriptors: Iterable[ResourceDescriptor],
    loaded: ImportSession | None = None,
    parallelism: int = 10,
    continue_on_error: bool = False,
    output_dir: Path | None = None,
    module_path: str | None = None,
) -> ImportSession:
    """Build a session from discovered resources, in discovery order.

    When resuming, items are merged with the loaded mapping by cloud ID:
    imported items stay imported (and are never re-imported), every other
    item starts pending but keeps its saved name and type.

    Args:
        descriptors: Discovered resources
        loaded: Session loaded from the mapping file, when resuming
        parallelism: Maximum concurrent imports
        continue_on_error: Keep importing after an item fails
        output_dir: Terraform working directory
        module_path: Dotted module path prefixed to every address

    Raises:
        DiscoveryError: If discovery returned the same resource twice
    """
    session = ImportSession(
        parallelism=parallelism,
        continue_on_error=continue_on_error,
        output_dir=output_dir or Path("."),
    )
    resumed = 0
    for descriptor in descriptors:
        item = ResourceItem.from_descriptor(descriptor, module_path=module_path)
        if loaded is not None and descriptor.cloud_id in loaded:
            saved = loaded.get(descriptor.cloud_id)
            item.target_name = saved.target_name
            item.version = saved.version
            if saved.status == ImportStatus.IMPORTED:
                item.status = ImportStatus.IMPORTED
                item.target_type = saved.target_type
                resumed += 1
            elif not item.fixed_type:
                item.fixed_type = saved.fixed_type
        try:
            session.add(item)
        except ValueError as e:
            raise DiscoveryError(str(e)) from e

    logger.info("session_built", items=len(session), already_imported=resumed)
    return session


class SessionController:
    """
    Drives one import session from resolution to a final outcome.

    Usage:
        controller = SessionController(session, resolver, executor, store, engine)
        controller.subscribe(display.on_transition)
        outcome = await controller.run()
    """

    def __init__(
        self,
        session: ImportSession,
        resolver: TypeResolver,
        executor: ImportExecutor,
        store: ImportStateStore,
        engine: IaCEngine,
        generate_mapping_only: bool = False,
    ):
        """
        Initialize the session controller.

        Args:
            session: Session whose items this controller owns
            resolver: Type resolver
            executor: Import executor
            store: State store recording every transition
            engine: IaC engine, used directly for state removal on re-edit
            generate_mapping_only: Resolve and write the mapping without importing
        """
        self.session = session
        self.resolver = resolver
        self.executor = executor
        self.store = store
        self.engine = engine
        self.generate_mapping_only = generate_mapping_only
        self._listeners: list[TransitionListener] = []
        self._stop = asyncio.Event()
        self._batch_halted = False
        self._fatal_error: EngineUnavailableError | None = None
        self._mapping_file: Path | None = None

    # ------------------------------------------------------------------
    # Listeners and bookkeeping
    # ------------------------------------------------------------------

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """Register a transition listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    @property
    def stopped(self) -> bool:
        """Whether no new imports will be scheduled in the current batch."""
        return self._stop.is_set() or self._batch_halted

    def request_stop(self) -> None:
        """Stop scheduling imports. Running imports are allowed to finish."""
        if not self._stop.is_set():
            logger.info("session_stop_requested")
            self._stop.set()

    def _transition(self, item: ResourceItem, new_status: ImportStatus) -> None:
        old_status = item.apply_transition(new_status)
        self.store.record_transition(item)
        log_transition(
            logger,
            item.cloud_id,
            old_status.value,
            new_status.value,
            address=item.target_address,
            version=item.version,
        )
        event = TransitionEvent(
            cloud_id=item.cloud_id,
            old_status=old_status,
            new_status=new_status,
            snapshot=item.snapshot(),
        )
        for listener in list(self._listeners):
            listener(event)

    def outcome(self) -> SessionOutcome:
        """Current outcome of the session."""
        return SessionOutcome.from_session(
            self.session,
            mapping_file=self._mapping_file,
            fatal_error=str(self._fatal_error) if self._fatal_error else None,
        )

    # ------------------------------------------------------------------
    # Per-item operations
    # ------------------------------------------------------------------

    def mark_recommended(self, cloud_id: str) -> ItemSnapshot:
        """Propose a type for a pending item.

        A type fixed by the user or a saved mapping is proposed as is; other
        items get the resolver's recommendation. Items with nothing to
        propose stay pending.
        """
        item = self.session.get(cloud_id)
        if item.status != ImportStatus.PENDING:
            return item.snapshot()

        try:
            proposed = self.resolver.resolve(item, item.fixed_type or "")
        except InvalidTypeError as e:
            item.validation_error = e
            return item.snapshot()

        if proposed:
            item.target_type = proposed
            item.is_recommended = not item.fixed_type
            self._transition(item, ImportStatus.RECOMMENDED)
        return item.snapshot()

    def mark_all_recommended(self) -> None:
        for item in self.session.by_status(ImportStatus.PENDING):
            self.mark_recommended(item.cloud_id)

    async def begin_edit(self, cloud_id: str) -> ItemSnapshot:
        """Open an item for editing.

        Re-editing an imported item first removes its address from the
        engine's state, so a later import under another type cannot collide
        with it.

        Raises:
            CompensationFailedError: If the state removal failed; the item
                stays imported with its type
            InvalidTransitionError: If the item is being imported
        """
        item = self.session.get(cloud_id)
        if item.status == ImportStatus.EDITING:
            return item.snapshot()

        if item.status == ImportStatus.IMPORTED:
            try:
                await self.engine.remove_from_state(item.target_address)
            except EngineError as e:
                error = CompensationFailedError(
                    f"failed to remove from state: {e.reason}",
                    address=item.target_address,
                    cloud_id=item.cloud_id,
                )
                item.validation_error = error
                logger.warning(
                    "state_removal_failed",
                    cloud_id=item.cloud_id,
                    address=item.target_address,
                    error=e.reason,
                )
                raise error from e
            item.is_recommended = False
            item.previous_status = ImportStatus.VALIDATED
        else:
            item.previous_status = item.status

        item.validation_error = None
        self._transition(item, ImportStatus.EDITING)
        return item.snapshot()

    def confirm_edit(self, cloud_id: str, user_input: str) -> ItemSnapshot:
        """Confirm the type typed for an item being edited.

        A valid type validates the item, an empty one skips it. An invalid
        type sends the item back to pending with the error attached.
        """
        item = self.session.get(cloud_id)
        if item.status != ImportStatus.EDITING:
            raise InvalidTransitionError(
                cloud_id, item.status.value, ImportStatus.VALIDATED.value
            )

        try:
            resolved = self.resolver.validate(item, user_input)
        except InvalidTypeError as e:
            item.validation_error = e
            item.previous_status = None
            self._transition(item, ImportStatus.PENDING)
            return item.snapshot()

        item.validation_error = None
        item.import_error = None
        item.previous_status = None
        if not resolved:
            item.target_type = ""
            item.is_recommended = False
            self._transition(item, ImportStatus.SKIPPED)
            return item.snapshot()

        item.is_recommended = item.is_recommended and resolved == item.target_type
        item.target_type = resolved
        self._transition(item, ImportStatus.VALIDATED)
        return item.snapshot()

    def cancel_edit(self, cloud_id: str) -> ItemSnapshot:
        """Leave the editor, restoring the status the item had before."""
        item = self.session.get(cloud_id)
        if item.status != ImportStatus.EDITING:
            return item.snapshot()
        previous = item.previous_status or ImportStatus.PENDING
        item.previous_status = None
        self._transition(item, previous)
        return item.snapshot()

    async def skip(self, cloud_id: str) -> ItemSnapshot:
        """Mark an item skipped.

        Items that cannot be skipped directly are opened for editing first,
        which for imported items includes removing them from state.
        """
        item = self.session.get(cloud_id)
        if item.status == ImportStatus.SKIPPED:
            return item.snapshot()
        if ImportStatus.SKIPPED not in ALLOWED_TRANSITIONS[item.status]:
            await self.begin_edit(cloud_id)
        item.target_type = ""
        item.is_recommended = False
        item.previous_status = None
        self._transition(item, ImportStatus.SKIPPED)
        return item.snapshot()

    def auto_resolve(self) -> None:
        """Resolve every undecided item without user input.

        The fixed type is used when present, the recommendation otherwise.
        Items without a type are skipped; items whose fixed type is not in
        the catalog stay pending with the error attached.
        """
        for item in self.session.by_status(ImportStatus.PENDING, ImportStatus.RECOMMENDED):
            try:
                resolved = self.resolver.resolve(item, item.fixed_type or "")
            except InvalidTypeError as e:
                item.validation_error = e
                logger.warning("fixed_type_invalid", cloud_id=item.cloud_id, error=str(e))
                continue

            item.validation_error = None
            if resolved:
                item.is_recommended = not item.fixed_type
                item.target_type = resolved
                self._transition(item, ImportStatus.VALIDATED)
            else:
                item.target_type = ""
                self._transition(item, ImportStatus.SKIPPED)

    def accept_recommendations(self) -> None:
        """Validate every item still showing its recommended type.

        Called when the user commits a batch: a recommendation the user did
        not change is the type to import with.
        """
        for item in self.session.by_status(ImportStatus.RECOMMENDED):
            try:
                resolved = self.resolver.resolve(item, item.target_type)
            except InvalidTypeError as e:
                item.validation_error = e
                self._transition(item, ImportStatus.PENDING)
                continue
            if not resolved:
                continue
            item.validation_error = None
            item.target_type = resolved
            self._transition(item, ImportStatus.VALIDATED)

    # ------------------------------------------------------------------
    # Import scheduling
    # ------------------------------------------------------------------

    async def _import_worker(
        self, snapshot: ItemSnapshot, queue: "asyncio.Queue[ImportCompletion]"
    ) -> None:
        completion = await self.executor.import_item(snapshot)
        await queue.put(completion)

    async def execute(self) -> None:
        """Import every validated item.

        Items are scheduled in discovery order with at most ``parallelism``
        in flight. Each completion is applied and recorded as it arrives.
        After a failure (unless continuing on error), an engine outage or an
        explicit stop, no new imports start; running ones finish and the
        unscheduled items return to pending.

        Raises:
            EngineUnavailableError: After draining, if the engine was unreachable
        """
        pending = deque(self.session.by_status(ImportStatus.VALIDATED))
        if not pending:
            return
        self._batch_halted = False

        queue: asyncio.Queue[ImportCompletion] = asyncio.Queue()
        in_flight: dict[str, asyncio.Task] = {}
        logger.info(
            "import_batch_started",
            items=len(pending),
            parallelism=self.session.parallelism,
            continue_on_error=self.session.continue_on_error,
        )

        try:
            while pending or in_flight:
                while (
                    pending
                    and len(in_flight) < self.session.parallelism
                    and not self.stopped
                ):
                    item = pending.popleft()
                    self._transition(item, ImportStatus.IMPORTING)
                    in_flight[item.cloud_id] = asyncio.create_task(
                        self._import_worker(item.snapshot(), queue)
                    )
                if not in_flight:
                    break

                completion = await queue.get()
                await in_flight.pop(completion.cloud_id)
                self._apply_completion(completion)
        finally:
            if in_flight:
                self._batch_halted = True
                await asyncio.gather(*in_flight.values(), return_exceptions=True)

        for item in pending:
            self._transition(item, ImportStatus.PENDING)

        logger.info(
            "import_batch_finished",
            imported=len(self.session.by_status(ImportStatus.IMPORTED)),
            errored=len(self.session.by_status(ImportStatus.ERRORED)),
            unscheduled=len(pending),
        )
        if self._fatal_error is not None:
            raise self._fatal_error

    def _apply_completion(self, completion: ImportCompletion) -> None:
        item = self.session.get(completion.cloud_id)
        if completion.succeeded:
            item.import_error = None
            self._transition(item, ImportStatus.IMPORTED)
            return

        item.import_error = completion.error
        self._transition(item, ImportStatus.ERRORED)
        if completion.is_fatal:
            if self._fatal_error is None:
                self._fatal_error = completion.error  # type: ignore[assignment]
            logger.error("engine_unavailable", error=str(completion.error))
            self._stop.set()
        elif not self.session.continue_on_error:
            logger.warning("stopping_after_failure", cloud_id=item.cloud_id)
            self._batch_halted = True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def run(self, frontend: InteractiveFrontend | None = None) -> SessionOutcome:
        """Run the session to completion.

        Without a front end, items are resolved automatically and imported
        (or only written to the mapping file). With one, the front end edits
        items until it commits a batch; the batch is imported and the front
        end is shown again, until it quits or the session is stopped.

        Args:
            frontend: Interactive front end; returns False to quit

        Returns:
            Outcome of the session

        Raises:
            EngineUnavailableError: If the engine was unreachable; the
                mapping file is still finalized
        """
        logger.info(
            "session_started",
            items=len(self.session),
            interactive=frontend is not None,
            generate_mapping_only=self.generate_mapping_only,
        )
        try:
            if frontend is None:
                self.auto_resolve()
                if not self.generate_mapping_only:
                    await self.execute()
            else:
                self.mark_all_recommended()
                while not self._stop.is_set():
                    if not await frontend(self):
                        break
                    self.accept_recommendations()
                    await self.execute()
        finally:
            self._mapping_file = self.store.finalize(self.session)

        outcome = self.outcome()
        logger.info("session_finished", **outcome.counts)
        return outcome
