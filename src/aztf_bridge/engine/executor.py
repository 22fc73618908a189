"""Bounded-concurrency import executor."""

import asyncio
import time
from dataclasses import dataclass

from aztf_bridge.client.exceptions import EngineError, EngineUnavailableError, ImportRejectedError
from aztf_bridge.engine.terraform import IaCEngine
from aztf_bridge.session.models import ItemSnapshot
from aztf_bridge.utils.logging import get_logger, log_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImportCompletion:
    """Result of one import, posted back to the session controller.

    Attributes:
        cloud_id: Resource the import was for
        address: Terraform address it was imported to
        error: Classified failure, or None on success
        duration: Wall-clock seconds spent, including waiting for a slot
    """

    cloud_id: str
    address: str
    error: EngineError | None = None
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def is_fatal(self) -> bool:
        """Whether the failure means the engine itself is unusable."""
        return isinstance(self.error, EngineUnavailableError)


class ImportExecutor:
    """Runs engine imports with at most ``parallelism`` in flight.

    The executor only reads item snapshots and never changes item state;
    failures are returned, not raised, so the controller can apply them.
    Imports are never retried.
    """

    def __init__(self, engine: IaCEngine, parallelism: int = 10, timeout: float | None = 600):
        """Initialize import executor.

        Args:
            engine: IaC engine performing the imports
            parallelism: Maximum concurrent imports
            timeout: Per-import timeout in seconds (None disables it)
        """
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self.engine = engine
        self.parallelism = parallelism
        self.timeout = timeout
        self._slots = asyncio.Semaphore(parallelism)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of engine calls currently running."""
        return self._in_flight

    async def import_item(self, item: ItemSnapshot) -> ImportCompletion:
        """Import one validated item.

        Args:
            item: Snapshot of the item taken when it entered Importing

        Returns:
            Completion carrying the classified error, if any
        """
        start_time = time.time()
        async with self._slots:
            self._in_flight += 1
            logger.info("import_started", cloud_id=item.cloud_id, address=item.target_address)
            try:
                await asyncio.wait_for(
                    self.engine.import_resource(
                        item.target_address, item.target_type, item.cloud_id
                    ),
                    timeout=self.timeout,
                )
                error: EngineError | None = None
            except asyncio.TimeoutError:
                error = ImportRejectedError(
                    f"timed out after {self.timeout}s",
                    address=item.target_address,
                    cloud_id=item.cloud_id,
                    timed_out=True,
                )
            except EngineError as e:
                error = e
            except Exception as e:
                log_error(logger, e, "unexpected_import_error", cloud_id=item.cloud_id)
                error = ImportRejectedError(
                    f"unexpected error: {e}",
                    address=item.target_address,
                    cloud_id=item.cloud_id,
                )
            finally:
                self._in_flight -= 1

        duration = time.time() - start_time
        if error is None:
            logger.info(
                "import_succeeded",
                cloud_id=item.cloud_id,
                address=item.target_address,
                duration_ms=round(duration * 1000, 2),
            )
        else:
            logger.warning(
                "import_failed",
                cloud_id=item.cloud_id,
                address=item.target_address,
                error=str(error),
                error_type=type(error).__name__,
            )
        return ImportCompletion(
            cloud_id=item.cloud_id,
            address=item.target_address,
            error=error,
            duration=duration,
        )
