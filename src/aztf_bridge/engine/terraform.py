"""Terraform CLI engine.

This module drives the ``terraform`` binary for the two operations the
import session needs: importing a resource into state and removing an
address from state. Classic ``terraform import`` requires a resource block
for the target address, so the engine keeps an empty block per address in
a stub file next to the configuration.
"""

import asyncio
import json
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from aztf_bridge.client.exceptions import (
    EngineUnavailableError,
    ImportRejectedError,
)
from aztf_bridge.config import EngineConfig, PerformanceConfig
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# stderr fragments meaning terraform itself cannot operate in this directory
UNAVAILABLE_MARKERS = (
    "backend initialization required",
    "required plugins are not installed",
    "inconsistent dependency lock file",
    "failed to instantiate provider",
    "failed to load plugin schemas",
    "could not load plugin",
    "module not installed",
    "please run \"terraform init\"",
)

NOT_IN_STATE_MARKERS = (
    "no matching objects found",
    "invalid target address",
)

_STUB_PATTERN = re.compile(r'^resource\s+"([^"]+)"\s+"([^"]+)"\s*\{\s*\}\s*$', re.MULTILINE)


@runtime_checkable
class IaCEngine(Protocol):
    """Operations the session needs from the IaC engine."""

    async def import_resource(self, address: str, resource_type: str, cloud_id: str) -> None:
        """Import ``cloud_id`` into state at ``address``."""
        ...

    async def remove_from_state(self, address: str) -> None:
        """Remove ``address`` from state."""
        ...


class StubConfigFile:
    """Empty ``resource "type" "name" {}`` blocks required by ``terraform import``.

    The file is rewritten atomically on every change and guarded by an
    asyncio lock, since imports run concurrently.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = asyncio.Lock()
        self._blocks: dict[str, str] = {}
        if path.exists():
            for resource_type, name in _STUB_PATTERN.findall(path.read_text()):
                self._blocks[f"{resource_type}.{name}"] = resource_type

    def __contains__(self, local_address: object) -> bool:
        return local_address in self._blocks

    async def add(self, resource_type: str, name: str) -> None:
        async with self._lock:
            key = f"{resource_type}.{name}"
            if key not in self._blocks:
                self._blocks[key] = resource_type
                self._write()

    async def remove(self, local_address: str) -> None:
        async with self._lock:
            if self._blocks.pop(local_address, None) is not None:
                self._write()

    def _write(self) -> None:
        lines = [
            f'resource "{resource_type}" "{key.split(".", 1)[1]}" {{\n}}\n'
            for key, resource_type in sorted(self._blocks.items())
        ]
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            with os.fdopen(fd, "w") as f:
                f.write("\n".join(lines))
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            logger.error("stub_file_write_failed", path=str(self.path), error=str(e))
            raise EngineUnavailableError(f"failed to write {self.path}: {e}") from e


def split_address(address: str) -> tuple[str, str]:
    """Split a Terraform address into its module path and local part.

    ``module.a.module.b.azurerm_x.res-0`` -> ``("a.b", "azurerm_x.res-0")``.
    """
    parts = address.split(".")
    modules: list[str] = []
    while len(parts) > 2 and parts[0] == "module":
        modules.append(parts[1])
        parts = parts[2:]
    if len(parts) != 2:
        raise ValueError(f"Not a resource address: {address!r}")
    return ".".join(modules), ".".join(parts)


class TerraformEngine:
    """Runs ``terraform import`` and ``terraform state rm`` in a working directory.

    Failure classification:
        - binary missing, process cannot be spawned, or terraform reports
          that the directory is not initialised: ``EngineUnavailableError``
        - any other non-zero exit of an import: ``ImportRejectedError``
    """

    def __init__(
        self,
        working_dir: str | Path,
        engine_config: EngineConfig | None = None,
        performance_config: PerformanceConfig | None = None,
        stub_file_name: str = "aztfbridge_stubs.tf",
        subscription_id: str | None = None,
    ):
        """Initialize terraform engine.

        Args:
            working_dir: Terraform working directory (already initialised)
            engine_config: Engine configuration
            performance_config: Performance configuration (lock timeout)
            stub_file_name: File name for the resource stubs
            subscription_id: Exported to terraform as ARM_SUBSCRIPTION_ID
        """
        self.working_dir = Path(working_dir)
        self.engine_config = engine_config or EngineConfig()
        self.performance_config = performance_config or PerformanceConfig()
        self.stub_file_name = stub_file_name
        self.subscription_id = subscription_id
        self._stubs: dict[str, StubConfigFile] = {}

        logger.info(
            "terraform_engine_initialized",
            working_dir=str(self.working_dir),
            binary=self.engine_config.terraform_binary,
        )

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["TF_IN_AUTOMATION"] = "1"
        if self.subscription_id:
            env["ARM_SUBSCRIPTION_ID"] = self.subscription_id
        env.update(self.engine_config.extra_env)
        return env

    def _module_dir(self, module_path: str) -> Path:
        """Directory of an installed local module, as recorded by ``terraform init``."""
        if not module_path:
            return self.working_dir
        manifest = self.working_dir / ".terraform" / "modules" / "modules.json"
        try:
            modules = json.loads(manifest.read_text()).get("Modules", [])
        except (OSError, json.JSONDecodeError) as e:
            raise EngineUnavailableError(
                f"module {module_path!r} is not installed, run terraform init: {e}"
            ) from e
        for module in modules:
            if module.get("Key") == module_path:
                return self.working_dir / module["Dir"]
        raise EngineUnavailableError(f"module {module_path!r} is not installed, run terraform init")

    def _stub_file(self, module_path: str) -> StubConfigFile:
        if module_path not in self._stubs:
            directory = self._module_dir(module_path)
            self._stubs[module_path] = StubConfigFile(directory / self.stub_file_name)
        return self._stubs[module_path]

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run terraform and return ``(exit code, stdout, stderr)``.

        If the awaiting task is cancelled (e.g. by a timeout) the process is
        killed before the cancellation propagates.
        """
        binary = self.engine_config.terraform_binary
        start_time = time.time()
        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *args,
                cwd=self.working_dir,
                env=self._env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(f"terraform binary not found: {binary}") from e
        except OSError as e:
            raise EngineUnavailableError(f"failed to start terraform: {e}") from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        logger.debug(
            "terraform_command_finished",
            command=args[0] if args else "",
            returncode=proc.returncode,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def import_resource(self, address: str, resource_type: str, cloud_id: str) -> None:
        """Import a resource.

        Raises:
            EngineUnavailableError: If terraform cannot run in the working directory
            ImportRejectedError: If terraform refused the import
        """
        module_path, local_address = split_address(address)
        stubs = self._stub_file(module_path)
        await stubs.add(resource_type, local_address.split(".", 1)[1])

        try:
            returncode, _, stderr = await self._run(
                "import",
                "-input=false",
                "-no-color",
                f"-lock-timeout={self.performance_config.lock_timeout}",
                address,
                cloud_id,
            )
        except BaseException:
            await stubs.remove(local_address)
            raise

        if returncode == 0:
            logger.info("terraform_import_succeeded", address=address, cloud_id=cloud_id)
            return

        await stubs.remove(local_address)
        reason = _summarize(stderr)
        if _matches(stderr, UNAVAILABLE_MARKERS):
            raise EngineUnavailableError(reason, address=address, cloud_id=cloud_id)
        raise ImportRejectedError(reason, address=address, cloud_id=cloud_id)

    async def remove_from_state(self, address: str) -> None:
        """Remove an address from state and drop its stub.

        An address that is already absent from state counts as removed.

        Raises:
            EngineUnavailableError: If terraform cannot run in the working directory
            ImportRejectedError: If terraform refused the removal
        """
        module_path, local_address = split_address(address)
        returncode, _, stderr = await self._run(
            "state",
            "rm",
            f"-lock-timeout={self.performance_config.lock_timeout}",
            address,
        )
        if returncode != 0:
            if _matches(stderr, NOT_IN_STATE_MARKERS):
                logger.warning("terraform_state_rm_not_found", address=address)
            elif _matches(stderr, UNAVAILABLE_MARKERS):
                raise EngineUnavailableError(_summarize(stderr), address=address)
            else:
                raise ImportRejectedError(_summarize(stderr), address=address)

        await self._stub_file(module_path).remove(local_address)
        logger.info("terraform_state_rm_succeeded", address=address)


def _matches(text: str, markers: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def _summarize(stderr: str, max_lines: int = 10) -> str:
    """First meaningful lines of terraform's error output."""
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    if not lines:
        return "terraform exited with an error and no output"
    summary = " ".join(lines[:max_lines])
    if len(lines) > max_lines:
        summary += " ..."
    return summary
