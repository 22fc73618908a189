"""Shared fixtures: a fake IaC engine, a small catalog and session builders."""

import asyncio
from pathlib import Path

import pytest

from aztf_bridge.client.exceptions import ImportRejectedError
from aztf_bridge.engine.executor import ImportExecutor
from aztf_bridge.schema.catalog import SchemaCatalog
from aztf_bridge.session.controller import SessionController, build_session
from aztf_bridge.session.models import ResourceDescriptor
from aztf_bridge.session.resolver import TypeResolver
from aztf_bridge.session.state import ImportStateStore

SUBSCRIPTION = "/subscriptions/00000000-0000-0000-0000-000000000000"
RG_ID = f"{SUBSCRIPTION}/resourceGroups/rg1"
VNET_ID = f"{RG_ID}/providers/Microsoft.Network/virtualNetworks/vnet1"
SUBNET_ID = f"{VNET_ID}/subnets/default"
STORAGE_ID = f"{RG_ID}/providers/Microsoft.Storage/storageAccounts/sa1"
VM_ID = f"{RG_ID}/providers/Microsoft.Compute/virtualMachines/vm1"
UNKNOWN_ID = f"{RG_ID}/providers/Microsoft.Contoso/widgets/w1"

CATALOG_TYPES = {
    "azurerm_resource_group",
    "azurerm_virtual_network",
    "azurerm_subnet",
    "azurerm_storage_account",
    "azurerm_linux_virtual_machine",
    "azurerm_windows_virtual_machine",
}

CATALOG_RECOMMENDATIONS = {
    "Microsoft.Resources/resourceGroups": "azurerm_resource_group",
    "Microsoft.Network/virtualNetworks": "azurerm_virtual_network",
    "Microsoft.Network/virtualNetworks/subnets": "azurerm_subnet",
    "Microsoft.Storage/storageAccounts": "azurerm_storage_account",
}


class FakeEngine:
    """In-memory IaC engine.

    Imports succeed unless the cloud ID is listed in ``failures``, in which
    case the mapped exception is raised. ``delay`` makes every import yield
    to the event loop so several can overlap.
    """

    def __init__(self, failures=None, delay: float = 0.0, remove_failures=None):
        self.failures = dict(failures or {})
        self.remove_failures = dict(remove_failures or {})
        self.delay = delay
        self.state: dict[str, str] = {}
        self.import_calls: list[tuple[str, str, str]] = []
        self.remove_calls: list[str] = []
        self.running = 0
        self.max_running = 0

    async def import_resource(self, address: str, resource_type: str, cloud_id: str) -> None:
        self.import_calls.append((address, resource_type, cloud_id))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            if cloud_id in self.failures:
                raise self.failures[cloud_id]
            self.state[address] = cloud_id
        finally:
            self.running -= 1

    async def remove_from_state(self, address: str) -> None:
        self.remove_calls.append(address)
        if address in self.remove_failures:
            raise self.remove_failures[address]
        self.state.pop(address, None)


def rejected(cloud_id: str, reason: str = "type mismatch") -> ImportRejectedError:
    return ImportRejectedError(reason, cloud_id=cloud_id)


def descriptors(*cloud_ids: str, pattern: str = "res-") -> list[ResourceDescriptor]:
    return [
        ResourceDescriptor(
            cloud_id=cloud_id,
            display_name=cloud_id.rsplit("/", 1)[-1],
            target_name=f"{pattern}{index}",
        )
        for index, cloud_id in enumerate(cloud_ids)
    ]


@pytest.fixture
def catalog() -> SchemaCatalog:
    return SchemaCatalog(CATALOG_TYPES, CATALOG_RECOMMENDATIONS)


@pytest.fixture
def resolver(catalog) -> TypeResolver:
    return TypeResolver(catalog)


@pytest.fixture
def mapping_path(tmp_path) -> Path:
    return tmp_path / "aztfexportResourceMapping.json"


@pytest.fixture
def make_controller(resolver, mapping_path):
    """Factory building a controller over a fresh session and store."""

    def _make(
        descs,
        engine=None,
        parallelism: int = 10,
        continue_on_error: bool = False,
        loaded=None,
        store=None,
        timeout: float | None = None,
        generate_mapping_only: bool = False,
        module_path: str | None = None,
    ):
        engine = engine or FakeEngine()
        store = store or ImportStateStore(mapping_path)
        session = build_session(
            descs,
            loaded=loaded,
            parallelism=parallelism,
            continue_on_error=continue_on_error,
            output_dir=mapping_path.parent,
            module_path=module_path,
        )
        executor = ImportExecutor(engine, parallelism=parallelism, timeout=timeout)
        return SessionController(
            session,
            resolver,
            executor,
            store,
            engine,
            generate_mapping_only=generate_mapping_only,
        )

    return _make
