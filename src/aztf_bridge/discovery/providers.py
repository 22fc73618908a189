"""Discovery providers.

Each provider turns one selection mode into an ordered list of
``ResourceDescriptor`` objects. Discovery runs once per session, before any
item is resolved or imported.
"""

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from aztf_bridge.client.exceptions import DiscoveryError
from aztf_bridge.client.resource_graph import ResourceGraphClient
from aztf_bridge.resources import resource_kind
from aztf_bridge.session.models import ResourceDescriptor
from aztf_bridge.session.state import read_mapping_file
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_NAME_PATTERN = "res-"


def resource_name(pattern: str, index: int) -> str:
    """Terraform resource name for the ``index``-th discovered resource.

    The first ``*`` in the pattern is replaced by the index; a pattern without
    one gets the index appended.
    """
    if "*" in pattern:
        return pattern.replace("*", str(index), 1)
    return f"{pattern}{index}"


def _descriptors_from_rows(rows: list[dict[str, Any]], pattern: str):
    descriptors = []
    for index, row in enumerate(rows):
        cloud_id = row.get("id")
        if not cloud_id:
            raise DiscoveryError(f"Resource Graph row without an id: {row}")
        descriptors.append(
            ResourceDescriptor(
                cloud_id=cloud_id,
                display_name=row.get("name") or cloud_id.rsplit("/", 1)[-1],
                target_name=resource_name(pattern, index),
            )
        )
    return descriptors


@runtime_checkable
class DiscoveryProvider(Protocol):
    """Source of candidate resources for a session."""

    async def discover(self) -> list[ResourceDescriptor]:
        """Discovered resources, in the order they should be imported."""
        ...


class SingleResourceProvider:
    """One resource given by ID, optionally with a fixed name and type."""

    def __init__(self, resource_id: str, name: str | None = None, resource_type: str | None = None):
        self.resource_id = resource_id
        self.name = name or resource_name(DEFAULT_NAME_PATTERN, 0)
        self.resource_type = resource_type

    async def discover(self) -> list[ResourceDescriptor]:
        try:
            resource_kind(self.resource_id)
        except ValueError as e:
            raise DiscoveryError(str(e)) from e
        return [
            ResourceDescriptor(
                cloud_id=self.resource_id,
                display_name=self.resource_id.rsplit("/", 1)[-1],
                target_name=self.name,
                resource_type=self.resource_type,
            )
        ]


class ResourceGroupProvider:
    """A resource group followed by every resource inside it."""

    def __init__(
        self,
        client: ResourceGraphClient,
        subscription_id: str,
        resource_group: str,
        name_pattern: str = DEFAULT_NAME_PATTERN,
    ):
        self.client = client
        self.subscription_id = subscription_id
        self.resource_group = resource_group
        self.name_pattern = name_pattern

    async def discover(self) -> list[ResourceDescriptor]:
        group = await self.client.get_resource_group(self.subscription_id, self.resource_group)
        rows = [{"id": group["id"], "name": group.get("name", self.resource_group)}]
        rows.extend(await self.client.list_resource_group(self.subscription_id, self.resource_group))
        descriptors = _descriptors_from_rows(rows, self.name_pattern)
        logger.info(
            "resource_group_discovered",
            resource_group=self.resource_group,
            resources=len(descriptors),
        )
        return descriptors


class QueryProvider:
    """Resources matching an Azure Resource Graph where-clause."""

    def __init__(
        self,
        client: ResourceGraphClient,
        subscription_id: str,
        predicate: str,
        name_pattern: str = DEFAULT_NAME_PATTERN,
    ):
        self.client = client
        self.subscription_id = subscription_id
        self.predicate = predicate
        self.name_pattern = name_pattern

    async def discover(self) -> list[ResourceDescriptor]:
        rows = await self.client.query(self.subscription_id, self.predicate)
        if not rows:
            raise DiscoveryError(f"No resources match the query: {self.predicate}")
        descriptors = _descriptors_from_rows(rows, self.name_pattern)
        logger.info("query_discovered", predicate=self.predicate, resources=len(descriptors))
        return descriptors


class MappingFileProvider:
    """Replays a saved resource mapping: names are kept and types are fixed.

    Records without a type were skipped when the mapping was made and are
    left out.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def discover(self) -> list[ResourceDescriptor]:
        if not self.path.exists():
            raise DiscoveryError(f"Mapping file not found: {self.path}")
        records = read_mapping_file(self.path)
        descriptors = []
        for cloud_id, record in records.items():
            if not record["resource_type"]:
                logger.info("mapping_record_skipped", cloud_id=cloud_id)
                continue
            descriptors.append(
                ResourceDescriptor(
                    cloud_id=cloud_id,
                    display_name=cloud_id.rsplit("/", 1)[-1],
                    target_name=record["resource_name"],
                    resource_type=record["resource_type"],
                )
            )
        logger.info("mapping_file_replayed", path=str(self.path), resources=len(descriptors))
        return descriptors
