"""Resource discovery: one provider per selection mode."""

from aztf_bridge.discovery.providers import (
    DiscoveryProvider,
    MappingFileProvider,
    QueryProvider,
    ResourceGroupProvider,
    SingleResourceProvider,
    resource_name,
)

__all__ = [
    "DiscoveryProvider",
    "MappingFileProvider",
    "QueryProvider",
    "ResourceGroupProvider",
    "SingleResourceProvider",
    "resource_name",
]
