"""Central Azure resource kind definitions - single source of truth.

This module provides the built-in registry mapping Azure resource kinds
(``<provider namespace>/<type>[/<child type>...]``) to the Terraform
``azurerm`` resource types they can be imported as. A kind with exactly
one candidate type has a recommendation; kinds with several candidates
(e.g. virtual machines, which may be Linux or Windows) need the user to
choose.

A recommendations file configured through ``catalog.recommendations_file``
overlays this table.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceKindInfo:
    """Terraform mapping metadata for an Azure resource kind."""

    kind: str
    candidates: tuple[str, ...]
    description: str

    @property
    def recommended_type(self) -> str | None:
        """The single candidate type, or None when the choice is ambiguous."""
        if len(self.candidates) == 1:
            return self.candidates[0]
        return None


def _info(kind: str, description: str, *candidates: str) -> tuple[str, ResourceKindInfo]:
    return kind.lower(), ResourceKindInfo(kind=kind, candidates=candidates, description=description)


# Keys are lower-cased: Azure resource IDs are case-insensitive.
RESOURCE_KIND_REGISTRY: dict[str, ResourceKindInfo] = dict(
    [
        _info("Microsoft.Resources/resourceGroups", "Resource group", "azurerm_resource_group"),
        _info(
            "Microsoft.Network/virtualNetworks", "Virtual network", "azurerm_virtual_network"
        ),
        _info("Microsoft.Network/virtualNetworks/subnets", "Subnet", "azurerm_subnet"),
        _info(
            "Microsoft.Network/networkSecurityGroups",
            "Network security group",
            "azurerm_network_security_group",
        ),
        _info(
            "Microsoft.Network/networkSecurityGroups/securityRules",
            "Network security rule",
            "azurerm_network_security_rule",
        ),
        _info(
            "Microsoft.Network/networkInterfaces", "Network interface", "azurerm_network_interface"
        ),
        _info("Microsoft.Network/publicIPAddresses", "Public IP", "azurerm_public_ip"),
        _info("Microsoft.Network/loadBalancers", "Load balancer", "azurerm_lb"),
        _info("Microsoft.Network/routeTables", "Route table", "azurerm_route_table"),
        _info("Microsoft.Network/natGateways", "NAT gateway", "azurerm_nat_gateway"),
        _info(
            "Microsoft.Network/applicationGateways",
            "Application gateway",
            "azurerm_application_gateway",
        ),
        _info("Microsoft.Network/privateEndpoints", "Private endpoint", "azurerm_private_endpoint"),
        _info("Microsoft.Network/privateDnsZones", "Private DNS zone", "azurerm_private_dns_zone"),
        _info(
            "Microsoft.Network/privateDnsZones/virtualNetworkLinks",
            "Private DNS zone VNet link",
            "azurerm_private_dns_zone_virtual_network_link",
        ),
        _info("Microsoft.Network/dnsZones", "DNS zone", "azurerm_dns_zone"),
        _info(
            "Microsoft.Compute/virtualMachines",
            "Virtual machine",
            "azurerm_linux_virtual_machine",
            "azurerm_windows_virtual_machine",
            "azurerm_virtual_machine",
        ),
        _info(
            "Microsoft.Compute/virtualMachineScaleSets",
            "Virtual machine scale set",
            "azurerm_linux_virtual_machine_scale_set",
            "azurerm_windows_virtual_machine_scale_set",
            "azurerm_orchestrated_virtual_machine_scale_set",
        ),
        _info(
            "Microsoft.Compute/virtualMachines/extensions",
            "VM extension",
            "azurerm_virtual_machine_extension",
        ),
        _info("Microsoft.Compute/disks", "Managed disk", "azurerm_managed_disk"),
        _info("Microsoft.Compute/availabilitySets", "Availability set", "azurerm_availability_set"),
        _info("Microsoft.Compute/images", "Image", "azurerm_image"),
        _info("Microsoft.Compute/snapshots", "Snapshot", "azurerm_snapshot"),
        _info("Microsoft.Storage/storageAccounts", "Storage account", "azurerm_storage_account"),
        _info("Microsoft.KeyVault/vaults", "Key vault", "azurerm_key_vault"),
        _info(
            "Microsoft.ManagedIdentity/userAssignedIdentities",
            "User assigned identity",
            "azurerm_user_assigned_identity",
        ),
        _info(
            "Microsoft.Web/serverFarms",
            "App service plan",
            "azurerm_service_plan",
        ),
        _info(
            "Microsoft.Web/sites",
            "Web or function app",
            "azurerm_linux_web_app",
            "azurerm_windows_web_app",
            "azurerm_linux_function_app",
            "azurerm_windows_function_app",
        ),
        _info(
            "Microsoft.ContainerService/managedClusters",
            "AKS cluster",
            "azurerm_kubernetes_cluster",
        ),
        _info(
            "Microsoft.ContainerRegistry/registries",
            "Container registry",
            "azurerm_container_registry",
        ),
        _info("Microsoft.Sql/servers", "SQL server", "azurerm_mssql_server"),
        _info("Microsoft.Sql/servers/databases", "SQL database", "azurerm_mssql_database"),
        _info(
            "Microsoft.DBforPostgreSQL/flexibleServers",
            "PostgreSQL flexible server",
            "azurerm_postgresql_flexible_server",
        ),
        _info(
            "Microsoft.DBforMySQL/flexibleServers",
            "MySQL flexible server",
            "azurerm_mysql_flexible_server",
        ),
        _info("Microsoft.DocumentDB/databaseAccounts", "Cosmos DB account", "azurerm_cosmosdb_account"),
        _info("Microsoft.Cache/redis", "Redis cache", "azurerm_redis_cache"),
        _info(
            "Microsoft.ServiceBus/namespaces",
            "Service Bus namespace",
            "azurerm_servicebus_namespace",
        ),
        _info(
            "Microsoft.EventHub/namespaces", "Event Hubs namespace", "azurerm_eventhub_namespace"
        ),
        _info(
            "Microsoft.OperationalInsights/workspaces",
            "Log Analytics workspace",
            "azurerm_log_analytics_workspace",
        ),
        _info(
            "Microsoft.Insights/components", "Application Insights", "azurerm_application_insights"
        ),
        _info("Microsoft.Insights/actionGroups", "Monitor action group", "azurerm_monitor_action_group"),
    ]
)


def resource_kind(cloud_id: str) -> str:
    """Derive the Azure resource kind from a resource ID.

    Examples:
        ``/subscriptions/s/resourceGroups/rg`` -> ``Microsoft.Resources/resourceGroups``
        ``.../providers/Microsoft.Network/virtualNetworks/vn/subnets/sn``
        -> ``Microsoft.Network/virtualNetworks/subnets``

    For extension resources the last ``providers`` segment wins.

    Raises:
        ValueError: If the ID is not a recognizable Azure resource ID
    """
    segments = [s for s in cloud_id.strip().strip("/").split("/") if s]
    lowered = [s.lower() for s in segments]

    if "providers" in lowered:
        idx = len(lowered) - 1 - lowered[::-1].index("providers")
        rest = segments[idx + 1 :]
        if len(rest) < 3 or len(rest) % 2 == 0:
            raise ValueError(f"Malformed Azure resource ID: {cloud_id!r}")
        namespace, types = rest[0], rest[1::2]
        return "/".join([namespace, *types])

    if len(lowered) == 4 and lowered[0] == "subscriptions" and lowered[2] == "resourcegroups":
        return "Microsoft.Resources/resourceGroups"
    if len(lowered) == 2 and lowered[0] == "subscriptions":
        return "Microsoft.Resources/subscriptions"

    raise ValueError(f"Malformed Azure resource ID: {cloud_id!r}")


def default_recommendations() -> dict[str, str]:
    """Built-in ``kind -> type`` recommendations (lower-cased kinds)."""
    return {
        key: info.recommended_type
        for key, info in RESOURCE_KIND_REGISTRY.items()
        if info.recommended_type is not None
    }


def all_known_types() -> set[str]:
    """Every Terraform type referenced by the registry."""
    return {t for info in RESOURCE_KIND_REGISTRY.values() for t in info.candidates}
