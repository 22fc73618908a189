"""Tests for the schema catalog."""

import json

import pytest

from aztf_bridge.client.exceptions import ConfigurationError
from aztf_bridge.schema import SchemaCatalog, load_catalog


@pytest.fixture
def provider_schema(tmp_path):
    path = tmp_path / "schema.json"
    path.write_text(
        json.dumps(
            {
                "format_version": "1.0",
                "provider_schemas": {
                    "registry.terraform.io/hashicorp/azurerm": {
                        "resource_schemas": {
                            "azurerm_resource_group": {},
                            "azurerm_virtual_network": {},
                        }
                    },
                    "registry.terraform.io/azure/azapi": {
                        "resource_schemas": {"azapi_resource": {}}
                    },
                },
            }
        )
    )
    return path


class TestSchemaCatalog:
    def test_recommendation_lookup_is_case_insensitive(self, catalog):
        assert catalog.recommended_type("microsoft.network/VIRTUALNETWORKS") == (
            "azurerm_virtual_network"
        )

    def test_unknown_kind(self, catalog):
        assert catalog.recommended_type("Microsoft.Contoso/widgets") is None

    def test_recommendation_outside_catalog_is_ignored(self):
        catalog = SchemaCatalog({"azurerm_subnet"}, {"Microsoft.Network/virtualNetworks": "x"})
        assert catalog.recommended_type("Microsoft.Network/virtualNetworks") is None

    def test_default_catalog_has_builtin_table(self):
        catalog = SchemaCatalog.default()
        assert catalog.is_valid_type("azurerm_resource_group")
        assert catalog.recommended_type("Microsoft.Storage/storageAccounts") == (
            "azurerm_storage_account"
        )
        # ambiguous kinds have no recommendation
        assert catalog.recommended_type("Microsoft.Compute/virtualMachines") is None

    def test_from_provider_schema_unions_providers(self, provider_schema):
        catalog = SchemaCatalog.from_provider_schema(provider_schema)
        assert catalog.resource_types == {
            "azurerm_resource_group",
            "azurerm_virtual_network",
            "azapi_resource",
        }
        assert not catalog.is_valid_type("azurerm_subnet")
        assert catalog.recommended_type("Microsoft.Network/virtualNetworks/subnets") is None

    def test_from_provider_schema_rejects_other_json(self, tmp_path):
        path = tmp_path / "schema.json"
        path.write_text("[]")
        with pytest.raises(ConfigurationError):
            SchemaCatalog.from_provider_schema(path)

    def test_recommendations_file_overlays(self, catalog, tmp_path):
        path = tmp_path / "recommendations.yaml"
        path.write_text("Microsoft.Compute/virtualMachines: azurerm_linux_virtual_machine\n")
        overlaid = catalog.with_recommendations_file(path)
        assert overlaid.recommended_type("Microsoft.Compute/virtualMachines") == (
            "azurerm_linux_virtual_machine"
        )
        assert catalog.recommended_type("Microsoft.Compute/virtualMachines") is None

    def test_recommendations_file_with_unknown_type(self, catalog, tmp_path):
        path = tmp_path / "recommendations.yaml"
        path.write_text("Microsoft.Compute/virtualMachines: azurerm_nope\n")
        with pytest.raises(ConfigurationError, match="azurerm_nope"):
            catalog.with_recommendations_file(path)

    def test_load_catalog_defaults(self):
        assert load_catalog().is_valid_type("azurerm_virtual_network")
