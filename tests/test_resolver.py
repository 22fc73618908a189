"""Tests for type resolution and resource kind derivation."""

import pytest

from aztf_bridge.client.exceptions import InvalidTypeError
from aztf_bridge.resources import resource_kind
from aztf_bridge.session.models import ResourceItem

from conftest import RG_ID, STORAGE_ID, SUBNET_ID, SUBSCRIPTION, UNKNOWN_ID, VM_ID, VNET_ID


def item(cloud_id: str, **kwargs) -> ResourceItem:
    return ResourceItem(cloud_id=cloud_id, display_name="x", target_name="res-0", **kwargs)


class TestResourceKind:
    def test_resource_group(self):
        assert resource_kind(RG_ID) == "Microsoft.Resources/resourceGroups"

    def test_subscription(self):
        assert resource_kind(SUBSCRIPTION) == "Microsoft.Resources/subscriptions"

    def test_top_level_resource(self):
        assert resource_kind(VNET_ID) == "Microsoft.Network/virtualNetworks"

    def test_child_resource(self):
        assert resource_kind(SUBNET_ID) == "Microsoft.Network/virtualNetworks/subnets"

    def test_extension_resource_uses_last_provider(self):
        lock = f"{STORAGE_ID}/providers/Microsoft.Authorization/locks/lock1"
        assert resource_kind(lock) == "Microsoft.Authorization/locks"

    @pytest.mark.parametrize("bad", ["", "not-an-id", f"{RG_ID}/providers/Microsoft.Network"])
    def test_malformed(self, bad):
        with pytest.raises(ValueError):
            resource_kind(bad)


class TestTypeResolver:
    def test_empty_input_returns_recommendation(self, resolver):
        assert resolver.resolve(item(VNET_ID), "") == "azurerm_virtual_network"

    def test_empty_input_without_recommendation(self, resolver):
        assert resolver.resolve(item(VM_ID), "") == ""
        assert resolver.resolve(item(UNKNOWN_ID)) == ""

    def test_valid_input_is_stripped(self, resolver):
        assert resolver.resolve(item(VM_ID), "  azurerm_linux_virtual_machine ") == (
            "azurerm_linux_virtual_machine"
        )

    def test_invalid_input_raises_with_cloud_id(self, resolver):
        with pytest.raises(InvalidTypeError) as exc_info:
            resolver.resolve(item(VNET_ID), "azurerm_not_a_thing")
        assert exc_info.value.resource_type == "azurerm_not_a_thing"
        assert VNET_ID in str(exc_info.value)

    def test_resolve_does_not_mutate_item(self, resolver):
        target = item(VNET_ID)
        before = target.snapshot()
        resolver.resolve(target, "")
        resolver.resolve(target, "azurerm_virtual_network")
        assert target.snapshot() == before

    def test_discovery_recommendation_wins_when_valid(self, resolver):
        target = item(VM_ID, recommended_type="azurerm_windows_virtual_machine")
        assert resolver.recommend(target) == "azurerm_windows_virtual_machine"

    def test_discovery_recommendation_ignored_when_unknown(self, resolver):
        target = item(VNET_ID, recommended_type="azurerm_bogus")
        assert resolver.recommend(target) == "azurerm_virtual_network"

    def test_validate_treats_empty_input_as_skip(self, resolver):
        assert resolver.validate(item(VNET_ID), "   ") == ""
        assert resolver.validate(item(VNET_ID), "azurerm_subnet") == "azurerm_subnet"
