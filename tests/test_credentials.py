"""Tests for subscription ID and token resolution."""

import pytest

from aztf_bridge.client.exceptions import ConfigurationError
from aztf_bridge.credentials import resolve_access_token, resolve_subscription_id


class FakeCli:
    def __init__(self, output=None):
        self.output = output
        self.calls = []

    def __call__(self, args):
        self.calls.append(list(args))
        return self.output


class TestResolveSubscriptionId:
    def test_flag_wins(self):
        cli = FakeCli("from-cli")
        environ = {"ARM_SUBSCRIPTION_ID": "from-env"}
        assert resolve_subscription_id("from-flag", environ, cli) == "from-flag"
        assert cli.calls == []

    def test_tool_variable_before_arm_variable(self):
        environ = {"ARM_SUBSCRIPTION_ID": "arm", "AZTF_BRIDGE_SUBSCRIPTION_ID": "tool"}
        assert resolve_subscription_id(None, environ, FakeCli()) == "tool"

    def test_blank_values_are_ignored(self):
        environ = {"AZTF_BRIDGE_SUBSCRIPTION_ID": "  ", "ARM_SUBSCRIPTION_ID": "arm"}
        assert resolve_subscription_id("", environ, FakeCli()) == "arm"

    def test_falls_back_to_azure_cli(self):
        cli = FakeCli("cli-sub\n")
        assert resolve_subscription_id(None, {}, cli) == "cli-sub"
        assert cli.calls == [["account", "show", "--query", "id", "-o", "tsv"]]

    def test_nothing_found(self):
        with pytest.raises(ConfigurationError, match="Subscription ID not found"):
            resolve_subscription_id(None, {}, FakeCli())

    def test_cli_can_be_disabled(self):
        with pytest.raises(ConfigurationError):
            resolve_subscription_id(None, {}, cli_runner=None)


class TestResolveAccessToken:
    def test_environment(self):
        assert resolve_access_token(None, {"ARM_ACCESS_TOKEN": "tok"}, FakeCli()) == "tok"

    def test_azure_cli(self):
        cli = FakeCli("cli-token")
        assert resolve_access_token(None, {}, cli) == "cli-token"
        assert cli.calls[0][:2] == ["account", "get-access-token"]

    def test_nothing_found(self):
        with pytest.raises(ConfigurationError, match="access token"):
            resolve_access_token(None, {}, FakeCli())
