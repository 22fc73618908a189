"""Tests for configuration loading and overrides."""

import pytest
from pydantic import ValidationError

from aztf_bridge.client.exceptions import ConfigurationError
from aztf_bridge.config import BridgeConfig, load_config_from_yaml


class TestBridgeConfig:
    def test_defaults(self):
        config = BridgeConfig()
        assert config.performance.parallelism == 10
        assert config.output.mapping_file_name == "aztfexportResourceMapping.json"
        assert not config.continue_on_error
        assert config.engine.module_path is None

    def test_overrides_ignore_unset_values(self):
        config = BridgeConfig().with_overrides(
            performance__parallelism=4,
            output__output_dir="/tmp/tf",
            non_interactive=True,
            continue_on_error=True,
            subscription_id=None,
        )
        assert config.performance.parallelism == 4
        assert config.output.mapping_file.as_posix() == "/tmp/tf/aztfexportResourceMapping.json"
        assert config.continue_on_error
        assert config.subscription_id is None

    @pytest.mark.parametrize("parallelism", [0, 51])
    def test_parallelism_bounds(self, parallelism):
        with pytest.raises(ValidationError):
            BridgeConfig().with_overrides(performance__parallelism=parallelism)

    def test_resume_requires_non_interactive(self):
        with pytest.raises(ValidationError, match="non_interactive"):
            BridgeConfig().with_overrides(resume=True)
        assert BridgeConfig().with_overrides(resume=True, non_interactive=True).resume

    def test_continue_requires_non_interactive(self):
        with pytest.raises(ValidationError, match="continue_on_error"):
            BridgeConfig().with_overrides(continue_on_error=True)
        config = BridgeConfig().with_overrides(continue_on_error=True, non_interactive=True)
        assert config.continue_on_error

    def test_module_path(self):
        config = BridgeConfig().with_overrides(engine__module_path=" ")
        assert config.engine.module_path is None
        with pytest.raises(ValidationError):
            BridgeConfig().with_overrides(engine__module_path="a..b")

    def test_lock_timeout_format(self):
        with pytest.raises(ValidationError):
            BridgeConfig().with_overrides(performance__lock_timeout="soon")

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("AZTF_BRIDGE_PERFORMANCE__PARALLELISM", "3")
        monkeypatch.setenv("AZTF_BRIDGE_SUBSCRIPTION_ID", "sub-env")
        config = BridgeConfig()
        assert config.performance.parallelism == 3
        assert config.subscription_id == "sub-env"


class TestLoadConfigFromYaml:
    def test_load_with_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TF_DIR", "/work/tf")
        path = tmp_path / "config.yaml"
        path.write_text(
            "output:\n"
            "  output_dir: ${TF_DIR}\n"
            "performance:\n"
            "  parallelism: 5\n"
            "  lock_timeout: 2m\n"
        )

        config = load_config_from_yaml(path)

        assert config.output.output_dir == "/work/tf"
        assert config.performance.parallelism == 5
        assert config.performance.lock_timeout == "2m"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="Empty"):
            load_config_from_yaml(path)

    def test_unset_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AZTF_BRIDGE_TEST_UNSET", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("subscription_id: ${AZTF_BRIDGE_TEST_UNSET}\n")
        with pytest.raises(ConfigurationError, match="AZTF_BRIDGE_TEST_UNSET"):
            load_config_from_yaml(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("output: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_from_yaml(path)
