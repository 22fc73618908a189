"""Configuration management for aztf-bridge using Pydantic.

This module provides type-safe configuration models for the import
session: output locations, concurrency, the Terraform engine, resource
discovery, the schema catalog and logging.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from aztf_bridge.client.exceptions import ConfigurationError


class OutputConfig(BaseModel):
    """Configuration for the Terraform working directory and state files."""

    output_dir: str = Field(default=".", description="Terraform working directory")
    mapping_file_name: str = Field(
        default="aztfexportResourceMapping.json",
        description="Name of the resource mapping file inside the output directory",
    )
    stub_file_name: str = Field(
        default="aztfbridge_stubs.tf",
        description="File holding the empty resource blocks required by `terraform import`",
    )
    report_file: str | None = Field(default=None, description="Optional JSON report path")

    @property
    def mapping_file(self) -> Path:
        """Full path of the mapping file."""
        return Path(self.output_dir) / self.mapping_file_name


class PerformanceConfig(BaseModel):
    """Concurrency and timeout tuning."""

    parallelism: int = Field(
        default=10, ge=1, le=50, description="Maximum concurrent import operations"
    )
    import_timeout: float = Field(
        default=600.0,
        gt=0,
        le=7200.0,
        description="Timeout (seconds) for a single import operation",
    )
    lock_timeout: str = Field(
        default="60s",
        description="Duration passed to terraform -lock-timeout while waiting for the state lock",
    )

    @field_validator("lock_timeout")
    @classmethod
    def validate_lock_timeout(cls, v: str) -> str:
        """Validate the lock timeout looks like a Terraform duration."""
        v = v.strip()
        if not v or not v[:-1].isdigit() or v[-1] not in "smh":
            raise ValueError("lock_timeout must look like '30s', '5m' or '1h'")
        return v


class EngineConfig(BaseModel):
    """Configuration for the Terraform CLI."""

    terraform_binary: str = Field(default="terraform", description="Terraform executable")
    module_path: str | None = Field(
        default=None,
        description="Dotted module path (e.g. 'mod1.mod2') resources are imported into",
    )
    extra_env: dict[str, str] = Field(
        default_factory=dict, description="Extra environment variables for terraform"
    )

    @field_validator("module_path")
    @classmethod
    def validate_module_path(cls, v: str | None) -> str | None:
        """Normalize empty module paths to None and reject empty segments."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if any(not segment for segment in v.split(".")):
            raise ValueError(f"Invalid module path {v!r}")
        return v


class DiscoveryConfig(BaseModel):
    """Configuration for Azure resource discovery."""

    arm_endpoint: str = Field(
        default="https://management.azure.com", description="Azure Resource Manager endpoint"
    )
    graph_api_version: str = Field(
        default="2022-10-01", description="Azure Resource Graph API version"
    )
    resource_api_version: str = Field(
        default="2021-04-01", description="API version for resource group lookups"
    )
    page_size: int = Field(default=1000, ge=1, le=1000, description="Resource Graph page size")
    timeout: int = Field(default=30, ge=1, le=600, description="HTTP timeout in seconds")
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per API call")
    retry_backoff_min: float = Field(default=2.0, ge=0, le=60, description="Min backoff seconds")
    retry_backoff_max: float = Field(default=30.0, ge=0, le=300, description="Max backoff seconds")
    access_token: str | None = Field(default=None, description="ARM bearer token")
    resource_name_pattern: str = Field(
        default="res-",
        description="Terraform resource name pattern; '*' is replaced by the index",
    )

    @field_validator("arm_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate and normalize the ARM endpoint URL."""
        if not v.startswith("https://"):
            raise ValueError("ARM endpoint must use https://")
        return v.rstrip("/")


class CatalogConfig(BaseModel):
    """Configuration for the Terraform schema catalog."""

    provider_schema_file: str | None = Field(
        default=None,
        description="Output of `terraform providers schema -json` used to validate types",
    )
    recommendations_file: str | None = Field(
        default=None,
        description="YAML mapping of Azure resource kinds to Terraform resource types",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log format (json or console)")
    file: str | None = Field(default="logs/aztf-bridge.log", description="Log file path")
    disable_progress: bool = Field(
        default=False, description="Disable live progress display (useful for CI/logging)"
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class BridgeConfig(BaseSettings):
    """Main aztf-bridge configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AZTF_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    output: OutputConfig = Field(default_factory=OutputConfig, description="Output configuration")
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    engine: EngineConfig = Field(default_factory=EngineConfig, description="Engine configuration")
    discovery: DiscoveryConfig = Field(
        default_factory=DiscoveryConfig, description="Discovery configuration"
    )
    catalog: CatalogConfig = Field(default_factory=CatalogConfig, description="Catalog configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    subscription_id: str | None = Field(default=None, description="Azure subscription ID")
    non_interactive: bool = Field(default=False, description="Run without the interactive list")
    continue_on_error: bool = Field(
        default=False, description="Keep importing other resources after an import error"
    )
    resume: bool = Field(default=False, description="Resume from the existing mapping file")
    generate_mapping_only: bool = Field(
        default=False, description="Resolve types and write the mapping file without importing"
    )

    @model_validator(mode="after")
    def validate_mode_flags(self) -> "BridgeConfig":
        """Resume, mapping generation and continue-on-error only apply without the interactive list."""
        if not self.non_interactive:
            if self.resume:
                raise ValueError("resume must be used together with non_interactive")
            if self.generate_mapping_only:
                raise ValueError("generate_mapping_only must be used together with non_interactive")
            if self.continue_on_error:
                raise ValueError("continue_on_error must be used together with non_interactive")
        return self

    def with_overrides(self, **overrides: Any) -> "BridgeConfig":
        """Return a copy with command line overrides applied.

        Keys use ``section__field`` for nested values (``performance__parallelism``);
        ``None`` values are ignored so unset flags keep the file/env value.

        Args:
            **overrides: Override values

        Returns:
            BridgeConfig: Validated copy of this configuration
        """
        data = self.model_dump()
        for key, value in overrides.items():
            if value is None:
                continue
            section, _, field_name = key.partition("__")
            if field_name:
                data.setdefault(section, {})[field_name] = value
            else:
                data[section] = value
        return BridgeConfig.model_validate(data)


def load_config_from_yaml(config_path: str | Path) -> BridgeConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        BridgeConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}") from e

    if not config_data:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    config_data = _expand_env_vars(config_data)

    return BridgeConfig(**config_data)


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config data.

    Supports ${VAR_NAME} syntax for environment variable substitution.

    Args:
        data: Configuration data

    Returns:
        Data with expanded environment variables
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
