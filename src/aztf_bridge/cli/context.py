"""
CLI context for aztf-bridge.

This module provides the context object that is passed to all CLI commands,
holding the global options and the lazily loaded configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aztf_bridge.config import BridgeConfig, load_config_from_yaml
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BridgeContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to configuration file (optional; defaults and
            AZTF_BRIDGE_* environment variables apply without one)
        log_level: Console logging level
        log_file: Optional log file path
    """

    config_path: Path | None = None
    log_level: str = "WARNING"
    log_file: Path | None = None

    _config: BridgeConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> BridgeConfig:
        """Get or load the configuration."""
        if self._config is None:
            if self.config_path is None:
                logger.debug("config_defaults_used")
                self._config = BridgeConfig()
            else:
                logger.debug("config_loading", config_path=str(self.config_path))
                self._config = load_config_from_yaml(self.config_path)
        return self._config

    def build_config(self, **overrides: Any) -> BridgeConfig:
        """Configuration with command line overrides applied.

        Args:
            **overrides: ``section__field`` keyed values; None means unset
        """
        return self.config.with_overrides(**overrides)
