"""Terraform schema catalog.

The catalog answers two questions for the type resolver: is a string a
valid Terraform resource type, and which type is recommended for an Azure
resource kind.
"""

import json
from collections.abc import Iterable, Mapping
from pathlib import Path

import yaml

from aztf_bridge.client.exceptions import ConfigurationError
from aztf_bridge.resources import all_known_types, default_recommendations
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class SchemaCatalog:
    """Set of valid resource types plus kind-to-type recommendations.

    Recommendation lookups are case-insensitive on the Azure kind.
    """

    def __init__(
        self,
        resource_types: Iterable[str],
        recommendations: Mapping[str, str] | None = None,
    ):
        """Initialize schema catalog.

        Args:
            resource_types: Every valid Terraform resource type
            recommendations: Mapping of Azure kind to recommended Terraform type
        """
        self._resource_types = frozenset(resource_types)
        self._recommendations = {k.lower(): v for k, v in (recommendations or {}).items()}

    @classmethod
    def default(cls) -> "SchemaCatalog":
        """Catalog built from the built-in resource kind registry."""
        return cls(all_known_types(), default_recommendations())

    @classmethod
    def from_provider_schema(
        cls,
        schema_file: str | Path,
        recommendations: Mapping[str, str] | None = None,
    ) -> "SchemaCatalog":
        """Build a catalog from ``terraform providers schema -json`` output.

        Args:
            schema_file: Path to the JSON schema dump
            recommendations: Recommendation table (defaults to the built-in table)

        Raises:
            ConfigurationError: If the file is missing or not a provider schema dump
        """
        path = Path(schema_file)
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError as e:
            raise ConfigurationError(f"Provider schema file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Provider schema file is not valid JSON: {path}: {e}") from e

        provider_schemas = data.get("provider_schemas") if isinstance(data, dict) else None
        if not isinstance(provider_schemas, dict):
            raise ConfigurationError(f"No provider_schemas found in {path}")

        resource_types: set[str] = set()
        for provider in provider_schemas.values():
            resource_types.update((provider or {}).get("resource_schemas", {}) or {})

        logger.info(
            "provider_schema_loaded",
            file=str(path),
            providers=len(provider_schemas),
            resource_types=len(resource_types),
        )

        if recommendations is None:
            recommendations = default_recommendations()
        return cls(resource_types, recommendations)

    def with_recommendations_file(self, recommendations_file: str | Path) -> "SchemaCatalog":
        """Return a catalog whose recommendations are overlaid from a YAML file.

        The file is a flat mapping of Azure kind to Terraform type. Types in
        the file that the catalog does not know are rejected.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(recommendations_file)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"Recommendations file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Recommendations file is not valid YAML: {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Recommendations file must contain a mapping: {path}")

        merged = dict(self._recommendations)
        for kind, resource_type in data.items():
            if not self.is_valid_type(str(resource_type)):
                raise ConfigurationError(
                    f"Recommendations file {path} maps {kind} to unknown type {resource_type!r}"
                )
            merged[str(kind).lower()] = str(resource_type)

        logger.info("recommendations_loaded", file=str(path), entries=len(data))
        return SchemaCatalog(self._resource_types, merged)

    def is_valid_type(self, resource_type: str) -> bool:
        """Whether the type is a known Terraform resource type."""
        return resource_type in self._resource_types

    def recommended_type(self, kind: str) -> str | None:
        """Recommended Terraform type for an Azure kind, if the catalog has one.

        A recommendation naming a type absent from the catalog is ignored.
        """
        recommended = self._recommendations.get(kind.lower())
        if recommended and self.is_valid_type(recommended):
            return recommended
        return None

    @property
    def resource_types(self) -> frozenset[str]:
        """All valid resource types."""
        return self._resource_types


def load_catalog(
    provider_schema_file: str | None = None,
    recommendations_file: str | None = None,
) -> SchemaCatalog:
    """Build the catalog described by the catalog configuration section."""
    if provider_schema_file:
        catalog = SchemaCatalog.from_provider_schema(provider_schema_file)
    else:
        catalog = SchemaCatalog.default()
    if recommendations_file:
        catalog = catalog.with_recommendations_file(recommendations_file)
    return catalog
