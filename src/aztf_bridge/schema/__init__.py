"""Terraform schema catalog for resource type validation and recommendations."""

from aztf_bridge.schema.catalog import SchemaCatalog, load_catalog

__all__ = [
    "SchemaCatalog",
    "load_catalog",
]
