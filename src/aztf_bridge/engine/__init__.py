"""IaC engine integration: the Terraform CLI engine and the import executor."""

from aztf_bridge.engine.executor import ImportCompletion, ImportExecutor
from aztf_bridge.engine.terraform import IaCEngine, TerraformEngine

__all__ = ["IaCEngine", "ImportCompletion", "ImportExecutor", "TerraformEngine"]
