"""
Tool registry and provisioning for cmkboot.
"""

from .registry import ToolSpec, ToolRegistry
from .provisioner import EnvironmentProvisioner, ProvisionOutcome

__all__ = [
    "ToolSpec",
    "ToolRegistry",
    "EnvironmentProvisioner",
    "ProvisionOutcome",
]
