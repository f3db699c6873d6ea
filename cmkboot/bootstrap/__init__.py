"""
Bootstrap pipeline for cmkboot.
"""

from .workflow import BootstrapWorkflow, Stage

__all__ = ["BootstrapWorkflow", "Stage"]
