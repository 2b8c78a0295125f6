"""Build-step planning and execution for distribution pipelines."""
from __future__ import annotations

from .build import BuildExecutor, BuildPlanner, StepReport
from .cli import main
from .model import Binary, BuildPlan, DistGraph, ExtraBuildStep, GenericBuildStep, Tools

__all__ = [
    "Binary",
    "BuildExecutor",
    "BuildPlan",
    "BuildPlanner",
    "DistGraph",
    "ExtraBuildStep",
    "GenericBuildStep",
    "StepReport",
    "Tools",
    "main",
]
