"""Data model shared by build planning and execution."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Union
import platform
import shutil

TargetTriple = str
BinaryIdx = int


@dataclass(slots=True)
class Binary:
    target: TargetTriple
    file_name: str
    copy_exe_to: List[Path] = field(default_factory=list)
    copy_symbols_to: List[Path] = field(default_factory=list)
    name: str | None = None

    @property
    def needs_copy(self) -> bool:
        return bool(self.copy_exe_to or self.copy_symbols_to)


@dataclass(slots=True)
class GenericBuildStep:
    target_triple: TargetTriple
    expected_binaries: List[BinaryIdx]
    build_command: List[str]

    def describe(self) -> str:
        return f"generic target ({self.target_triple} via {' '.join(self.build_command)})"


@dataclass(slots=True)
class ExtraBuildStep:
    build_command: List[str]
    expected_artifacts: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"extra artifacts target (via {' '.join(self.build_command)})"


BuildStep = Union[GenericBuildStep, ExtraBuildStep]


@dataclass(slots=True)
class BuildPlan:
    steps: List[BuildStep]

    @property
    def generic_steps(self) -> List[GenericBuildStep]:
        return [step for step in self.steps if isinstance(step, GenericBuildStep)]

    @property
    def extra_steps(self) -> List[ExtraBuildStep]:
        return [step for step in self.steps if isinstance(step, ExtraBuildStep)]


@dataclass(slots=True)
class Tools:
    """External tools discovered on the host."""

    brew: str | None = None

    @classmethod
    def discover(cls, *, system: str | None = None) -> "Tools":
        # Homebrew bundles are only consulted on macOS hosts.
        system_name = (system or platform.system()).lower()
        brew = shutil.which("brew") if system_name == "darwin" else None
        return cls(brew=brew)


@dataclass(slots=True)
class DistGraph:
    binaries: List[Binary]
    dist_dir: Path
    build_command: List[str] | None = None
    extra_builds: List[ExtraBuildStep] = field(default_factory=list)
    tools: Tools = field(default_factory=Tools)

    def binary(self, idx: BinaryIdx) -> Binary:
        return self.binaries[idx]

    def binaries_for(self, indices: Sequence[BinaryIdx]) -> List[Binary]:
        return [self.binaries[idx] for idx in indices]


__all__ = [
    "Binary",
    "BinaryIdx",
    "BuildPlan",
    "BuildStep",
    "DistGraph",
    "ExtraBuildStep",
    "GenericBuildStep",
    "TargetTriple",
    "Tools",
]
