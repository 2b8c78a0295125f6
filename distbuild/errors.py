"""Error taxonomy shared by the planner, executor and artifact reconciler."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence
import shlex


class DistBuildError(RuntimeError):
    """Base class for fatal build-step failures."""


class PreconditionError(DistBuildError):
    """Raised when the workspace is missing something a build step requires."""


class ParseError(DistBuildError):
    """Raised when harvested environment output is not ``KEY=value`` text."""

    def __init__(self, line: str):
        super().__init__(f"Malformed environment line (expected KEY=value): {line!r}")
        self.line = line


class ExecutionError(DistBuildError):
    """Raised when a build subprocess could not be launched at all."""

    def __init__(self, command: Sequence[str], cause: OSError):
        formatted = " ".join(shlex.quote(part) for part in command)
        super().__init__(f"Failed to exec build command: {formatted}: {cause}")
        self.command = list(command)
        self.cause = cause


class MissingArtifactError(DistBuildError):
    """Raised when an expected build output does not exist after the build."""

    def __init__(self, path: Path):
        super().__init__(f"failed to find bin {path} -- did the build above have errors?")
        self.path = path


class ArtifactCopyError(DistBuildError):
    """Raised when a found artifact cannot be copied to its destination."""

    def __init__(self, source: Path, destination: Path, cause: OSError):
        super().__init__(f"Failed to copy {source} to {destination}: {cause}")
        self.source = source
        self.destination = destination
        self.cause = cause


class NonZeroExitWarning(UserWarning):
    """A build command exited with failure status; artifact checks decide the outcome."""

    def __init__(self, command: Sequence[str], returncode: int):
        super().__init__(f"Build exited non-zero: {returncode}")
        self.command = list(command)
        self.returncode = returncode


__all__ = [
    "ArtifactCopyError",
    "DistBuildError",
    "ExecutionError",
    "MissingArtifactError",
    "NonZeroExitWarning",
    "ParseError",
    "PreconditionError",
]
