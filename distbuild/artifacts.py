"""Post-build verification and relocation of build outputs.

A build step succeeds only when every expected output exists after the
build command returns and every copy of it succeeds.  The exit status of the
build command is deliberately not consulted here.
"""
from __future__ import annotations

from pathlib import Path
from typing import List
import logging
import shutil

from .errors import ArtifactCopyError, MissingArtifactError
from .model import DistGraph, ExtraBuildStep, GenericBuildStep

logger = logging.getLogger(__name__)


def copy_file(source: Path, destination: Path) -> Path:
    """Copy ``source`` to ``destination``; parent directories must already exist."""

    try:
        shutil.copy(source, destination)
    except OSError as exc:
        raise ArtifactCopyError(source, destination, exc) from exc
    logger.debug("copied %s -> %s", source, destination)
    return destination


def _require(relative: str | Path, cwd: Path) -> Path:
    path = cwd / relative
    if not path.exists():
        raise MissingArtifactError(Path(relative))
    return path


def reconcile_binaries(graph: DistGraph, step: GenericBuildStep, *, cwd: Path) -> List[Path]:
    written: List[Path] = []
    for binary_idx in step.expected_binaries:
        binary = graph.binary(binary_idx)
        source = _require(binary.file_name, cwd)
        for dest in binary.copy_exe_to:
            written.append(copy_file(source, cwd / dest))
    return written


def reconcile_extra_artifacts(step: ExtraBuildStep, *, dist_dir: Path, cwd: Path) -> List[Path]:
    written: List[Path] = []
    for artifact in step.expected_artifacts:
        source = _require(artifact, cwd)
        written.append(copy_file(source, cwd / dist_dir / artifact))
    return written


__all__ = [
    "copy_file",
    "reconcile_binaries",
    "reconcile_extra_artifacts",
]
