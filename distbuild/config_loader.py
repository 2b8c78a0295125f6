"""Loading of the workspace distribution configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import os
import shlex
import tomllib

import yaml

from .model import Binary, DistGraph, ExtraBuildStep, Tools

ConfigLoader = Callable[[Any], Mapping[str, Any]]

CONFIG_ENV_VAR = "DISTBUILD_CONFIG"
CONFIG_STEM = "dist"
DEFAULT_DIST_DIR = "target/distrib"

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Decode the ``dist`` configuration at ``path``; every loader reads bytes."""

    loader = FILE_LOADERS.get(path.suffix.lower())
    if loader is None:
        raise ValueError(f"Unsupported configuration file extension: {path.suffix} ({', '.join(FILE_LOADERS)})")
    with path.open("rb") as handle:
        data = loader(handle) or {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def _string_items(value: Sequence[Any], field_name: str) -> List[str]:
    if any(not isinstance(item, str) for item in value):
        raise TypeError(f"{field_name} entries must be strings")
    return list(value)


def normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    """Accept one path or a list of paths; blank entries are dropped."""

    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    elif not isinstance(value, Sequence):
        raise TypeError(f"{field_name} must be a string or sequence of strings")
    return [item.strip() for item in _string_items(value, field_name) if item.strip()]


def normalize_command(value: Any, *, field_name: str) -> List[str] | None:
    """Accept a command as an argument list or a shell-style string."""

    if value is None:
        return None
    if isinstance(value, str):
        return shlex.split(value)
    if not isinstance(value, Sequence):
        raise TypeError(f"{field_name} must be a string or sequence of strings")
    return _string_items(value, field_name)


def _reject_unknown(section: Mapping[str, Any], allowed: set[str], label: str) -> None:
    unknown = {str(key) for key in section.keys() if str(key) not in allowed}
    if unknown:
        raise ValueError(f"{label} contains unknown keys: {', '.join(sorted(unknown))}")


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise TypeError(f"'{key}' must be a mapping")
    return value


def _entries(data: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    value = data.get(key, [])
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise TypeError(f"'{key}' must be a list of tables")
    for entry in value:
        if not isinstance(entry, Mapping):
            raise TypeError(f"'{key}' entries must be mappings")
    return list(value)


@dataclass(slots=True)
class BinaryConfig:
    target: str
    file_name: str
    name: str | None = None
    copy_exe_to: List[str] = field(default_factory=list)
    copy_symbols_to: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BinaryConfig":
        _reject_unknown(data, {"target", "file_name", "name", "copy_exe_to", "copy_symbols_to"}, "Binary entry")
        target = data.get("target")
        file_name = data.get("file_name")
        if not target:
            raise ValueError("binaries.target is required")
        if not file_name:
            raise ValueError("binaries.file_name is required")
        name = data.get("name")
        return cls(
            target=str(target),
            file_name=str(file_name),
            name=str(name) if name else None,
            copy_exe_to=normalize_string_list(data.get("copy_exe_to"), field_name="copy_exe_to"),
            copy_symbols_to=normalize_string_list(data.get("copy_symbols_to"), field_name="copy_symbols_to"),
        )


@dataclass(slots=True)
class ExtraArtifactsConfig:
    build: List[str] | None
    artifacts: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExtraArtifactsConfig":
        _reject_unknown(data, {"build", "artifacts"}, "Extra artifacts entry")
        return cls(
            build=normalize_command(data.get("build"), field_name="extra_artifacts.build"),
            artifacts=normalize_string_list(data.get("artifacts"), field_name="artifacts"),
        )


@dataclass(slots=True)
class DistConfig:
    workspace: Path
    build_command: List[str] | None = None
    dist_dir: str = DEFAULT_DIST_DIR
    log_level: str = "info"
    binaries: List[BinaryConfig] = field(default_factory=list)
    extra_artifacts: List[ExtraArtifactsConfig] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, workspace: Path) -> "DistConfig":
        _reject_unknown(data, {"dist", "binaries", "extra_artifacts"}, "Configuration")
        dist_section = _section(data, "dist")
        _reject_unknown(dist_section, {"build_command", "dist_dir", "log_level"}, "[dist]")
        return cls(
            workspace=workspace,
            build_command=normalize_command(dist_section.get("build_command"), field_name="dist.build_command"),
            dist_dir=str(dist_section.get("dist_dir", DEFAULT_DIST_DIR)),
            log_level=str(dist_section.get("log_level", "info")),
            binaries=[BinaryConfig.from_mapping(entry) for entry in _entries(data, "binaries")],
            extra_artifacts=[ExtraArtifactsConfig.from_mapping(entry) for entry in _entries(data, "extra_artifacts")],
        )

    @classmethod
    def from_file(cls, path: Path, *, workspace: Path) -> "DistConfig":
        return cls.from_mapping(load_config_file(path), workspace=workspace)

    def _resolve(self, raw: str) -> Path:
        path = Path(raw).expanduser()
        return path if path.is_absolute() else self.workspace / path

    def to_graph(self, tools: Tools | None = None) -> DistGraph:
        binaries = [
            Binary(
                target=entry.target,
                file_name=entry.file_name,
                name=entry.name,
                copy_exe_to=[self._resolve(dest) for dest in entry.copy_exe_to],
                copy_symbols_to=[self._resolve(dest) for dest in entry.copy_symbols_to],
            )
            for entry in self.binaries
        ]
        extra_builds = [
            ExtraBuildStep(build_command=list(entry.build or []), expected_artifacts=list(entry.artifacts))
            for entry in self.extra_artifacts
        ]
        return DistGraph(
            binaries=binaries,
            dist_dir=self._resolve(self.dist_dir),
            build_command=list(self.build_command) if self.build_command is not None else None,
            extra_builds=extra_builds,
            tools=tools if tools is not None else Tools(),
        )


def find_config_file(workspace: Path, explicit: str | Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    """Locate the configuration file for ``workspace``.

    An explicit path wins, then ``$DISTBUILD_CONFIG``, then the single
    ``dist.<ext>`` file in the workspace root.
    """

    environment = env if env is not None else os.environ
    candidate = explicit or environment.get(CONFIG_ENV_VAR)
    if candidate:
        path = Path(candidate).expanduser()
        if not path.is_absolute():
            path = workspace / path
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return path

    found = [workspace / f"{CONFIG_STEM}{suffix}" for suffix in FILE_LOADERS if (workspace / f"{CONFIG_STEM}{suffix}").is_file()]
    if not found:
        raise FileNotFoundError(f"No {CONFIG_STEM} configuration found in {workspace}")
    if len(found) > 1:
        names = ", ".join(path.name for path in found)
        raise ValueError(f"Multiple configuration files found: {names}. Only one format is allowed.")
    return found[0]


def load_dist_config(workspace: Path, explicit: str | Path | None = None, env: Mapping[str, str] | None = None) -> DistConfig:
    return DistConfig.from_file(find_config_file(workspace, explicit, env), workspace=workspace)


__all__ = [
    "BinaryConfig",
    "CONFIG_ENV_VAR",
    "ConfigLoader",
    "DistConfig",
    "ExtraArtifactsConfig",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
    "load_dist_config",
    "normalize_command",
    "normalize_string_list",
]
