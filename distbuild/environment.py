"""Layered composition of the environment handed to build subprocesses."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping
import os

from .harvest import HarvestedEnvironment
from .toolchains import resolve_toolchain

TARGET_VARIABLE = "CARGO_DIST_TARGET"


def snapshot_environment(env: Mapping[str, str] | None = None) -> Mapping[str, str]:
    """Return a read-only copy of ``env`` (defaults to the process environment)."""

    return MappingProxyType(dict(env) if env is not None else dict(os.environ))


@dataclass(frozen=True, slots=True)
class ResolvedEnvironment:
    variables: Mapping[str, str]

    @classmethod
    def compose(cls, *layers: Mapping[str, str]) -> "ResolvedEnvironment":
        """Merge ``layers`` in order; later layers override earlier ones."""

        merged: Dict[str, str] = {}
        for layer in layers:
            merged.update(layer)
        return cls(variables=MappingProxyType(merged))

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.variables.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.variables

    def as_dict(self) -> Dict[str, str]:
        return dict(self.variables)

    def overrides(self, ambient: Mapping[str, str]) -> Dict[str, str]:
        """Return the variables whose value differs from ``ambient``."""

        return {key: value for key, value in self.variables.items() if ambient.get(key) != value}


def toolchain_layer(target: str, ambient: Mapping[str, str]) -> Dict[str, str]:
    """Announce ``target`` and pick compilers, honouring ambient ``CC``/``CXX``."""

    defaults = resolve_toolchain(target)
    return {
        TARGET_VARIABLE: target,
        "CC": ambient.get("CC", defaults.cc),
        "CXX": ambient.get("CXX", defaults.cxx),
    }


def flags_layer(harvest: HarvestedEnvironment) -> Dict[str, str]:
    layer: Dict[str, str] = {}
    if harvest.cflags is not None:
        # Many build systems read either variable for C and C++ alike.
        layer["CFLAGS"] = harvest.cflags
        layer["CPPFLAGS"] = harvest.cflags
    if harvest.ldflags is not None:
        layer["LDFLAGS"] = harvest.ldflags
    return layer


def resolve_build_environment(
    ambient: Mapping[str, str],
    harvest: HarvestedEnvironment,
    target: str | None,
) -> ResolvedEnvironment:
    return ResolvedEnvironment.compose(
        ambient,
        dict(harvest.variables),
        flags_layer(harvest),
        toolchain_layer(target, ambient) if target is not None else {},
    )


__all__ = [
    "ResolvedEnvironment",
    "TARGET_VARIABLE",
    "flags_layer",
    "resolve_build_environment",
    "snapshot_environment",
    "toolchain_layer",
]
