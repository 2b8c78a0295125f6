"""Default C/C++ compiler selection for target triples."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class PlatformFamily(str, Enum):
    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "windows"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class CompilerPair:
    cc: str
    cxx: str


# First match wins when a triple names more than one family.
_FAMILY_MARKERS: Tuple[Tuple[str, PlatformFamily], ...] = (
    ("darwin", PlatformFamily.DARWIN),
    ("linux", PlatformFamily.LINUX),
    ("windows", PlatformFamily.WINDOWS),
)

TOOLCHAIN_DEFAULTS: Dict[PlatformFamily, CompilerPair] = {
    PlatformFamily.DARWIN: CompilerPair(cc="clang", cxx="clang++"),
    PlatformFamily.LINUX: CompilerPair(cc="gcc", cxx="g++"),
    PlatformFamily.WINDOWS: CompilerPair(cc="cl.exe", cxx="cl.exe"),
    PlatformFamily.OTHER: CompilerPair(cc="cc", cxx="c++"),
}


def classify_target(target: str) -> PlatformFamily:
    """Return the platform family named by ``target``."""

    for marker, family in _FAMILY_MARKERS:
        if marker in target:
            return family
    return PlatformFamily.OTHER


def resolve_toolchain(target: str) -> CompilerPair:
    """Return the default C and C++ compilers for ``target``."""

    return TOOLCHAIN_DEFAULTS[classify_target(target)]


__all__ = [
    "CompilerPair",
    "PlatformFamily",
    "TOOLCHAIN_DEFAULTS",
    "classify_target",
    "resolve_toolchain",
]
