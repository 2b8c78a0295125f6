"""Harvesting of the Homebrew ``brew bundle`` environment for C builds.

When a workspace ships a ``Brewfile`` and Homebrew is available, the
dependencies it lists are installed under Homebrew's ``opt`` prefix rather
than on the default compiler search paths.  ``brew bundle exec`` knows how to
set those paths up, so we ask it to print its environment and forward the
parts of it a build needs: a few well-known search path variables, ``PATH``
entries for dependency binaries, and include/library flags for every
dependency prefix.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Tuple
import logging
import os

from .command_runner import CommandRunner
from .errors import ExecutionError, ParseError

logger = logging.getLogger(__name__)

DISABLE_SENTINEL = "DO_NOT_USE_BREWFILE"
BREWFILE = "Brewfile"

_FORWARDED_VARIABLES: Tuple[str, ...] = (
    "PKG_CONFIG_PATH",
    "PKG_CONFIG_LIBDIR",
    "CMAKE_INCLUDE_PATH",
    "CMAKE_LIBRARY_PATH",
)

ExternalEnvironmentMap = Dict[str, str]


@dataclass(slots=True)
class HarvestedEnvironment:
    variables: List[Tuple[str, str]] = field(default_factory=list)
    cflags: str | None = None
    ldflags: str | None = None

    @classmethod
    def empty(cls) -> "HarvestedEnvironment":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.variables and self.cflags is None and self.ldflags is None


def parse_env(output: str) -> ExternalEnvironmentMap:
    """Parse ``env``-style ``KEY=value`` lines into a mapping."""

    parsed: ExternalEnvironmentMap = {}
    for line in output.rstrip().split("\n"):
        key, sep, value = line.partition("=")
        if not sep:
            raise ParseError(line)
        parsed[key] = value
    return parsed


def formula_prefixes(environment: Mapping[str, str]) -> List[Tuple[str, str]]:
    """Return ``(formula, opt_prefix)`` pairs for every bundled dependency."""

    formulas = environment.get("HOMEBREW_DEPENDENCIES")
    opt_prefix = environment.get("HOMEBREW_OPT")
    if not formulas or not opt_prefix:
        return []
    packages: List[Tuple[str, str]] = []
    for formula in formulas.split(","):
        formula = formula.strip()
        if not formula:
            continue
        # Tap-qualified names (``owner/tap/name``) link under their short name.
        short_name = formula.rsplit("/", 1)[-1]
        packages.append((formula, f"{opt_prefix}/{short_name}"))
    return packages


def select_env(environment: Mapping[str, str], ambient: Mapping[str, str]) -> List[Tuple[str, str]]:
    """Pick the harvested variables that are safe to hand to a build."""

    desired: List[Tuple[str, str]] = []
    for name in _FORWARDED_VARIABLES:
        value = environment.get(name)
        if value is not None:
            desired.append((name, value))

    bin_dirs = [f"{prefix}/bin" for _, prefix in formula_prefixes(environment) if Path(prefix, "bin").is_dir()]
    if bin_dirs:
        current_path = ambient.get("PATH", "")
        entries = [current_path, *bin_dirs] if current_path else bin_dirs
        desired.insert(0, ("PATH", os.pathsep.join(entries)))
    return desired


def calculate_cflags(environment: Mapping[str, str]) -> str | None:
    prefixes = formula_prefixes(environment)
    if not prefixes:
        return None
    return " ".join(f"-I{prefix}/include" for _, prefix in prefixes)


def calculate_ldflags(environment: Mapping[str, str]) -> str | None:
    prefixes = formula_prefixes(environment)
    if not prefixes:
        return None
    return " ".join(f"-L{prefix}/lib" for _, prefix in prefixes)


class BrewEnvironmentHarvester:
    """Collects extra build environment from ``brew bundle exec``."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        brew: str | None,
        cwd: Path,
        ambient: Mapping[str, str],
    ) -> None:
        self._runner = runner
        self._brew = brew
        self._cwd = cwd
        self._ambient = ambient

    def fetch(self) -> str | None:
        """Return the raw ``env`` output of the bundle, or ``None`` when unavailable."""

        if DISABLE_SENTINEL in self._ambient:
            logger.debug("%s is set; skipping Brewfile environment", DISABLE_SENTINEL)
            return None
        if self._brew is None:
            logger.debug("Homebrew not available; skipping Brewfile environment")
            return None
        if not (self._cwd / BREWFILE).exists():
            logger.debug("No %s in %s; skipping Brewfile environment", BREWFILE, self._cwd)
            return None

        command = [self._brew, "bundle", "exec", "--", "/usr/bin/env"]
        try:
            result = self._runner.run(command, cwd=self._cwd, env=self._ambient, note="brew environment")
        except ExecutionError as exc:
            logger.warning("Could not query Brewfile environment: %s", exc)
            return None
        if not result.success:
            logger.warning("brew bundle exec exited with %d; continuing without its environment", result.returncode)
            return None
        output = result.stdout.decode("utf-8", errors="replace")
        if not output.strip():
            return None
        return output

    def harvest(self) -> HarvestedEnvironment:
        output = self.fetch()
        if output is None:
            return HarvestedEnvironment.empty()
        environment = parse_env(output)
        return HarvestedEnvironment(
            variables=select_env(environment, self._ambient),
            cflags=calculate_cflags(environment),
            ldflags=calculate_ldflags(environment),
        )


__all__ = [
    "BREWFILE",
    "BrewEnvironmentHarvester",
    "DISABLE_SENTINEL",
    "ExternalEnvironmentMap",
    "HarvestedEnvironment",
    "calculate_cflags",
    "calculate_ldflags",
    "formula_prefixes",
    "parse_env",
    "select_env",
]
