"""Core build planning and execution logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence
import logging
import sys

from .artifacts import reconcile_binaries, reconcile_extra_artifacts
from .command_runner import CommandResult, CommandRunner
from .environment import resolve_build_environment, snapshot_environment
from .errors import NonZeroExitWarning, PreconditionError
from .harvest import BrewEnvironmentHarvester, HarvestedEnvironment
from .model import BinaryIdx, BuildPlan, BuildStep, DistGraph, ExtraBuildStep, GenericBuildStep, TargetTriple

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StepReport:
    step: BuildStep
    result: CommandResult
    copied: List[Path] = field(default_factory=list)
    warnings: List[NonZeroExitWarning] = field(default_factory=list)


def _require_command(command: Sequence[str] | None) -> List[str]:
    if not command:
        raise PreconditionError("A build command is mandatory for generic builds")
    return list(command)


class BuildPlanner:
    def __init__(self, graph: DistGraph) -> None:
        self._graph = graph

    def compute_generic_builds(self) -> List[GenericBuildStep]:
        # One workspace build per target triple that has a binary needing a real build.
        targets: Dict[TargetTriple, List[BinaryIdx]] = {}
        for binary_idx, binary in enumerate(self._graph.binaries):
            if binary.needs_copy:
                targets.setdefault(binary.target, []).append(binary_idx)

        if not targets:
            return []
        build_command = _require_command(self._graph.build_command)
        return [
            GenericBuildStep(
                target_triple=target,
                expected_binaries=targets[target],
                build_command=list(build_command),
            )
            for target in sorted(targets)
        ]

    def compute_extra_builds(self) -> List[ExtraBuildStep]:
        steps: List[ExtraBuildStep] = []
        for extra in self._graph.extra_builds:
            if not extra.build_command:
                raise PreconditionError(
                    f"Extra artifacts {', '.join(extra.expected_artifacts) or '<none>'} have no build command"
                )
            steps.append(ExtraBuildStep(build_command=list(extra.build_command), expected_artifacts=list(extra.expected_artifacts)))
        return steps

    def plan(self) -> BuildPlan:
        return BuildPlan(steps=[*self.compute_generic_builds(), *self.compute_extra_builds()])


class BuildExecutor:
    def __init__(
        self,
        graph: DistGraph,
        *,
        command_runner: CommandRunner,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._graph = graph
        self._command_runner = command_runner
        self._cwd = cwd or Path.cwd()
        self._ambient = snapshot_environment(env)

    def harvest(self) -> HarvestedEnvironment:
        harvester = BrewEnvironmentHarvester(
            self._command_runner,
            brew=self._graph.tools.brew,
            cwd=self._cwd,
            ambient=self._ambient,
        )
        return harvester.harvest()

    def run_build(
        self,
        command: Sequence[str],
        target: TargetTriple | None,
        *,
        harvest: bool = True,
        note: str | None = None,
    ) -> CommandResult:
        command = _require_command(command)
        harvested = self.harvest() if harvest else HarvestedEnvironment.empty()
        environment = resolve_build_environment(self._ambient, harvested, target)
        logger.info("exec: %s", self._command_runner.format_command(command))
        logger.debug("environment overrides: %s", environment.overrides(self._ambient))
        return self._command_runner.run(command, cwd=self._cwd, env=environment.as_dict(), note=note)

    def build_generic_target(self, step: GenericBuildStep) -> StepReport:
        print(f"building {step.describe()}", file=sys.stderr)
        result = self.run_build(step.build_command, step.target_triple)
        report = self._report(step, result)
        report.copied = reconcile_binaries(self._graph, step, cwd=self._cwd)
        return report

    def run_extra_artifacts_build(self, step: ExtraBuildStep) -> StepReport:
        print(f"building {step.describe()}", file=sys.stderr)
        result = self.run_build(step.build_command, None)
        report = self._report(step, result)
        report.copied = reconcile_extra_artifacts(step, dist_dir=self._graph.dist_dir, cwd=self._cwd)
        return report

    def execute(self, step: BuildStep, *, dry_run: bool = False) -> StepReport:
        if dry_run:
            target = step.target_triple if isinstance(step, GenericBuildStep) else None
            result = self.run_build(step.build_command, target, harvest=False, note=step.describe())
            return StepReport(step=step, result=result)
        if isinstance(step, GenericBuildStep):
            return self.build_generic_target(step)
        return self.run_extra_artifacts_build(step)

    def execute_plan(self, plan: BuildPlan, *, dry_run: bool = False) -> List[StepReport]:
        return [self.execute(step, dry_run=dry_run) for step in plan.steps]

    def _report(self, step: BuildStep, result: CommandResult) -> StepReport:
        report = StepReport(step=step, result=result)
        if not result.success:
            warning = NonZeroExitWarning(result.command, result.returncode)
            logger.debug("%s: %s", self._command_runner.format_command(result.command), warning)
            print(warning, file=sys.stderr)
            report.warnings.append(warning)
        if result.stdout:
            print(file=sys.stderr)
            print("stdout:", file=sys.stderr)
            sys.stderr.write(result.stdout.decode("utf-8", errors="replace"))
            sys.stderr.flush()
        return report


__all__ = [
    "BuildExecutor",
    "BuildPlanner",
    "StepReport",
]
