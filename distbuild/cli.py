"""Command line interface for the distbuild tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import logging
import sys

from .build import BuildExecutor, BuildPlanner
from .command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import DistConfig, load_dist_config
from .errors import DistBuildError, PreconditionError
from .model import BuildPlan, GenericBuildStep, Tools

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(level_name: str, *, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _collect_targets(values: List[str]) -> List[str]:
    targets: List[str] = []
    for value in values:
        if not value:
            continue
        targets.extend(part.strip() for part in value.split(",") if part.strip())
    return targets


def _filter_plan(plan: BuildPlan, targets: List[str]) -> BuildPlan:
    if not targets:
        return plan
    wanted = set(targets)
    unknown = wanted - {step.target_triple for step in plan.generic_steps}
    if unknown:
        raise PreconditionError(f"No binaries to build for target(s): {', '.join(sorted(unknown))}")
    return BuildPlan(
        steps=[step for step in plan.steps if isinstance(step, GenericBuildStep) and step.target_triple in wanted]
    )


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="distbuild", description="Plan and run generic distribution builds")
    parser.add_argument("--config", help="Path to the dist configuration file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("plan", help="Show the planned build steps")

    build_parser = subparsers.add_parser("build", help="Run the planned build steps")
    build_parser.add_argument(
        "--target",
        action="append",
        default=[],
        help="Only build the given target triple(s) (comma-separated, repeatable)",
    )
    build_parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    config = load_dist_config(workspace, args.config)
    _configure_logging(config.log_level, verbose=args.verbose)

    try:
        if args.command == "plan":
            return _handle_plan(config)
        if args.command == "build":
            return _handle_build(args, config, workspace)
    except DistBuildError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    raise ValueError(f"Unknown command: {args.command}")


def _handle_plan(config: DistConfig) -> int:
    graph = config.to_graph()
    plan = BuildPlanner(graph).plan()
    if not plan.steps:
        print("No build steps (no binaries need copying)")
        return 0
    for step in plan.steps:
        print(step.describe())
        if isinstance(step, GenericBuildStep):
            for binary in graph.binaries_for(step.expected_binaries):
                print(f"  {binary.name or binary.file_name}: {binary.file_name}")
        else:
            for artifact in step.expected_artifacts:
                print(f"  {artifact}")
    return 0


def _handle_build(args: Namespace, config: DistConfig, workspace: Path) -> int:
    runner: SubprocessCommandRunner | RecordingCommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    graph = config.to_graph(Tools.discover())
    plan = _filter_plan(BuildPlanner(graph).plan(), _collect_targets(args.target))
    executor = BuildExecutor(graph, command_runner=runner, cwd=workspace)
    reports = executor.execute_plan(plan, dry_run=args.dry_run)

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted(workspace=workspace):
            print(line)
        return 0

    for report in reports:
        for path in report.copied:
            print(f"  {path}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
