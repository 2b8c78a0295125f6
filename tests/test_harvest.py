from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Sequence
import os
import tempfile
import textwrap
import unittest

from distbuild.command_runner import CommandResult, CommandRunner
from distbuild.errors import ExecutionError, ParseError
from distbuild.harvest import (
    BrewEnvironmentHarvester,
    HarvestedEnvironment,
    calculate_cflags,
    calculate_ldflags,
    formula_prefixes,
    parse_env,
    select_env,
)


class CannedRunner(CommandRunner):
    def __init__(self, *, stdout: bytes = b"", returncode: int = 0, error: OSError | None = None) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.error = error
        self.calls: List[List[str]] = []

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        self.calls.append(list(command))
        if self.error is not None:
            raise ExecutionError(command, self.error)
        return CommandResult(command=command, returncode=self.returncode, stdout=self.stdout)


class ParseEnvTests(unittest.TestCase):
    def test_parses_key_value_lines(self) -> None:
        parsed = parse_env("HOME=/Users/me\nFLAGS=-DA=1 -DB=2\nEMPTY=\n")
        self.assertEqual(parsed, {"HOME": "/Users/me", "FLAGS": "-DA=1 -DB=2", "EMPTY": ""})

    def test_rejects_line_without_separator(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_env("GOOD=1\nnot a variable\n")
        self.assertEqual(ctx.exception.line, "not a variable")


class DerivedFlagsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.opt = Path(self.temp_dir.name) / "opt"
        (self.opt / "openssl@3" / "bin").mkdir(parents=True)
        (self.opt / "libpng").mkdir(parents=True)
        self.environment = {
            "HOMEBREW_DEPENDENCIES": "openssl@3,homebrew/core/libpng",
            "HOMEBREW_OPT": str(self.opt),
            "PKG_CONFIG_PATH": "/opt/homebrew/lib/pkgconfig",
            "CMAKE_LIBRARY_PATH": "/opt/homebrew/lib",
            "HOMEBREW_SECRET": "drop-me",
        }

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_formula_prefixes_use_short_names(self) -> None:
        self.assertEqual(
            formula_prefixes(self.environment),
            [
                ("openssl@3", f"{self.opt}/openssl@3"),
                ("homebrew/core/libpng", f"{self.opt}/libpng"),
            ],
        )

    def test_formula_prefixes_need_opt_directory(self) -> None:
        self.assertEqual(formula_prefixes({"HOMEBREW_DEPENDENCIES": "zlib"}), [])

    def test_flags_cover_every_formula(self) -> None:
        self.assertEqual(
            calculate_cflags(self.environment),
            f"-I{self.opt}/openssl@3/include -I{self.opt}/libpng/include",
        )
        self.assertEqual(
            calculate_ldflags(self.environment),
            f"-L{self.opt}/openssl@3/lib -L{self.opt}/libpng/lib",
        )

    def test_flags_absent_without_formulas(self) -> None:
        self.assertIsNone(calculate_cflags({}))
        self.assertIsNone(calculate_ldflags({}))

    def test_select_env_forwards_allow_list_and_existing_bin_dirs(self) -> None:
        selected = select_env(self.environment, {"PATH": "/usr/bin"})
        self.assertEqual(
            selected,
            [
                ("PATH", os.pathsep.join(["/usr/bin", f"{self.opt}/openssl@3/bin"])),
                ("PKG_CONFIG_PATH", "/opt/homebrew/lib/pkgconfig"),
                ("CMAKE_LIBRARY_PATH", "/opt/homebrew/lib"),
            ],
        )
        self.assertNotIn("HOMEBREW_SECRET", dict(selected))


class BrewEnvironmentHarvesterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.cwd = Path(self.temp_dir.name)
        (self.cwd / "Brewfile").write_text('brew "zlib"\n')
        self.opt = self.cwd / "opt"
        self.output = textwrap.dedent(
            """
            HOMEBREW_DEPENDENCIES=zlib
            HOMEBREW_OPT={opt}
            PKG_CONFIG_LIBDIR={opt}/zlib/lib/pkgconfig
            """
        ).lstrip().format(opt=self.opt).encode()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _harvester(self, runner: CommandRunner, *, brew: str | None = "/opt/homebrew/bin/brew", ambient=None) -> BrewEnvironmentHarvester:
        return BrewEnvironmentHarvester(runner, brew=brew, cwd=self.cwd, ambient=ambient or {"PATH": "/usr/bin"})

    def test_harvest_derives_variables_and_flags(self) -> None:
        runner = CannedRunner(stdout=self.output)
        harvest = self._harvester(runner).harvest()
        self.assertEqual(runner.calls, [["/opt/homebrew/bin/brew", "bundle", "exec", "--", "/usr/bin/env"]])
        self.assertEqual(harvest.variables, [("PKG_CONFIG_LIBDIR", f"{self.opt}/zlib/lib/pkgconfig")])
        self.assertEqual(harvest.cflags, f"-I{self.opt}/zlib/include")
        self.assertEqual(harvest.ldflags, f"-L{self.opt}/zlib/lib")

    def test_sentinel_skips_lookup(self) -> None:
        runner = CannedRunner(stdout=self.output)
        harvest = self._harvester(runner, ambient={"DO_NOT_USE_BREWFILE": "1"}).harvest()
        self.assertEqual(runner.calls, [])
        self.assertTrue(harvest.is_empty)

    def test_missing_brew_or_brewfile_skips_lookup(self) -> None:
        runner = CannedRunner(stdout=self.output)
        self.assertTrue(self._harvester(runner, brew=None).harvest().is_empty)
        (self.cwd / "Brewfile").unlink()
        self.assertTrue(self._harvester(runner).harvest().is_empty)
        self.assertEqual(runner.calls, [])

    def test_launch_failure_degrades(self) -> None:
        runner = CannedRunner(error=FileNotFoundError(2, "No such file or directory"))
        with self.assertLogs("distbuild.harvest", level="WARNING"):
            harvest = self._harvester(runner).harvest()
        self.assertEqual(harvest, HarvestedEnvironment.empty())

    def test_non_zero_exit_degrades(self) -> None:
        runner = CannedRunner(stdout=self.output, returncode=1)
        with self.assertLogs("distbuild.harvest", level="WARNING"):
            harvest = self._harvester(runner).harvest()
        self.assertTrue(harvest.is_empty)

    def test_empty_output_degrades(self) -> None:
        self.assertTrue(self._harvester(CannedRunner(stdout=b"\n")).harvest().is_empty)

    def test_malformed_output_is_surfaced(self) -> None:
        runner = CannedRunner(stdout=b"Using zlib\nPATH=/usr/bin\n")
        with self.assertRaises(ParseError):
            self._harvester(runner).harvest()


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
