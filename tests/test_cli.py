from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch
import io
import json
import os
import sys
import tempfile
import unittest

from distbuild import cli
from distbuild.model import Tools


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.workspace = Path(self.temp_dir.name)
        (self.workspace / "dist").mkdir()
        script = "import pathlib; pathlib.Path('app').write_text('linux build')"
        config = {
            "dist": {"build_command": [sys.executable, "-c", script], "dist_dir": "dist"},
            "binaries": [
                {"target": "x86_64-unknown-linux-gnu", "file_name": "app", "copy_exe_to": ["dist/app-linux"]},
                {"target": "aarch64-apple-darwin", "file_name": "app-mac", "copy_exe_to": ["dist/app-mac"]},
            ],
        }
        (self.workspace / "dist.json").write_text(json.dumps(config))
        original_cwd = Path.cwd()
        os.chdir(self.workspace)
        self.addCleanup(os.chdir, original_cwd)
        patcher = patch("distbuild.cli.Tools.discover", return_value=Tools())
        patcher.start()
        self.addCleanup(patcher.stop)

    def _main(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_plan_lists_steps_in_target_order(self) -> None:
        code, stdout, _ = self._main("plan")
        self.assertEqual(code, 0)
        lines = [line for line in stdout.splitlines() if not line.startswith("  ")]
        self.assertTrue(lines[0].startswith("generic target (aarch64-apple-darwin via"))
        self.assertTrue(lines[1].startswith("generic target (x86_64-unknown-linux-gnu via"))

    def test_build_for_single_target_copies_artifact(self) -> None:
        code, stdout, _ = self._main("build", "--target", "x86_64-unknown-linux-gnu")
        self.assertEqual(code, 0)
        self.assertEqual((self.workspace / "dist" / "app-linux").read_text(), "linux build")
        self.assertIn("app-linux", stdout)

    def test_build_reports_missing_artifact(self) -> None:
        code, _, stderr = self._main("build")
        self.assertEqual(code, 1)
        self.assertIn("error: failed to find bin app-mac", stderr)

    def test_unknown_target_is_rejected(self) -> None:
        code, stdout, stderr = self._main("build", "--target", "x86_64-unknown-linux-gnu,x86_64-unknown-linxu-gnu")
        self.assertEqual(code, 1)
        self.assertEqual(stdout, "")
        self.assertIn("error: No binaries to build for target(s): x86_64-unknown-linxu-gnu", stderr)
        self.assertFalse((self.workspace / "app").exists())

    def test_dry_run_prints_commands(self) -> None:
        code, stdout, _ = self._main("build", "--dry-run")
        self.assertEqual(code, 0)
        self.assertEqual(stdout.count("[dry-run]"), 2)
        self.assertFalse((self.workspace / "app").exists())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
