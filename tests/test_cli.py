"""Tests for the usertimers command line (ut.cli)."""

import os
import shutil
import tempfile
import unittest
from pathlib import Path

os.environ.setdefault("USERTIMERS_HOME", tempfile.mkdtemp(prefix="usertimers_tests_"))

from click.testing import CliRunner


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.storage = str(Path(self.tmpdir) / "storage.json")
        self.runner = CliRunner()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _run(self, *args):
        from ut.cli import cli
        result = self.runner.invoke(cli, ["--storage", self.storage, *args])
        self.assertEqual(result.exit_code, 0, result.output)
        return result.output

    def test_status_without_timers(self):
        self.assertIn("No timers.", self._run("status"))

    def test_start_is_persisted_across_invocations(self):
        self.assertIn("7 running", self._run("start", "7"))
        output = self._run("status")
        self.assertIn("7", output)
        self.assertIn("running", output)

    def test_stop_reset_forget(self):
        self._run("start", "3")
        self.assertIn("3 stopped at", self._run("stop", "3"))
        self.assertIn("stopped", self._run("status"))
        self.assertIn("3 reset", self._run("reset", "3"))
        self.assertIn("00:00:00", self._run("status"))
        self.assertIn("3 forgotten", self._run("forget", "3"))
        self.assertIn("No timers.", self._run("status"))

    def test_watch_without_running_timers(self):
        self._run("start", "4")
        self._run("stop", "4")
        self.assertIn("No running timers.", self._run("watch", "--seconds", "1"))

    def test_watch_prints_ticks_of_running_timers(self):
        import json
        from ut.core import config
        orig_settings_path = config.SETTINGS_PATH
        config.SETTINGS_PATH = Path(self.tmpdir) / "settings.json"
        self.addCleanup(setattr, config, "SETTINGS_PATH", orig_settings_path)
        with open(config.SETTINGS_PATH, "w") as f:
            json.dump({"tick_interval_ms": 50}, f)

        self._run("start", "5")
        output = self._run("watch", "--seconds", "1")
        ticks = [line.split() for line in output.splitlines() if line.strip()]
        self.assertGreater(len(ticks), 0)
        for user_id, total in ticks:
            self.assertEqual(user_id, "5")
            self.assertRegex(total, r"^00:00:0\d$")

    def test_invalid_user_id_is_rejected(self):
        from ut.cli import cli
        result = self.runner.invoke(cli, ["--storage", self.storage, "start", "abc"])
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
