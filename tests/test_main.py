import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np
from typer.testing import CliRunner

from config.app_config import AppConfig, app
from main import main
from models import InitializationError, MalformedInputError
from utils import RunManager
from utils.io import read_rows


def _write_line(path: Path, y: float):
    xs = np.linspace(0.0, 100.0, 10)
    path.write_text("".join(f"{x} {y} 0\n" for x in xs))
    return path


class MainTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.out = self.tmp / "out"

    def tearDown(self):
        self._tmp.cleanup()

    def test_run_writes_outputs(self):
        ref = _write_line(self.tmp / "path.txt", 0.0)
        args = AppConfig(reference=str(ref), output_dir=str(self.out), horizon_steps=5)

        result, run_manager = main(args)

        self.assertTrue(result.completed)
        self.assertEqual(read_rows(self.out / "output_states.txt", 3).shape, (10, 3))
        self.assertEqual(read_rows(self.out / "output_controls.txt", 2).shape, (9, 2))
        self.assertTrue((self.out / "summary.txt").exists())

        timed = read_rows(self.out / "reference_timed.txt", 4)
        self.assertEqual(timed.shape, (10, 4))
        np.testing.assert_allclose(timed[:, 0], np.arange(10) * 70.0 / 9.0)
        np.testing.assert_array_equal(timed[:, 1], np.linspace(0.0, 100.0, 10))
        np.testing.assert_array_equal(timed[:, 2:], 0.0)

        summary = json.loads((self.out / "results_summary.json").read_text())
        self.assertTrue(summary['run']['completed'])
        self.assertEqual(summary['metadata']['horizon_steps'], 5)
        self.assertEqual(summary['reference_info']['n_waypoints'], 10)

    def test_failed_init_writes_empty_outputs(self):
        ref = _write_line(self.tmp / "path.txt", 250.0)
        args = AppConfig(reference=str(ref), output_dir=str(self.out), horizon_steps=5)

        with self.assertRaises(InitializationError):
            main(args)

        self.assertEqual(read_rows(self.out / "output_states.txt", 3).shape, (0, 3))
        self.assertEqual(read_rows(self.out / "output_controls.txt", 2).shape, (0, 2))
        summary = json.loads((self.out / "results_summary.json").read_text())
        self.assertFalse(summary['run']['completed'])
        self.assertTrue(summary['run']['error'].startswith("InitializationError"))

    def test_summary_rewrite_is_atomic(self):
        run_manager = RunManager(str(self.out))
        path = run_manager.save_summary("first run\n")

        with patch("utils.io.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                run_manager.save_summary("second run\n")

        self.assertEqual(path.read_text(), "first run\n")
        self.assertEqual(os.listdir(self.out), ["summary.txt"])

    def test_missing_reference(self):
        args = AppConfig(reference=str(self.tmp / "nope.txt"), output_dir=str(self.out))
        with self.assertRaises(MalformedInputError):
            main(args)

    def test_cli_exit_codes(self):
        runner = CliRunner()

        missing = runner.invoke(app, ["--reference", str(self.tmp / "nope.txt"), "--output-dir", str(self.out)])
        self.assertEqual(missing.exit_code, 1)

        ref = _write_line(self.tmp / "path.txt", 0.0)
        ok = runner.invoke(app, ["--reference", str(ref), "--output-dir", str(self.out), "--horizon-steps", "5"])
        self.assertEqual(ok.exit_code, 0, ok.output)


if __name__ == "__main__":
    unittest.main()
