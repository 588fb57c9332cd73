import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np

from models import MalformedInputError, ReferenceTrajectory
from utils.io import (
    load_waypoints,
    parse_waypoint_line,
    read_rows,
    write_controls,
    write_states,
    write_text,
)


class WaypointParsingTests(unittest.TestCase):
    def test_parse_line_zero_fills_after_first_bad_field(self):
        self.assertEqual(parse_waypoint_line("1 2 3"), ([1.0, 2.0, 3.0], True))
        self.assertEqual(parse_waypoint_line("1 2"), ([1.0, 2.0, 0.0], False))
        self.assertEqual(parse_waypoint_line("1 abc 3"), ([1.0, 0.0, 0.0], False))
        self.assertEqual(parse_waypoint_line("1 2 3 4 5"), ([1.0, 2.0, 3.0], True))
        self.assertEqual(parse_waypoint_line("1 inf 3"), ([1.0, 0.0, 0.0], False))


class WaypointFileTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, text: str) -> Path:
        path = self.tmp / "path.txt"
        path.write_text(text)
        return path

    def test_tolerant_mode_skips_comments_and_zero_fills(self):
        path = self._write("# planner output\n0 0 0\n\n10 5\n20 10 0.5  # last\n")
        waypoints = load_waypoints(path)

        np.testing.assert_array_equal(waypoints, [[0, 0, 0], [10, 5, 0], [20, 10, 0.5]])

    def test_strict_mode_rejects_short_line(self):
        path = self._write("0 0 0\n10 5\n20 10 0.5\n")
        with self.assertRaises(MalformedInputError):
            load_waypoints(path, strict=True)

    def test_needs_two_well_formed_lines(self):
        with self.assertRaises(MalformedInputError):
            load_waypoints(self._write("0 0 0\n1 x\n"))
        with self.assertRaises(MalformedInputError):
            load_waypoints(self._write("\n# nothing\n"))

    def test_undecodable_bytes_are_zero_filled(self):
        path = self.tmp / "path.txt"
        path.write_bytes(b"0 0 0\n\xff\xfe 1 1\n10 0 0\n")

        np.testing.assert_array_equal(load_waypoints(path), [[0, 0, 0], [0, 0, 0], [10, 0, 0]])

    def test_undecodable_bytes_rejected_in_strict_mode(self):
        path = self.tmp / "path.txt"
        path.write_bytes(b"0 0 0\n\xff\xfe 1 1\n10 0 0\n")

        with self.assertRaises(MalformedInputError):
            load_waypoints(path, strict=True)

    def test_missing_file(self):
        with self.assertRaises(MalformedInputError):
            load_waypoints(self.tmp / "does_not_exist.txt")

    def test_reference_from_file(self):
        path = self._write("0 0 0\n10 0 0\n20 0 0\n")
        ref = ReferenceTrajectory.from_file(path, total_time=70.0)

        self.assertEqual(len(ref), 3)
        self.assertAlmostEqual(ref.dt, 35.0, places=12)


class TrajectoryOutputTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_states_round_trip_at_full_precision(self):
        states = np.array([[0.1, 1.0 / 3.0, -np.pi], [1e-17, 199.99999999999997, 2.0]])
        path = write_states(self.tmp / "output_states.txt", states)

        np.testing.assert_array_equal(read_rows(path, 3), states)
        self.assertEqual(len(path.read_text().splitlines()), 2)

    def test_empty_controls_file(self):
        path = write_controls(self.tmp / "output_controls.txt", np.empty((0, 2)))

        self.assertEqual(path.read_text(), "")
        self.assertEqual(read_rows(path, 2).shape, (0, 2))

    def test_write_leaves_no_temporary_files(self):
        write_states(self.tmp / "output_states.txt", np.zeros((3, 3)))
        write_states(self.tmp / "output_states.txt", np.ones((2, 3)))

        self.assertEqual(sorted(os.listdir(self.tmp)), ["output_states.txt"])
        np.testing.assert_array_equal(read_rows(self.tmp / "output_states.txt", 3), np.ones((2, 3)))

    def test_text_write_keeps_old_file_when_replace_fails(self):
        path = write_text(self.tmp / "summary.txt", "first\n")

        with patch("utils.io.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                write_text(path, "second\n")

        self.assertEqual(path.read_text(), "first\n")
        self.assertEqual(sorted(os.listdir(self.tmp)), ["summary.txt"])


if __name__ == "__main__":
    unittest.main()
