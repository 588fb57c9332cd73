import tempfile
import unittest
from pathlib import Path

from config import (
    ControllerConfig,
    SimulationConfig,
    get_controller_config,
    get_default_config,
)
from config.app_config import AppConfig, build_app_config


class ControllerConfigTests(unittest.TestCase):
    def test_defaults(self):
        cfg = ControllerConfig()
        self.assertEqual(cfg.horizon_steps, 25)
        self.assertEqual(cfg.stage_weights, (1.0, 1.0, 0.7, 1e-6, 1e-6))
        self.assertFalse(cfg.terminal_cost)
        self.assertEqual(cfg.max_iterations, 20)
        self.assertEqual(cfg.kkt_tolerance, 1e-8)
        self.assertEqual(cfg.n_residuals, 125)

    def test_presets(self):
        self.assertTrue(get_controller_config("terminal").terminal_cost)
        fast = get_controller_config("fast")
        self.assertEqual(fast.horizon_steps, 10)
        self.assertEqual(fast.max_iterations, 10)

        base = ControllerConfig(qp_solver="osqp")
        self.assertEqual(get_controller_config("terminal", base=base).qp_solver, "osqp")

        with self.assertRaises(ValueError):
            get_controller_config("aggressive")

    def test_validation(self):
        with self.assertRaises(ValueError):
            ControllerConfig(qp_solver="gurobi")
        with self.assertRaises(ValueError):
            ControllerConfig(stage_weights=(1.0, 1.0, 1.0))
        with self.assertRaises(ValueError):
            ControllerConfig(max_iterations=0)
        with self.assertRaises(ValueError):
            SimulationConfig(total_time=-1.0)

    def test_default_bundle(self):
        vehicle, controller, simulation = get_default_config()
        self.assertEqual(vehicle.wheelbase, 10.0)
        self.assertEqual(controller.horizon_steps, 25)
        self.assertEqual(simulation.total_time, 70.0)


class AppConfigTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_cli_values_override_yaml(self):
        path = self.tmp / "run.yaml"
        path.write_text("horizon_steps: 10\nwheelbase: 5.0\nterminal_cost: true\n")

        args = build_app_config({"wheelbase": 3.0, "horizon_steps": None, "verbose": None}, path)

        self.assertEqual(args.horizon_steps, 10)
        self.assertEqual(args.wheelbase, 3.0)
        self.assertTrue(args.terminal_cost)
        self.assertFalse(args.verbose)
        self.assertEqual(args.total_time, AppConfig().total_time)

    def test_without_yaml(self):
        args = build_app_config({"reference": "path.txt", "qp_solver": None})
        self.assertEqual(args.reference, "path.txt")
        self.assertIsNone(args.qp_solver)

    def test_unknown_yaml_key(self):
        path = self.tmp / "run.yaml"
        path.write_text("horizon: 10\n")
        with self.assertRaises(ValueError):
            build_app_config({}, path)


if __name__ == "__main__":
    unittest.main()
