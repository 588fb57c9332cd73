import unittest

import numpy as np

from config import ControllerConfig, VehicleConfig
from models import InfeasibleQPError, ReferenceTrajectory, VehicleDynamicsModel
from solvers import RTISolver, TrackingOCP


def _build_solver(waypoints, horizon_steps=5, total_time=70.0, **config_overrides):
    model = VehicleDynamicsModel(VehicleConfig())
    reference = ReferenceTrajectory.from_waypoints(waypoints, total_time=total_time)
    config = ControllerConfig(horizon_steps=horizon_steps, **config_overrides)
    return RTISolver(TrackingOCP(model, reference, config))


def _straight_line(x0, x1, y, n=10):
    xs = np.linspace(x0, x1, n)
    return np.column_stack([xs, np.full(n, y), np.zeros(n)])


class RTISolverTests(unittest.TestCase):
    def setUp(self):
        self.waypoints = _straight_line(10.0, 100.0, 20.0)
        self.solver = _build_solver(self.waypoints)

    def test_straight_line_feedback(self):
        control, info = self.solver.compute_feedback(self.waypoints[0], 0.0)

        expected_speed = 10.0 / self.solver.ocp.dt
        self.assertTrue(info['success'])
        self.assertAlmostEqual(control[0], expected_speed, delta=1e-3)
        self.assertLess(abs(control[1]), 1e-4)
        self.assertTrue(self.solver.vehicle.control_bounds.contains(control, tol=1e-9))
        self.assertEqual(info['predicted_states'].shape, (6, 3))
        self.assertEqual(info['predicted_controls'].shape, (5, 2))
        np.testing.assert_allclose(info['predicted_states'][0], self.waypoints[0], atol=1e-9)

    def test_feedback_is_idempotent_for_same_window(self):
        state = np.array([12.0, 21.0, 0.05])
        u1, _ = self.solver.compute_feedback(state, 0.0)
        u2, _ = self.solver.compute_feedback(state, 0.0)

        np.testing.assert_allclose(u1, u2, atol=1e-4)

    def test_warm_start_kept_and_reset(self):
        self.assertIsNone(self.solver.solver_state)
        self.solver.compute_feedback(self.waypoints[0], 0.0)
        self.assertIsNotNone(self.solver.solver_state)
        self.assertEqual(self.solver.solver_state.time, 0.0)

        self.solver.reset()
        self.assertIsNone(self.solver.solver_state)

    def test_shifted_window(self):
        dt = self.solver.ocp.dt
        self.solver.compute_feedback(self.waypoints[0], 0.0)
        control, info = self.solver.compute_feedback(self.waypoints[1], dt)

        self.assertAlmostEqual(control[0], 10.0 / dt, delta=1e-3)
        self.assertEqual(self.solver.get_statistics()['solve_count'], 2)

    def test_state_outside_bounds_is_infeasible(self):
        with self.assertRaises(InfeasibleQPError) as ctx:
            self.solver.compute_feedback(np.array([50.0, -5.0, 0.0]), 0.0)
        self.assertEqual(ctx.exception.iteration, 1)

    def test_measured_heading_is_wrapped(self):
        state = np.array([10.0, 20.0, 2.0 * np.pi])
        _, info = self.solver.compute_feedback(state, 0.0)

        self.assertAlmostEqual(info['predicted_states'][0, 2], 0.0, places=9)

    def test_terminal_cost_option(self):
        solver = _build_solver(self.waypoints, terminal_cost=True)
        control, info = solver.compute_feedback(self.waypoints[0], 0.0)

        self.assertTrue(info['success'])
        self.assertGreater(control[0], 0.0)

    def test_alternative_qp_plugin(self):
        solver = _build_solver(self.waypoints, qp_solver="qrqp")
        control, _ = solver.compute_feedback(self.waypoints[0], 0.0)

        self.assertAlmostEqual(control[0], 10.0 / solver.ocp.dt, delta=1e-3)


if __name__ == "__main__":
    unittest.main()
