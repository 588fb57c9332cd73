import unittest
from types import SimpleNamespace
from unittest.mock import patch

import numpy as np

from config import SimulationConfig, VehicleConfig
from models import ProcessIntegrationError, VehicleDynamicsModel
from simulation import ProcessSimulator


class ProcessSimulatorTests(unittest.TestCase):
    def setUp(self):
        self.model = VehicleDynamicsModel(VehicleConfig(wheelbase=10.0))
        self.simulator = ProcessSimulator.from_config(self.model, SimulationConfig())

    def test_straight_line(self):
        nxt = self.simulator.advance(np.array([1.0, 2.0, np.pi / 4]), np.array([2.0, 0.0]), 3.0)
        d = 6.0 / np.sqrt(2.0)
        np.testing.assert_allclose(nxt, [1.0 + d, 2.0 + d, np.pi / 4], atol=1e-8)

    def test_constant_steering_follows_circular_arc(self):
        delta = np.pi / 6
        v, dt = 1.5, 4.0
        radius = 10.0 / np.tan(delta)
        phi = v * dt / radius

        nxt = self.simulator.advance(np.array([0.0, 0.0, 0.0]), np.array([v, delta]), dt)

        expected = [radius * np.sin(phi), radius * (1.0 - np.cos(phi)), phi]
        np.testing.assert_allclose(nxt, expected, atol=1e-7)

    def test_reverse(self):
        nxt = self.simulator.advance(np.array([50.0, 50.0, 0.0]), np.array([-1.0, 0.0]), 2.0)
        np.testing.assert_allclose(nxt, [48.0, 50.0, 0.0], atol=1e-9)

    def test_controls_are_not_clamped(self):
        # Out-of-range speed is applied as given
        nxt = self.simulator.advance(np.array([0.0, 0.0, 0.0]), np.array([20.0, 0.0]), 1.0)
        self.assertAlmostEqual(nxt[0], 20.0, places=7)

    def test_integrator_failure_raises(self):
        failed = SimpleNamespace(success=False, message="Required step size is less than spacing between numbers.",
                                 y=np.zeros((3, 1)))
        with patch("simulation.process.solve_ivp", return_value=failed):
            with self.assertRaises(ProcessIntegrationError):
                self.simulator.advance(np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0]), 1.0)

    def test_non_finite_state_raises(self):
        diverged = SimpleNamespace(success=True, message="", y=np.array([[0.0, np.inf], [0.0, 0.0], [0.0, 0.0]]))
        with patch("simulation.process.solve_ivp", return_value=diverged):
            with self.assertRaises(ProcessIntegrationError):
                self.simulator.advance(np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0]), 1.0)


if __name__ == "__main__":
    unittest.main()
