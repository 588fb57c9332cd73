"""
Process (plant) simulator

Integrates the true continuous dynamics with an adaptive Runge-Kutta
scheme, independent of the fixed-step RK4 used inside the optimizer.
"""
import numpy as np
from scipy.integrate import solve_ivp

from config import SimulationConfig
from models import VehicleDynamicsModel, ProcessIntegrationError


class ProcessSimulator:
    """Advance the true state over one sample period under a held control"""

    def __init__(self,
                 vehicle_model: VehicleDynamicsModel,
                 method: str = "RK45",
                 rtol: float = 1e-8,
                 atol: float = 1e-10):
        self.vehicle = vehicle_model
        self.method = method
        self.rtol = rtol
        self.atol = atol

    @classmethod
    def from_config(cls, vehicle_model: VehicleDynamicsModel, config: SimulationConfig) -> 'ProcessSimulator':
        return cls(vehicle_model, method=config.integrator_method, rtol=config.rtol, atol=config.atol)

    def advance(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        """
        Integrate over [0, dt] with the control held constant (zero-order hold).

        Controls are applied as given; keeping them in bounds is the
        controller's job.
        """
        state = np.asarray(state, dtype=float)
        control = np.asarray(control, dtype=float)

        sol = solve_ivp(
            lambda t, x: self.vehicle.derivative(x, control),
            (0.0, dt), state,
            method=self.method, rtol=self.rtol, atol=self.atol,
        )

        if not sol.success:
            raise ProcessIntegrationError(f"process integration failed over dt={dt}: {sol.message}")

        next_state = sol.y[:, -1]
        if not np.all(np.isfinite(next_state)):
            raise ProcessIntegrationError(f"process integration produced non-finite state {next_state}")
        return next_state
