"""
Kinematic single-track (bicycle) car in the time domain

    dx/dt     = v * cos(theta)
    dy/dt     = v * sin(theta)
    dtheta/dt = v * tan(delta) / L

State: x = [x, y, theta], Control: u = [v, delta]

The same ODE is provided twice: as a numpy function for the process
integrator and as a cached CasADi function for the optimizer.
"""
from dataclasses import dataclass
from typing import Dict

import casadi as ca
import numpy as np

from config import VehicleConfig

NX = 3  # x, y, theta
NU = 2  # v, delta
THETA = 2  # heading index in the state


@dataclass(frozen=True)
class StateBounds:
    """Box on (x, y, theta)"""
    lower: np.ndarray
    upper: np.ndarray

    def contains(self, state: np.ndarray, tol: float = 0.0) -> bool:
        state = np.asarray(state, dtype=float)
        return bool(np.all(np.isfinite(state))
                    and np.all(state >= self.lower - tol)
                    and np.all(state <= self.upper + tol))

    def violations(self, state: np.ndarray) -> Dict[str, float]:
        """Amount by which each component leaves the box (only violated ones)"""
        state = np.asarray(state, dtype=float)
        out = {}
        for name, value, lo, hi in zip(('x', 'y', 'theta'), state, self.lower, self.upper):
            if value < lo:
                out[name] = float(lo - value)
            elif value > hi:
                out[name] = float(value - hi)
        return out


@dataclass(frozen=True)
class ControlBounds:
    """Box on (v, delta)"""
    lower: np.ndarray
    upper: np.ndarray

    def contains(self, control: np.ndarray, tol: float = 0.0) -> bool:
        control = np.asarray(control, dtype=float)
        return bool(np.all(control >= self.lower - tol) and np.all(control <= self.upper + tol))


class VehicleDynamicsModel:
    """
    Kinematic car model for optimization and simulation.

    Pure function evaluation: bounds are exposed for the OCP but never
    enforced here.
    """

    def __init__(self, vehicle_params: VehicleConfig):
        self.vehicle = vehicle_params

        # Cache for CasADi function
        self._dynamics_func = None

        self.state_bounds = StateBounds(
            lower=np.array([vehicle_params.x_min, vehicle_params.y_min, vehicle_params.theta_min]),
            upper=np.array([vehicle_params.x_max, vehicle_params.y_max, vehicle_params.theta_max]),
        )
        self.control_bounds = ControlBounds(
            lower=np.array([vehicle_params.v_min, vehicle_params.delta_min]),
            upper=np.array([vehicle_params.v_max, vehicle_params.delta_max]),
        )

    @property
    def wheelbase(self) -> float:
        return self.vehicle.wheelbase

    def derivative(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        """State rate for the process simulator (numpy, side-effect free)"""
        theta = state[2]
        v, delta = control[0], control[1]
        return np.array([
            v * np.cos(theta),
            v * np.sin(theta),
            v * np.tan(delta) / self.vehicle.wheelbase,
        ])

    def create_dynamics(self) -> ca.Function:
        """
        Create CasADi function for the time-domain dynamics.

        State: x = [x, y, theta]
        Control: u = [v, delta]

        Returns: dx/dt
        """

        if self._dynamics_func is not None:
            return self._dynamics_func

        # States
        px = ca.SX.sym('x')         # Position x (m)
        py = ca.SX.sym('y')         # Position y (m)
        theta = ca.SX.sym('theta')  # Heading (rad)

        # Controls
        v = ca.SX.sym('v')          # Velocity (m/s)
        delta = ca.SX.sym('delta')  # Steering angle (rad)

        x = ca.vertcat(px, py, theta)
        u = ca.vertcat(v, delta)
        x_dot = ca.vertcat(
            v * ca.cos(theta),
            v * ca.sin(theta),
            v * ca.tan(delta) / self.vehicle.wheelbase,
        )

        self._dynamics_func = ca.Function(
            'dynamics', [x, u], [x_dot],
            ['x', 'u'], ['x_dot']
        )

        return self._dynamics_func

    def get_constraints(self) -> Dict:
        """Return system constraints"""
        veh = self.vehicle
        return {
            # Position box
            'x_min': veh.x_min,
            'x_max': veh.x_max,
            'y_min': veh.y_min,
            'y_max': veh.y_max,

            # Heading
            'theta_min': veh.theta_min,
            'theta_max': veh.theta_max,

            # Control limits
            'v_min': veh.v_min,
            'v_max': veh.v_max,
            'delta_min': veh.delta_min,
            'delta_max': veh.delta_max,
        }
