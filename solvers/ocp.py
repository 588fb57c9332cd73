"""
Tracking OCP over a receding horizon (multiple shooting)

Problem Formulation:
    minimize    1/2 * sum_k || Q^1/2 * (h(x_k, u_k) - [r_k, 0, 0]) ||^2
                (+ 1/2 * || P^1/2 * (x_N - r_N) ||^2 if the end term is on)
    subject to:
        x_0 = s_0                                  (fixed bound, see pin_bounds)
        x_{k+1} = F(x_k, u_k)                      (RK4 shooting over dt)
        x_min <= x_k <= x_max      k = 0..N        (path constraints,
                                                   heading on k = 0 only)
        u_min <= u_k <= u_max      k = 0..N-1

    with h(x, u) = (x, y, theta, v, delta) and heading errors wrapped.

Decision vector layout: w = [x_0, u_0, x_1, u_1, ..., x_{N-1}, u_{N-1}, x_N]
Parameter vector layout: p = [s_0, r_0, ..., r_{N-1}, r_N]
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import casadi as ca
import numpy as np

from config import ControllerConfig
from models import (
    NX, NU,
    THETA,
    VehicleDynamicsModel,
    ReferenceTrajectory,
    InfeasibleHorizonError,
)


@dataclass(frozen=True, eq=False)
class HorizonGrid:
    """N+1 uniformly spaced shooting nodes starting at t0"""
    t0: float
    dt: float
    n_intervals: int

    @property
    def times(self) -> np.ndarray:
        return self.t0 + self.dt * np.arange(self.n_intervals + 1)


@dataclass(frozen=True, eq=False)
class OCPInstance:
    """Per-step snapshot: measured state, grid, and the reference slice"""
    initial_state: np.ndarray                  # (3,)
    grid: HorizonGrid
    stage_reference: np.ndarray                # (N, 3), one per shooting interval
    terminal_reference: Optional[np.ndarray]   # (3,) or None without end term

    def parameters(self) -> np.ndarray:
        """Flatten into the OCP parameter vector p"""
        terminal = self.terminal_reference if self.terminal_reference is not None else np.zeros(NX)
        return np.concatenate([self.initial_state, self.stage_reference.ravel(), terminal])


def _wrapped(angle):
    return ca.atan2(ca.sin(angle), ca.cos(angle))


class TrackingOCP:
    """
    Assembles the horizon-length least-squares tracking problem.

    The symbolic problem is built once; each control step only creates a
    new OCPInstance (parameter values).
    """

    def __init__(self,
                 vehicle_model: VehicleDynamicsModel,
                 reference: ReferenceTrajectory,
                 config: ControllerConfig):
        self.vehicle = vehicle_model
        self.reference = reference
        self.config = config

        self.N = config.horizon_steps
        self.dt = reference.dt
        self._check_horizon()

        self.nw = NX * (self.N + 1) + NU * self.N
        self.n_params = NX + NX * self.N + NX
        self.n_eq = NX * self.N

        self.state_bounds = vehicle_model.state_bounds
        self.control_bounds = vehicle_model.control_bounds
        self.lbw, self.ubw = self._build_bounds()

        self.shoot = self._build_shooting_function()
        self._build_problem_functions()

    def _check_horizon(self):
        if self.N < 1:
            raise InfeasibleHorizonError(f"horizon needs at least 1 shooting interval, got N={self.N}")
        if not (np.isfinite(self.dt) and self.dt > 0):
            raise InfeasibleHorizonError(f"shooting interval must be > 0, got dt={self.dt}")

    # =====================================================================
    # LAYOUT
    # =====================================================================

    def state_index(self, k: int) -> slice:
        start = k * (NX + NU)
        return slice(start, start + NX)

    def control_index(self, k: int) -> slice:
        start = k * (NX + NU) + NX
        return slice(start, start + NU)

    def pack(self, states: np.ndarray, controls: np.ndarray) -> np.ndarray:
        """(N+1, 3) states and (N, 2) controls -> w"""
        w = np.empty(self.nw)
        for k in range(self.N):
            w[self.state_index(k)] = states[k]
            w[self.control_index(k)] = controls[k]
        w[self.state_index(self.N)] = states[self.N]
        return w

    def unpack(self, w: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """w -> (N+1, 3) states and (N, 2) controls"""
        states = np.array([w[self.state_index(k)] for k in range(self.N + 1)])
        controls = np.array([w[self.control_index(k)] for k in range(self.N)])
        return states, controls

    def _build_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Path boxes on every node and interval. Heading is an angle modulo
        2*pi: only the (wrapped) initial node carries the heading box, the
        predicted headings are free so a trajectory can turn through +-pi.
        """
        lbw = np.empty(self.nw)
        ubw = np.empty(self.nw)
        for k in range(self.N + 1):
            lbw[self.state_index(k)] = self.state_bounds.lower
            ubw[self.state_index(k)] = self.state_bounds.upper
            if k > 0:
                lbw[self.state_index(k).start + THETA] = -np.inf
                ubw[self.state_index(k).start + THETA] = np.inf
            if k < self.N:
                lbw[self.control_index(k)] = self.control_bounds.lower
                ubw[self.control_index(k)] = self.control_bounds.upper
        return lbw, ubw

    def pin_bounds(self, w: np.ndarray, s0: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Step bounds lbw - w <= dw <= ubw - w, with the initial node fixed to
        the measured state (lower == upper).
        """
        lbx = self.lbw - w
        ubx = self.ubw - w
        idx = self.state_index(0)
        lbx[idx] = s0 - w[idx]
        ubx[idx] = s0 - w[idx]
        return lbx, ubx

    # =====================================================================
    # PER-STEP INSTANCE
    # =====================================================================

    def build_grid(self, t: float) -> HorizonGrid:
        return HorizonGrid(t0=float(t), dt=self.dt, n_intervals=self.N)

    def build_instance(self, state: np.ndarray, t: float) -> OCPInstance:
        """Slice the reference into the horizon window starting at t"""
        self._check_horizon()
        grid = self.build_grid(t)
        node_reference = self.reference.sample(grid.times)

        stage_reference = node_reference[:self.N]
        if stage_reference.shape[0] < self.N:
            raise InfeasibleHorizonError(
                f"only {stage_reference.shape[0]} reference samples for N={self.N} intervals")

        terminal_reference = node_reference[self.N] if self.config.terminal_cost else None

        initial_state = np.array(state, dtype=float).reshape(NX)
        stage_reference.setflags(write=False)
        initial_state.setflags(write=False)
        return OCPInstance(
            initial_state=initial_state,
            grid=grid,
            stage_reference=stage_reference,
            terminal_reference=terminal_reference,
        )

    # =====================================================================
    # SYMBOLIC PROBLEM
    # =====================================================================

    def _build_shooting_function(self) -> ca.Function:
        """RK4 with `integrator_steps` sub-steps over one shooting interval"""
        f = self.vehicle.create_dynamics()
        x = ca.SX.sym('x', NX)
        u = ca.SX.sym('u', NU)

        M = self.config.integrator_steps
        h = self.dt / M
        x_next = x
        for _ in range(M):
            k1 = f(x_next, u)
            k2 = f(x_next + h / 2 * k1, u)
            k3 = f(x_next + h / 2 * k2, u)
            k4 = f(x_next + h * k3, u)
            x_next = x_next + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)

        return ca.Function('shoot', [x, u], [x_next], ['x', 'u'], ['x_next'])

    def _build_problem_functions(self):
        N = self.N
        w = ca.SX.sym('w', self.nw)
        p = ca.SX.sym('p', self.n_params)

        q_sqrt = np.sqrt(np.array(self.config.stage_weights))
        p_sqrt = np.sqrt(np.array(self.config.terminal_weights))

        residuals = []
        constraints = []

        for k in range(N):
            x_k = w[self.state_index(k)]
            u_k = w[self.control_index(k)]
            r_k = p[NX + NX * k: NX + NX * (k + 1)]

            # Stage residual: position, wrapped heading, control regularization
            residuals.append(q_sqrt[0] * (x_k[0] - r_k[0]))
            residuals.append(q_sqrt[1] * (x_k[1] - r_k[1]))
            residuals.append(q_sqrt[2] * _wrapped(x_k[2] - r_k[2]))
            residuals.append(q_sqrt[3] * u_k[0])
            residuals.append(q_sqrt[4] * u_k[1])

            # Continuity between shooting nodes
            constraints.append(self.shoot(x_k, u_k) - w[self.state_index(k + 1)])

        if self.config.terminal_cost:
            x_N = w[self.state_index(N)]
            r_N = p[NX + NX * N: NX + NX * (N + 1)]
            residuals.append(p_sqrt[0] * (x_N[0] - r_N[0]))
            residuals.append(p_sqrt[1] * (x_N[1] - r_N[1]))
            residuals.append(p_sqrt[2] * _wrapped(x_N[2] - r_N[2]))

        r = ca.vertcat(*residuals)
        g = ca.vertcat(*constraints)
        self.n_residuals = r.shape[0]

        self.residual = ca.Function('residual', [w, p], [r], ['w', 'p'], ['r'])
        self.linearize = ca.Function(
            'linearize', [w, p],
            [r, ca.jacobian(r, w), g, ca.jacobian(g, w)],
            ['w', 'p'], ['r', 'J_r', 'g', 'J_g']
        )

    def objective(self, w: np.ndarray, p: np.ndarray) -> float:
        """1/2 ||r(w, p)||^2"""
        r = self.residual(w, p).full().ravel()
        return 0.5 * float(r @ r)
