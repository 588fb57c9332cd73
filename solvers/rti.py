"""
Real-Time Iteration solver for the tracking OCP

Per control step:
    1. Prepare     - OCP instance for the window [t, t + N*dt]
    2. Discretize  - multiple shooting, states and controls are both unknowns
    3. Solve       - a fixed budget of Gauss-Newton iterations:
                         H  = J_r' J_r + lambda * I     (no exact 2nd order)
                         g  = J_r' r
                     each one a QP in the step dw:
                         min  1/2 dw' H dw + g' dw
                         s.t. J_g dw = -c              (linearized continuity)
                              lbw - w <= dw <= ubw - w (path constraints)
                              dx_0 = s_0 - x_0         (measured state)
                     stop on KKT residual < tol or when the budget runs out
    4. Extract     - apply only the control of the first interval
    5. Warm start  - keep the solution, shift it when the window moves

An infeasible QP is fatal: the step raises InfeasibleQPError and nothing is
relaxed or retried.
"""
import time
from typing import Dict, Optional, Tuple

import casadi as ca
import numpy as np

from config import ControllerConfig
from models import NU, NX, THETA, InfeasibleQPError, wrap_angle
from solvers.base import BaseSolver, SolverState
from solvers.ocp import OCPInstance, TrackingOCP

# Slack on the initial-node check for integrator round-off at a wall
BOUNDS_TOL = 1e-6


def _default_qp_options(plugin: str) -> Dict:
    if plugin == "qpoases":
        return {"error_on_fail": False, "printLevel": "none"}
    if plugin == "qrqp":
        return {"error_on_fail": False, "print_iter": False, "print_header": False}
    if plugin == "osqp":
        return {
            "error_on_fail": False,
            "osqp": {
                "verbose": False,
                "eps_abs": 1e-10,
                "eps_rel": 1e-10,
                "max_iter": 20000,
                "polish": True,
            },
        }
    raise ValueError(f"Unknown QP solver: {plugin}")


class RTISolver(BaseSolver):
    """
    Receding-horizon tracking controller using real-time iterations.

    The warm-start buffer (SolverState) is owned by the instance: created by
    the first call to compute_feedback, cleared by reset().
    """

    def __init__(self, ocp: TrackingOCP, config: Optional[ControllerConfig] = None):
        config = config or ocp.config
        super().__init__(ocp.vehicle, ocp.reference, verbose=config.verbose)
        self.ocp = ocp
        self.config = config

        self._solver_state: Optional[SolverState] = None
        self._qp = self._build_qp()

        # Performance tracking
        self.solve_count = 0
        self.total_iterations = 0
        self.total_solve_time = 0.0
        self.unconverged_count = 0

    @property
    def name(self) -> str:
        return "RTI"

    @property
    def solver_state(self) -> Optional[SolverState]:
        return self._solver_state

    def reset(self):
        """Drop the warm start (next call starts cold)"""
        self._solver_state = None

    def _build_qp(self) -> ca.Function:
        plugin = self.config.qp_solver
        opts = _default_qp_options(plugin)
        opts.update(self.config.qp_options)

        qp_structure = {
            'h': ca.Sparsity.dense(self.ocp.nw, self.ocp.nw),
            'a': ca.Sparsity.dense(self.ocp.n_eq, self.ocp.nw),
        }
        return ca.conic('rti_qp', plugin, qp_structure, opts)

    def _shoot(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        return self.ocp.shoot(x, u).full().ravel()

    # =====================================================================
    # FEEDBACK
    # =====================================================================

    def compute_feedback(self, state: np.ndarray, t: float) -> Tuple[np.ndarray, Dict]:
        """
        Solve one control step.

        Args:
            state: measured state [x, y, theta]
            t: current time, start of the horizon window

        Returns:
            control: [v, delta] for the first shooting interval
            info: solve information dictionary
        """
        start_time = time.time()

        s0 = np.array(state, dtype=float).reshape(-1)
        if self.config.wrap_heading:
            s0[2] = wrap_angle(s0[2])

        instance = self.ocp.build_instance(s0, t)
        self._check_initial_node(instance)

        w = self._initial_guess(instance)
        p = instance.parameters()

        kkt = np.inf
        converged = False
        iterations = 0
        for iteration in range(1, self.config.max_iterations + 1):
            dw, kkt = self._gauss_newton_step(w, p, iteration)
            w = w + dw
            iterations = iteration
            if kkt < self.config.kkt_tolerance:
                converged = True
                break

        states, controls = self.ocp.unpack(w)
        self._solver_state = SolverState(
            states=states,
            controls=controls,
            time=float(t),
            iterations=iterations,
            kkt=float(kkt),
        )

        solve_time = time.time() - start_time
        self.solve_count += 1
        self.total_iterations += iterations
        self.total_solve_time += solve_time
        if not converged:
            self.unconverged_count += 1
            self._log(f"t={t:.3f}s: iteration budget exhausted (kkt={kkt:.2e})")

        # Return first control only (receding horizon)
        control = controls[0].copy()

        info = {
            'success': True,
            'converged': converged,
            'iterations': iterations,
            'kkt': float(kkt),
            'cost': self.ocp.objective(w, p),
            'solve_time': solve_time,
            'predicted_states': states,
            'predicted_controls': controls,
        }
        return control, info

    def _check_initial_node(self, instance: OCPInstance):
        """
        The initial node is pinned to the measured state, so its box is
        empty when that state lies outside the path constraints. Heading is
        checked modulo 2*pi.
        """
        s0 = instance.initial_state
        wrapped = s0.copy()
        wrapped[THETA] = wrap_angle(wrapped[THETA])
        if not self.ocp.state_bounds.contains(wrapped, tol=BOUNDS_TOL):
            violations = self.ocp.state_bounds.violations(wrapped)
            self._log(f"❌ t={instance.grid.t0:.3f}s: measured state outside bounds {violations}")
            raise InfeasibleQPError(
                f"QP infeasible at t={instance.grid.t0:.3f}s: initial state {s0.tolist()} "
                f"violates path constraints {violations}",
                iteration=1,
                status="initial state outside bounds",
            )

    def _initial_guess(self, instance: OCPInstance) -> np.ndarray:
        """Shifted previous solution, or the measured state held over the horizon"""
        s0 = instance.initial_state
        N = self.ocp.N
        prev = self._solver_state

        n_shift = None
        if prev is not None:
            n_shift = int(round((instance.grid.t0 - prev.time) / self.ocp.dt))

        if prev is None or n_shift < 0:
            states = np.tile(s0, (N + 1, 1))
            controls = np.zeros((N, NU))
        elif n_shift == 0:
            states = prev.states.copy()
            controls = prev.controls.copy()
        else:
            states, controls = prev.shifted(n_shift, self._shoot)

        # Follow the measured heading across the +-pi seam
        turns = np.round((s0[2] - states[0, 2]) / (2.0 * np.pi))
        states[:, 2] += 2.0 * np.pi * turns

        states[0] = s0
        return self.ocp.pack(states, controls)

    def _gauss_newton_step(self, w: np.ndarray, p: np.ndarray, iteration: int) -> Tuple[np.ndarray, float]:
        """Linearize at w, solve the QP, return (dw, KKT residual)"""
        r, J_r, c, J_c = (v.full() for v in self.ocp.linearize(w, p))
        r = r.ravel()
        c = c.ravel()

        H = J_r.T @ J_r + self.config.levenberg_marquardt * np.eye(self.ocp.nw)
        grad = J_r.T @ r

        lbx, ubx = self.ocp.pin_bounds(w, p[:NX])

        try:
            sol = self._qp(h=H, g=grad, a=J_c, lba=-c, uba=-c, lbx=lbx, ubx=ubx)
        except RuntimeError as e:
            self._log(f"❌ QP solver error in iteration {iteration}: {e}")
            raise InfeasibleQPError(
                f"QP subproblem failed in iteration {iteration}: {e}",
                iteration=iteration,
                status="solver error",
            ) from e

        stats = self._qp.stats()
        if not stats.get('success', False):
            status = str(stats.get('return_status', 'unknown'))
            self._log(f"❌ QP infeasible in iteration {iteration} ({status})")
            raise InfeasibleQPError(
                f"QP subproblem infeasible in iteration {iteration}: {status}",
                iteration=iteration,
                status=status,
            )

        dw = sol['x'].full().ravel()
        if not np.all(np.isfinite(dw)):
            raise InfeasibleQPError(
                f"QP subproblem returned a non-finite step in iteration {iteration}",
                iteration=iteration,
                status="non-finite step",
            )
        lam_a = sol['lam_a'].full().ravel()
        lam_x = sol['lam_x'].full().ravel()

        # |grad' dw| + sum |lambda_eq * c| + sum |lambda_box * violation|
        violation = np.maximum(self.ocp.lbw - w, 0.0) + np.maximum(w - self.ocp.ubw, 0.0)
        kkt = abs(float(grad @ dw)) + float(np.sum(np.abs(lam_a * c))) + float(np.sum(np.abs(lam_x) * violation))

        return dw, kkt

    def get_statistics(self) -> Dict:
        """Get performance statistics."""
        return {
            'solve_count': self.solve_count,
            'unconverged_count': self.unconverged_count,
            'avg_iterations': self.total_iterations / max(self.solve_count, 1),
            'avg_solve_time': self.total_solve_time / max(self.solve_count, 1),
            'total_solve_time': self.total_solve_time,
        }
