"""
Receding-horizon controller configuration

Real-time iteration settings:
- Multiple shooting with an RK4 integrator per shooting interval
- Gauss-Newton Hessian (J'J) with fixed Levenberg-Marquardt damping
- One QP per iteration, infeasible QP stops the run (no relaxation)
- Least-squares tracking of (x, y, theta) with negligible control weight
"""

from dataclasses import dataclass, field, replace
from typing import Mapping, Tuple

QP_SOLVERS = ("qpoases", "qrqp", "osqp")


@dataclass
class ControllerConfig:
    """Configuration parameters for the RTI tracking controller"""

    # Horizon: N shooting intervals of one reference sample period each
    horizon_steps: int = 25

    # Stage weights on (x, y, theta, v, delta)
    stage_weights: Tuple[float, ...] = (1.0, 1.0, 0.7, 1e-6, 1e-6)

    # End term (disabled in the tuned setup, kept as an option)
    terminal_cost: bool = False
    terminal_weights: Tuple[float, ...] = (1.0, 1.0, 1.0)

    # Gauss-Newton / Levenberg-Marquardt
    max_iterations: int = 20
    kkt_tolerance: float = 1e-8
    levenberg_marquardt: float = 1e-4

    # RK4 sub-steps per shooting interval
    integrator_steps: int = 4

    # QP subproblem
    qp_solver: str = "qpoases"
    qp_options: dict = field(default_factory=dict)

    # Normalize the measured heading into [-pi, pi] before it enters the OCP
    wrap_heading: bool = True

    verbose: bool = False

    def __post_init__(self):
        self.stage_weights = tuple(float(w) for w in self.stage_weights)
        self.terminal_weights = tuple(float(w) for w in self.terminal_weights)

        if len(self.stage_weights) != 5:
            raise ValueError(f"stage_weights needs 5 entries (x, y, theta, v, delta), got {len(self.stage_weights)}")
        if len(self.terminal_weights) != 3:
            raise ValueError(f"terminal_weights needs 3 entries (x, y, theta), got {len(self.terminal_weights)}")
        if any(w < 0 for w in self.stage_weights + self.terminal_weights):
            raise ValueError("weights must be non-negative")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.integrator_steps < 1:
            raise ValueError("integrator_steps must be >= 1")
        if self.levenberg_marquardt < 0:
            raise ValueError("levenberg_marquardt must be >= 0")
        if self.qp_solver not in QP_SOLVERS:
            raise ValueError(f"Unknown QP solver: {self.qp_solver}. Options: {list(QP_SOLVERS)}")

    @property
    def n_residuals(self) -> int:
        """Least-squares residual rows per horizon"""
        return 5 * self.horizon_steps + (3 if self.terminal_cost else 0)


_PRESET_OVERRIDES: Mapping[str, dict] = {
    # Tuned setup: N = 25, no end term
    "default": {},
    # Same tracking problem with the end term switched on
    "terminal": {
        "terminal_cost": True,
    },
    # Short horizon and small iteration budget for quick runs
    "fast": {
        "horizon_steps": 10,
        "max_iterations": 10,
        "integrator_steps": 2,
    },
}


def get_controller_config(preset: str = "default", base: ControllerConfig | None = None) -> ControllerConfig:
    cfg = base or ControllerConfig()

    if preset not in _PRESET_OVERRIDES:
        raise ValueError(f"Unknown controller preset: {preset}. Options: {list(_PRESET_OVERRIDES.keys())}")

    return replace(cfg, **_PRESET_OVERRIDES[preset])
