from dataclasses import dataclass
from typing import Optional


@dataclass
class SimulationConfig:
    """
    Closed-loop simulation settings.

    The reference is spread uniformly over `total_time`; the sample period
    of both reference and controller is total_time / (n_waypoints - 1).
    Set `sampling_interval` instead to fix the period directly.
    """

    total_time: float = 70.0                    # [s] duration of the path
    sampling_interval: Optional[float] = None   # [s] overrides total_time

    # Process integrator (scipy.integrate.solve_ivp)
    integrator_method: str = "RK45"
    rtol: float = 1e-8
    atol: float = 1e-10

    # Reference file parsing
    strict_parsing: bool = False

    def __post_init__(self):
        if self.sampling_interval is None and self.total_time <= 0:
            raise ValueError(f"total_time must be > 0, got {self.total_time}")
        if self.sampling_interval is not None and self.sampling_interval <= 0:
            raise ValueError(f"sampling_interval must be > 0, got {self.sampling_interval}")
