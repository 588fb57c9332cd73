from dataclasses import dataclass, replace
from typing import Mapping
import math


@dataclass
class VehicleConfig:
    """
    Kinematic single-track car used by the path tracker.

    Bounds are the admissible box of the planner's SE(2) state space
    (0..200 m in x and y) plus actuator limits.
    """

    # ==================== Geometry ====================
    wheelbase: float = 10.0          # [m] L in d(theta)/dt = v*tan(delta)/L

    # ==================== State Bounds ====================
    x_min: float = 0.0               # [m]
    x_max: float = 200.0             # [m]
    y_min: float = 0.0               # [m]
    y_max: float = 200.0             # [m]
    theta_min: float = -math.pi      # [rad]
    theta_max: float = math.pi       # [rad]

    # ==================== Control Bounds ====================
    v_min: float = -10.0             # [m/s] reverse allowed
    v_max: float = 10.0              # [m/s]
    delta_min: float = -math.pi / 3  # [rad] steering lock
    delta_max: float = math.pi / 3   # [rad]

    def __post_init__(self):
        if self.wheelbase <= 0:
            raise ValueError(f"wheelbase must be > 0, got {self.wheelbase}")

    @property
    def min_turning_radius(self) -> float:
        """Tightest radius reachable at full steering lock [m]"""
        return self.wheelbase / math.tan(max(abs(self.delta_min), abs(self.delta_max)))


_VEHICLE_PRESETS: Mapping[str, dict] = {
    "simple_car": {},
    # 1 m wheelbase, same box
    "compact": {
        "wheelbase": 1.0,
    },
}


def get_vehicle_config(preset: str = "simple_car", base: VehicleConfig | None = None, **overrides) -> VehicleConfig:
    cfg = base or VehicleConfig()

    try:
        cfg = replace(cfg, **_VEHICLE_PRESETS[preset])
    except KeyError as e:
        raise ValueError(f"Unknown vehicle preset: {preset}. Options: {list(_VEHICLE_PRESETS.keys())}") from e

    return replace(cfg, **overrides) if overrides else cfg
