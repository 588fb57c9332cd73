"""
State validity interface of the upstream planner.

The planner that produced the reference path checks states with a validity
predicate and a clearance metric. The tracker never plans, it only uses this
interface to audit a loaded reference.
"""
import numpy as np
from abc import ABC, abstractmethod

from .vehicle_dynamics import StateBounds


class StateValidityChecker(ABC):
    """Validity predicate plus clearance metric over (x, y, theta)"""

    @abstractmethod
    def is_valid(self, state: np.ndarray) -> bool:
        raise NotImplementedError

    @abstractmethod
    def clearance(self, state: np.ndarray) -> float:
        """Distance to the nearest invalid state (negative when invalid)"""
        raise NotImplementedError


class BoundsValidityChecker(StateValidityChecker):
    """Obstacle-free workspace: valid means inside the state box"""

    def __init__(self, bounds: StateBounds):
        self.bounds = bounds

    def is_valid(self, state: np.ndarray) -> bool:
        return self.bounds.contains(state)

    def clearance(self, state: np.ndarray) -> float:
        # Signed distance to the position walls; heading has no clearance
        state = np.asarray(state, dtype=float)
        to_lower = state[:2] - self.bounds.lower[:2]
        to_upper = self.bounds.upper[:2] - state[:2]
        return float(min(to_lower.min(), to_upper.min()))
