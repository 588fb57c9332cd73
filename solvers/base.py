import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass
class SolverState:
    """Warm-start buffer carried between consecutive control steps"""

    # Predicted trajectories over the last solved horizon
    states: np.ndarray         # (N+1, 3) x, y, theta
    controls: np.ndarray       # (N, 2) v, delta

    # Window start of the solve that produced them (s)
    time: float

    # Solver metadata
    iterations: int
    kkt: float

    def shifted(self, n_shift: int, shoot) -> Tuple[np.ndarray, np.ndarray]:
        """
        Shift-and-hold: drop the first n_shift intervals, repeat the last
        control on the freed tail and propagate the tail states with it.
        """
        N = self.controls.shape[0]
        n_shift = min(max(n_shift, 0), N)

        states = np.empty_like(self.states)
        controls = np.empty_like(self.controls)

        states[:N + 1 - n_shift] = self.states[n_shift:]
        controls[:N - n_shift] = self.controls[n_shift:]

        u_hold = self.controls[-1]
        for k in range(N - n_shift, N):
            controls[k] = u_hold
            states[k + 1] = np.asarray(shoot(states[k], u_hold)).ravel()

        return states, controls


class BaseSolver(ABC):

    def __init__(self, vehicle_model, reference, verbose: bool = False):

        self.vehicle = vehicle_model
        self.reference = reference
        self.verbose = verbose

    @property
    @abstractmethod
    def name(self) -> str:
        """Solver name for logging and identification."""
        pass

    @abstractmethod
    def compute_feedback(self, state: np.ndarray, t: float) -> Tuple[np.ndarray, Dict]:
        """Return (first control of the horizon, info dict)"""
        pass

    @abstractmethod
    def reset(self):
        """Forget any state carried between calls"""
        pass

    def _log(self, message: str):
        """Print message if verbose mode is on"""
        if self.verbose:
            print(f"   [{self.name}] {message}")
