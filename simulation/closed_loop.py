import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from models import (
    ReferenceTrajectory,
    InitializationError,
    wrap_angle,
)
from solvers import BaseSolver
from .process import ProcessSimulator


@dataclass
class ClosedLoopResult:
    """Container for closed-loop simulation results"""

    # Time series data (K completed steps)
    times: np.ndarray              # (K+1,) sample times (s)
    states: np.ndarray             # (K+1, 3) realized x, y, theta
    controls: np.ndarray           # (K, 2) applied v, delta

    # Reference at the sample times
    reference_states: np.ndarray   # (K+1, 3)

    # Solver performance per step
    iterations: np.ndarray         # (K,)
    kkt: np.ndarray                # (K,)
    solve_times: np.ndarray        # (K,)

    completed: bool
    error: Optional[BaseException] = field(default=None, repr=False)

    @property
    def n_steps(self) -> int:
        return self.controls.shape[0]

    @property
    def final_state(self) -> Optional[np.ndarray]:
        return self.states[-1] if len(self.states) else None

    def tracking_errors(self) -> Dict[str, float]:
        """Position and heading tracking error statistics"""
        if len(self.states) == 0:
            return {'max_position_error': 0.0, 'mean_position_error': 0.0,
                    'final_position_error': 0.0, 'max_heading_error': 0.0}
        pos_err = np.linalg.norm(self.states[:, :2] - self.reference_states[:, :2], axis=1)
        heading_err = np.abs(wrap_angle(self.states[:, 2] - self.reference_states[:, 2]))
        return {
            'max_position_error': float(pos_err.max()),
            'mean_position_error': float(pos_err.mean()),
            'final_position_error': float(pos_err[-1]),
            'max_heading_error': float(heading_err.max()),
        }


class ClosedLoopDriver:
    """
    Run the controller against the simulated process over the reference.

    Init -> { compute feedback; advance process; record; advance clock }
         -> Finalize

    Any failure inside the loop stops the run and is re-raised; the samples
    recorded before it stay available through result().
    """

    def __init__(self,
                 solver: BaseSolver,
                 simulator: ProcessSimulator,
                 reference: ReferenceTrajectory,
                 verbose: bool = False):
        self.solver = solver
        self.simulator = simulator
        self.reference = reference
        self.verbose = verbose

        self.dt = reference.dt
        steps = reference.total_duration / self.dt
        self.n_steps = int(round(steps)) if abs(steps - round(steps)) < 1e-9 else int(np.ceil(steps))

        self._clear()

    def _clear(self):
        self._state: Optional[np.ndarray] = None
        self._step_index = 0
        self._completed = False
        self._error: Optional[BaseException] = None

        # Storage lists
        self._times: List[float] = []
        self._states: List[np.ndarray] = []
        self._controls: List[np.ndarray] = []
        self._iterations: List[int] = []
        self._kkt: List[float] = []
        self._solve_times: List[float] = []

    def _log(self, message: str):
        if self.verbose:
            print(f"   [ClosedLoop] {message}")

    @property
    def time(self) -> float:
        return self._step_index * self.dt

    @property
    def done(self) -> bool:
        return self._step_index >= self.n_steps

    def init(self, initial_state: Optional[np.ndarray] = None):
        """Validate the initial state and reset solver and logs"""
        state = self.reference.initial_state if initial_state is None else np.array(initial_state, dtype=float)

        bounds = self.solver.vehicle.state_bounds
        if not bounds.contains(state):
            self._clear()
            raise InitializationError(
                f"initial state {np.asarray(state).tolist()} violates path constraints "
                f"{bounds.violations(state)}"
            )

        self._clear()
        self.solver.reset()
        self._state = state
        self._times.append(0.0)
        self._states.append(state.copy())
        self._log(f"Init at {state.tolist()} ({self.n_steps} steps of {self.dt:.3f}s)")

    def step(self):
        """One control step: feedback, apply, record, advance clock"""
        t = self.time
        start = time.time()

        control, info = self.solver.compute_feedback(self._state, t)
        next_state = self.simulator.advance(self._state, control, self.dt)

        self._controls.append(np.asarray(control, dtype=float).copy())
        self._iterations.append(info.get('iterations', 0))
        self._kkt.append(info.get('kkt', np.nan))
        self._solve_times.append(time.time() - start)

        self._step_index += 1
        self._state = next_state
        self._times.append(self.time)
        self._states.append(next_state.copy())

        self._log(f"t={self.time:7.2f}s  x={next_state[0]:8.3f} y={next_state[1]:8.3f} "
                  f"theta={next_state[2]:+.3f}  u=({control[0]:+.3f}, {control[1]:+.3f})  "
                  f"it={info.get('iterations', 0)}")

    def run(self, initial_state: Optional[np.ndarray] = None) -> ClosedLoopResult:
        """Simulate the full horizon and return the recorded result"""
        try:
            self.init(initial_state)
            while not self.done:
                self.step()
        except Exception as e:
            self._error = e
            self._log(f"❌ Stopped at t={self.time:.3f}s after {self._step_index} steps: {e}")
            raise

        self._completed = True
        self._log(f"✓ Completed {self._step_index} steps")
        return self.result()

    def result(self) -> ClosedLoopResult:
        """Samples recorded so far (also after a failed run)"""
        times = np.array(self._times)
        states = np.array(self._states).reshape(-1, 3)
        reference_states = self.reference.sample(times) if len(times) else np.empty((0, 3))

        return ClosedLoopResult(
            times=times,
            states=states,
            controls=np.array(self._controls).reshape(-1, 2),
            reference_states=reference_states,
            iterations=np.array(self._iterations, dtype=int),
            kkt=np.array(self._kkt, dtype=float),
            solve_times=np.array(self._solve_times),
            completed=self._completed,
            error=self._error,
        )
