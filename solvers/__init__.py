from .base import (
    BaseSolver,
    SolverState,
)

from .ocp import (
    TrackingOCP,
    OCPInstance,
    HorizonGrid,
)

from .rti import (
    RTISolver,
)

__all__ = [
    # Base classes
    'BaseSolver',
    'SolverState',

    # Problem formulation
    'TrackingOCP',
    'OCPInstance',
    'HorizonGrid',

    # Online solver
    'RTISolver',
]
