from .errors import (
    MPCError,
    MalformedInputError,
    InitializationError,
    InfeasibleHorizonError,
    InfeasibleQPError,
    ProcessIntegrationError,
)
from .vehicle_dynamics import VehicleDynamicsModel, StateBounds, ControlBounds, NX, NU, THETA
from .validity import StateValidityChecker, BoundsValidityChecker
from .reference import ReferenceTrajectory, wrap_angle

__all__ = [
    'VehicleDynamicsModel',
    'StateBounds',
    'ControlBounds',
    'NX',
    'NU',
    'THETA',
    'StateValidityChecker',
    'BoundsValidityChecker',
    'ReferenceTrajectory',
    'wrap_angle',

    # Errors
    'MPCError',
    'MalformedInputError',
    'InitializationError',
    'InfeasibleHorizonError',
    'InfeasibleQPError',
    'ProcessIntegrationError',
]
