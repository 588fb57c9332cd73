"""
Failure taxonomy of the tracking pipeline.

Every error is fatal where it is raised: nothing retries and there is no
fallback controller. The CLI maps all of them to a non-zero exit status.
"""


class MPCError(RuntimeError):
    """Base class for unrecoverable tracking failures"""


class MalformedInputError(MPCError):
    """Reference file missing, empty, or with fewer than 2 valid waypoints"""


class InitializationError(MPCError):
    """Initial state violates the path constraints"""


class InfeasibleHorizonError(MPCError):
    """Horizon grid or reference slice cannot be built"""


class InfeasibleQPError(MPCError):
    """A linearized subproblem has no feasible point (or the QP solver failed)"""

    def __init__(self, message: str, iteration: int = 0, status: str = ""):
        super().__init__(message)
        self.iteration = iteration
        self.status = status


class ProcessIntegrationError(MPCError):
    """The plant integrator did not reach the end of the sample period"""
