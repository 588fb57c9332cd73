from .process import ProcessSimulator

from .closed_loop import (
    ClosedLoopDriver,
    ClosedLoopResult,
)

__all__ = [
    'ProcessSimulator',
    'ClosedLoopDriver',
    'ClosedLoopResult',
]
