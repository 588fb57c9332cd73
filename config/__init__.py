from .controller import ControllerConfig, QP_SOLVERS, get_controller_config
from .simulation import SimulationConfig
from .vehicle import VehicleConfig, get_vehicle_config

def get_default_config() -> tuple:
    return (
        VehicleConfig(),
        ControllerConfig(),
        SimulationConfig(),
    )

__all__ = [
    'VehicleConfig',
    'ControllerConfig',
    'SimulationConfig',
    'QP_SOLVERS',
    'get_default_config',
    'get_vehicle_config',
    'get_controller_config',
]
