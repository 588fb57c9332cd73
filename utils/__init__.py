from .io import (
    load_waypoints,
    parse_waypoint_line,
    read_rows,
    write_rows,
    write_states,
    write_controls,
    write_text,
)
from .run_manager import RunManager, export_results

__all__ = [
    'load_waypoints',
    'parse_waypoint_line',
    'read_rows',
    'write_rows',
    'write_states',
    'write_controls',
    'write_text',
    'RunManager',
    'export_results',
]
