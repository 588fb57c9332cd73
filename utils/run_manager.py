from pathlib import Path
from datetime import datetime
import json
from typing import Dict, Optional
import numpy as np

from config import ControllerConfig
from models import ReferenceTrajectory
from simulation import ClosedLoopResult
from .io import write_controls, write_rows, write_states, write_text

STATES_FILE = "output_states.txt"
CONTROLS_FILE = "output_controls.txt"
REFERENCE_FILE = "reference_timed.txt"
SUMMARY_FILE = "summary.txt"


class RunManager:
    """Manages the output directory and file saving"""

    def __init__(self, output_dir: str = "data"):
        self.run_dir = Path(output_dir)
        self.run_dir.mkdir(parents=True, exist_ok=True)

        print(f"\n📁 Results directory: {self.run_dir}")

    @property
    def states_path(self) -> Path:
        return self.run_dir / STATES_FILE

    @property
    def controls_path(self) -> Path:
        return self.run_dir / CONTROLS_FILE

    def save_trajectories(self, result: ClosedLoopResult):
        """Write realized states and controls, one sample per line"""
        write_states(self.states_path, result.states)
        print(f"   ✓ Saved {self.states_path.name} ({len(result.states)} rows)")
        write_controls(self.controls_path, result.controls)
        print(f"   ✓ Saved {self.controls_path.name} ({len(result.controls)} rows)")
        return self.states_path, self.controls_path

    def save_json(self, data: Dict, name: str):
        """Save data as JSON"""
        path = self.run_dir / f"{name}.json"

        # Convert numpy arrays to lists for JSON serialization
        def convert_numpy(obj):
            if isinstance(obj, np.ndarray):
                return obj.tolist()
            elif isinstance(obj, np.integer):
                return int(obj)
            elif isinstance(obj, np.floating):
                return float(obj)
            elif isinstance(obj, dict):
                return {k: convert_numpy(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_numpy(item) for item in obj]
            return obj

        write_text(path, json.dumps(convert_numpy(data), indent=2))
        print(f"   ✓ Saved {path.name}")
        return path

    def save_reference(self, reference: ReferenceTrajectory):
        """Copy of the timed reference actually tracked (t x y theta)"""
        path = self.run_dir / REFERENCE_FILE
        write_rows(path, np.column_stack([reference.times, reference.waypoints]), 4)
        print(f"   ✓ Saved {path.name}")
        return path

    def save_summary(self, summary: str):
        """Save text summary"""
        path = self.run_dir / SUMMARY_FILE
        write_text(path, summary)
        print(f"   ✓ Saved {path.name}")
        return path


def export_results(result: ClosedLoopResult,
                   reference: ReferenceTrajectory,
                   controller_config: ControllerConfig,
                   args,
                   solver_stats: Optional[Dict] = None) -> Dict:

    tracking = result.tracking_errors()
    final_state = result.final_state

    results = {
        'metadata': {
            'reference': str(args.reference),
            'timestamp': datetime.now().isoformat(),
            'preset': args.preset,
            'wheelbase': args.wheelbase,
            'horizon_steps': controller_config.horizon_steps,
            'max_iterations': controller_config.max_iterations,
            'kkt_tolerance': controller_config.kkt_tolerance,
            'qp_solver': controller_config.qp_solver,
            'terminal_cost': controller_config.terminal_cost,
        },
        'reference_info': {
            'n_waypoints': len(reference),
            'dt': float(reference.dt),
            'total_duration': float(reference.total_duration),
        },
        'run': {
            'completed': bool(result.completed),
            'n_steps': int(result.n_steps),
            'error': None if result.error is None else f"{type(result.error).__name__}: {result.error}",
            'final_state': None if final_state is None else final_state,
        },
        'tracking': tracking,
        'solver': {
            'avg_iterations': float(result.iterations.mean()) if result.n_steps else 0.0,
            'max_kkt': float(np.nanmax(result.kkt)) if result.n_steps else 0.0,
            'avg_step_time': float(result.solve_times.mean()) if result.n_steps else 0.0,
            **(solver_stats or {}),
        },
    }

    return results
