from dataclasses import replace

import numpy as np

from config import (
    SimulationConfig,
    get_controller_config,
    get_vehicle_config,
)
from config.app_config import AppConfig, app
from models import (
    BoundsValidityChecker,
    ReferenceTrajectory,
    VehicleDynamicsModel,
)
from simulation import ClosedLoopDriver, ClosedLoopResult, ProcessSimulator
from solvers import RTISolver, TrackingOCP
from utils import RunManager, export_results


def _section(title: str):
    print("\n" + "="*70)
    print(title)
    print("="*70)


def _build_controller_config(args: AppConfig):
    cfg = get_controller_config(args.preset)

    overrides = {
        'horizon_steps': args.horizon_steps,
        'max_iterations': args.max_iterations,
        'kkt_tolerance': args.kkt_tolerance,
        'qp_solver': args.qp_solver,
        'terminal_cost': args.terminal_cost,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return replace(cfg, verbose=args.verbose, **overrides)


def _summary_text(args: AppConfig, reference: ReferenceTrajectory, result: ClosedLoopResult,
                  solver_stats: dict) -> str:
    tracking = result.tracking_errors()
    final = result.final_state
    final_str = "n/a" if final is None else f"({final[0]:.3f}, {final[1]:.3f}, {final[2]:+.4f})"
    status = "COMPLETED" if result.completed else f"STOPPED ({type(result.error).__name__})"

    return f"""
        {'='*70}
        MPC PATH TRACKING RESULTS
        {'='*70}
        Reference:             {args.reference}
        Waypoints:             {len(reference)}
        Sampling interval:     {reference.dt:.4f} s
        Duration:              {reference.total_duration:.2f} s

        RUN:
        Status:                {status}
        Steps completed:       {result.n_steps}
        Final state:           {final_str}

        TRACKING:
        Max position error:    {tracking['max_position_error']:.4f} m
        Mean position error:   {tracking['mean_position_error']:.4f} m
        Final position error:  {tracking['final_position_error']:.4f} m
        Max heading error:     {np.degrees(tracking['max_heading_error']):.2f} deg

        SOLVER:
        Avg iterations:        {solver_stats.get('avg_iterations', 0.0):.2f}
        Unconverged steps:     {solver_stats.get('unconverged_count', 0)}
        Avg solve time:        {solver_stats.get('avg_solve_time', 0.0)*1000:.1f} ms

        {'='*70}
    """


def main(args: AppConfig):
    """Main execution function."""

    print("="*70)
    print("  MPC PATH TRACKING (REAL-TIME ITERATION)")
    print("="*70)

    # =========================================================================
    _section("CONFIGURATION")

    vehicle_config = get_vehicle_config(wheelbase=args.wheelbase)
    controller_config = _build_controller_config(args)
    sim_config = SimulationConfig(
        total_time=args.total_time,
        sampling_interval=args.sampling_interval,
        strict_parsing=args.strict_parsing,
    )

    print(f"\nVehicle: L={vehicle_config.wheelbase} m, "
          f"R_min={vehicle_config.min_turning_radius:.2f} m")
    print(f"Controller: N={controller_config.horizon_steps}, "
          f"max_iter={controller_config.max_iterations}, tol={controller_config.kkt_tolerance:g}, "
          f"QP={controller_config.qp_solver}, terminal={controller_config.terminal_cost}")

    # =========================================================================
    _section("LOAD REFERENCE")

    reference = ReferenceTrajectory.from_file(
        args.reference,
        total_time=sim_config.total_time,
        sampling_interval=sim_config.sampling_interval,
        strict=sim_config.strict_parsing,
    )
    print(f"   ✓ {len(reference)} waypoints, dt={reference.dt:.4f} s, "
          f"duration={reference.total_duration:.2f} s")

    vehicle_model = VehicleDynamicsModel(vehicle_config)

    invalid, clearance = reference.check_validity(BoundsValidityChecker(vehicle_model.state_bounds))
    if len(invalid):
        print(f"   ⚠ {len(invalid)} waypoints outside the state bounds (first: {int(invalid[0])})")
    else:
        print(f"   ✓ All waypoints inside bounds (min clearance {clearance:.2f} m)")

    # =========================================================================
    _section("CREATE MODELS")

    ocp = TrackingOCP(vehicle_model, reference, controller_config)
    print(f"   ✓ Tracking OCP ready ({ocp.nw} variables, {ocp.n_eq} continuity rows)")

    solver = RTISolver(ocp, controller_config)
    print(f"   ✓ {solver.name} solver ready")

    simulator = ProcessSimulator.from_config(vehicle_model, sim_config)
    driver = ClosedLoopDriver(solver, simulator, reference, verbose=args.verbose)
    print(f"   ✓ Closed loop: {driver.n_steps} steps")

    # =========================================================================
    _section("CLOSED-LOOP SIMULATION")

    run_manager = RunManager(args.output_dir)
    failure = None
    try:
        driver.run()
        print(f"   ✓ Completed {driver.n_steps} steps")
    except Exception as e:
        failure = e
        print(f"   ✗ Run stopped: {type(e).__name__}: {e}")

    # Partial samples are written even when the run stopped early
    result = driver.result()
    solver_stats = solver.get_statistics()

    # =========================================================================
    _section("RESULTS SUMMARY")

    summary_text = _summary_text(args, reference, result, solver_stats)
    print(summary_text)

    # =========================================================================
    _section("SAVING DATA")

    run_manager.save_trajectories(result)
    run_manager.save_reference(reference)
    run_manager.save_summary(summary_text)
    results_dict = export_results(result, reference, controller_config, args, solver_stats)
    run_manager.save_json(results_dict, 'results_summary')

    if failure is not None:
        raise failure

    print("\n" + "="*70)
    print("  COMPLETE")
    print("="*70)
    print(f"\n📁 All results saved to: {run_manager.run_dir}")

    return result, run_manager


if __name__ == "__main__":
    app()
