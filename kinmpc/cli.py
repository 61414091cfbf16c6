"""
Command-line interface for kinmpc.

Usage:
    kinmpc solve --state 0 0 0 5 1 0 --coeffs 0 0 0 0
    kinmpc predict --state 0 0 0 5 --actuation 0.1 0.5
    kinmpc simulate --steps 50
    kinmpc validate config.yml
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from kinmpc import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="kinmpc",
        description="kinmpc - Kinematic bicycle MPC for path tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kinmpc solve --state 0 0 0 5 1 0 --coeffs 0 0 0 0
  kinmpc predict --state 0 0 0 5 --actuation 0.1 0.5 --dt 0.1
  kinmpc simulate --steps 50 --coeffs 1 0 0 0 --output run.json
  kinmpc validate config.yml       Validate a configuration file
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -vv for debug)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    solve_parser = subparsers.add_parser(
        "solve",
        help="Solve one control cycle",
        description="Optimize from a full state and print the first actuation",
    )
    solve_parser.add_argument(
        "--state",
        type=float,
        nargs=6,
        required=True,
        metavar=("X", "Y", "PSI", "V", "CTE", "EPSI"),
        help="Current state",
    )
    _add_path_arguments(solve_parser)
    solve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )

    predict_parser = subparsers.add_parser(
        "predict",
        help="Propagate a pose under a fixed actuation",
        description="Advance (x, y, psi, v) by dt with the kinematic model",
    )
    predict_parser.add_argument(
        "--state",
        type=float,
        nargs=4,
        required=True,
        metavar=("X", "Y", "PSI", "V"),
        help="Current pose and speed",
    )
    predict_parser.add_argument(
        "--actuation",
        type=float,
        nargs=2,
        required=True,
        metavar=("DELTA", "A"),
        help="Steering angle and throttle",
    )
    predict_parser.add_argument(
        "--dt",
        type=float,
        help="Interval in seconds (default: controller latency)",
    )
    predict_parser.add_argument(
        "--config", "-f",
        type=Path,
        help="Path to configuration file",
    )

    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Run the controller in closed loop",
        description="Drive a kinematic plant along a fixed cubic path",
    )
    _add_path_arguments(simulate_parser, coeffs_required=False)
    simulate_parser.add_argument(
        "--steps",
        type=int,
        default=50,
        help="Number of control cycles (default: 50)",
    )
    simulate_parser.add_argument(
        "--start",
        type=float,
        nargs=4,
        metavar=("X", "Y", "PSI", "V"),
        default=[0.0, 0.0, 0.0, 5.0],
        help="Start pose and speed (default: 0 0 0 5)",
    )
    simulate_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file for trajectory (JSON format)",
    )

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a configuration file",
        description="Validate a YAML configuration file",
    )
    validate_parser.add_argument(
        "config_file",
        type=Path,
        help="Path to configuration file",
    )

    return parser


def _add_path_arguments(parser: argparse.ArgumentParser, coeffs_required: bool = True) -> None:
    """Add path, reference and configuration arguments."""
    parser.add_argument(
        "--coeffs",
        type=float,
        nargs=4,
        required=coeffs_required,
        default=None if coeffs_required else [0.0, 0.0, 0.0, 0.0],
        metavar=("C0", "C1", "C2", "C3"),
        help="Cubic path coefficients",
    )
    parser.add_argument(
        "--ref",
        type=float,
        nargs=3,
        metavar=("CTE", "EPSI", "V"),
        help="Reference targets (default: from configuration)",
    )
    parser.add_argument(
        "--config", "-f",
        type=Path,
        help="Path to configuration file",
    )


def setup_logging(verbose: int, quiet: bool) -> None:
    """Setup logging based on verbosity level."""
    import logging
    from kinmpc.logging import setup_logging as _setup_logging

    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    _setup_logging(level=level, force=True)


def _create_controller(args: argparse.Namespace):
    """Load configuration and return an initialized controller."""
    from kinmpc.config import ConfigManager
    from kinmpc.controller import MPCController

    config = ConfigManager(args.config).load()
    controller = MPCController(config)

    if args.ref is not None:
        ref_cte, ref_epsi, ref_v = args.ref
    else:
        refs = config.references
        ref_cte, ref_epsi, ref_v = refs.ref_cte, refs.ref_epsi, refs.ref_v
    controller.initialize(ref_cte, ref_epsi, ref_v)
    return controller


def cmd_solve(args: argparse.Namespace) -> int:
    """Execute the solve command."""
    from kinmpc.exceptions import KinMPCError, SolverFailedError

    try:
        controller = _create_controller(args)
        actuation = controller.solve(args.state, args.coeffs)
    except SolverFailedError as e:
        print(f"Solver failed: {e}", file=sys.stderr)
        return 1
    except KinMPCError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"steering": actuation.delta, "throttle": actuation.a}))
    else:
        print(f"steering: {actuation.delta:.6f}")
        print(f"throttle: {actuation.a:.6f}")
    return 0


def cmd_predict(args: argparse.Namespace) -> int:
    """Execute the predict command."""
    from kinmpc.config import ConfigManager
    from kinmpc.controller import predict
    from kinmpc.exceptions import KinMPCError

    try:
        config = ConfigManager(args.config).load()
        dt = args.dt if args.dt is not None else config.controller.latency
        pose = predict(args.state, args.actuation, dt, config.horizon.lf)
    except KinMPCError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(" ".join(f"{value:.6f}" for value in pose))
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Execute the simulate command."""
    from kinmpc.exceptions import KinMPCError
    from kinmpc.logging import LOG_INFO
    from kinmpc.runner import run_closed_loop

    try:
        controller = _create_controller(args)
        result = run_closed_loop(controller, args.coeffs, args.start, steps=args.steps)
    except KinMPCError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    final = result["trajectory"][-1]
    print(f"Steps: {result['steps']}")
    print(f"Failed solves: {result['failures']}")
    print(f"Final pose: x={final[0]:.2f} y={final[1]:.2f} psi={final[2]:.3f} v={final[3]:.2f}")

    if args.output:
        output_data = {
            "steps": result["steps"],
            "failures": result["failures"],
            "trajectory": result["trajectory"].tolist(),
            "actuations": [[u.delta, u.a] for u in result["actuations"]],
            "solve_times_ms": result["solve_times"],
        }
        with open(args.output, "w") as f:
            json.dump(output_data, f, indent=2)
        LOG_INFO(f"Results saved to {args.output}")

    return 0 if result["failures"] == 0 else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute the validate command."""
    from kinmpc.config import ConfigManager
    from kinmpc.exceptions import ConfigurationError

    try:
        manager = ConfigManager(args.config_file)
        config = manager.load(validate=True)
        print(f"Configuration file '{args.config_file}' is valid.")
        print(f"  Horizon: {config.horizon.steps} steps of {config.horizon.dt}s")
        print(f"  Latency: {config.controller.latency}s")
        print(f"  Reference speed: {config.references.ref_v}")
        return 0

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error reading configuration: {e}", file=sys.stderr)
        return 1


COMMANDS = {
    "solve": cmd_solve,
    "predict": cmd_predict,
    "simulate": cmd_simulate,
    "validate": cmd_validate,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
