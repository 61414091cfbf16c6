"""
kinmpc - Kinematic bicycle Model Predictive Control for path tracking.

Once per control cycle the controller compensates actuation latency,
formulates a finite-horizon trajectory optimization against a cubic
reference path and solves it with IPOPT through CasADi.

Basic Usage:
    from kinmpc import MPCController

    controller = MPCController()
    controller.initialize(ref_cte=0.0, ref_epsi=0.0, ref_v=10.0)
    actuation = controller.cycle(measured_state, last_actuation, coeffs)

For more control:
    from kinmpc.config import MPCConfig, ConfigManager
    from kinmpc.problem import TrackingProblem
    from kinmpc.solver import IpoptSolver
"""

from __future__ import annotations

__version__ = "0.1.0"

from kinmpc.types import Actuation, SolveResult, SolveStatus, State, as_path_coefficients
from kinmpc.config import ConfigManager, MPCConfig, create_default_config
from kinmpc.controller import MPCController, extract_actuation, predict
from kinmpc.runner import run_closed_loop
from kinmpc.logging import get_logger, setup_logging
from kinmpc.exceptions import (
    KinMPCError,
    ConfigurationError,
    ControllerNotInitializedError,
    InvalidPathError,
    InvalidStateError,
    SolverFailedError,
)

__all__ = [
    "__version__",
    # Types
    "State",
    "Actuation",
    "SolveStatus",
    "SolveResult",
    "as_path_coefficients",
    # Config
    "MPCConfig",
    "ConfigManager",
    "create_default_config",
    # Controller
    "MPCController",
    "extract_actuation",
    "predict",
    "run_closed_loop",
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "KinMPCError",
    "ConfigurationError",
    "ControllerNotInitializedError",
    "InvalidPathError",
    "InvalidStateError",
    "SolverFailedError",
]
