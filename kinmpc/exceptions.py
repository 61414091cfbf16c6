"""
kinmpc Exception Hierarchy.

This module defines all custom exceptions used in the kinmpc package.
Solver failures are reported through the ``SolverFailedError`` branch so
that a control loop can catch one type and apply its own fallback
(hold the previous command, decelerate, or disengage).
"""

from typing import Any, Optional


class KinMPCError(Exception):
    """Base exception for all kinmpc errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(KinMPCError):
    """Error in configuration loading or validation."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, config_path: str):
        super().__init__(
            f"Configuration file not found: {config_path}",
            details={"path": config_path},
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, key: str, reason: str, value: Any = None):
        details = {"key": key, "reason": reason}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            f"Invalid configuration for '{key}': {reason}",
            details=details,
        )


# =============================================================================
# Controller Errors
# =============================================================================


class ControllerError(KinMPCError):
    """Base class for errors raised by the controller before solving."""

    pass


class ControllerNotInitializedError(ControllerError):
    """Reference targets were never set."""

    def __init__(self):
        super().__init__(
            "Controller has no reference targets. Call initialize() first."
        )


class InvalidStateError(ControllerError):
    """Invalid state provided to the controller."""

    def __init__(self, state_name: str, reason: str):
        super().__init__(
            f"Invalid state '{state_name}': {reason}",
            details={"state": state_name, "reason": reason},
        )


class InvalidPathError(ControllerError):
    """Path coefficients are malformed."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid path coefficients: {reason}",
            details={"reason": reason},
        )


# =============================================================================
# Solver Errors
# =============================================================================


class SolverError(KinMPCError):
    """Base class for solver-related errors."""

    pass


class SolverFailedError(SolverError):
    """Solver failed to find a solution."""

    def __init__(
        self,
        reason: str = "Unknown",
        return_status: Optional[str] = None,
        iterations: Optional[int] = None,
    ):
        details = {"reason": reason}
        if return_status is not None:
            details["return_status"] = return_status
        if iterations is not None:
            details["iterations"] = iterations
        super().__init__(
            f"Solver failed to find a solution: {reason}",
            details=details,
        )


class InfeasibleProblemError(SolverFailedError):
    """No point satisfies the constraints within tolerance."""

    def __init__(self, return_status: Optional[str] = None, iterations: Optional[int] = None):
        super().__init__("optimization problem is infeasible", return_status, iterations)


class TimeLimitExceededError(SolverFailedError):
    """The solver's time budget elapsed before convergence."""

    def __init__(
        self,
        time_limit: float,
        return_status: Optional[str] = None,
        iterations: Optional[int] = None,
    ):
        super().__init__(
            f"time limit of {time_limit}s exceeded", return_status, iterations
        )
        self.details["time_limit"] = time_limit


class IterationLimitError(SolverFailedError):
    """Maximum iterations exceeded."""

    def __init__(
        self,
        max_iterations: int,
        return_status: Optional[str] = None,
        iterations: Optional[int] = None,
    ):
        super().__init__(
            f"iteration limit of {max_iterations} exceeded", return_status, iterations
        )
        self.details["max_iterations"] = max_iterations


class NumericalError(SolverFailedError):
    """Derivative or line-search breakdown inside the solver."""

    def __init__(
        self,
        description: str,
        return_status: Optional[str] = None,
        iterations: Optional[int] = None,
    ):
        super().__init__(
            f"numerical error during optimization: {description}",
            return_status,
            iterations,
        )
