"""
IPOPT solver adapter.

CasADi differentiates the ``SX`` graph built by :class:`TrackingProblem`
and hands IPOPT exact sparse gradients, Jacobians and Hessians.
"""

import time
from typing import Optional

import casadi as cd
import numpy as np

from kinmpc.bounds import ProblemBounds
from kinmpc.config import SolverConfig
from kinmpc.exceptions import (
    InfeasibleProblemError,
    IterationLimitError,
    NumericalError,
    SolverFailedError,
    TimeLimitExceededError,
)
from kinmpc.logging import log_solve, timed
from kinmpc.problem import TrackingProblem
from kinmpc.types import SolveResult, SolveStatus

# IPOPT return statuses that are not numerical failures
_STATUS_MAP = {
    "Solve_Succeeded": SolveStatus.SUCCESS,
    "Infeasible_Problem_Detected": SolveStatus.INFEASIBLE,
    "Restoration_Failed": SolveStatus.INFEASIBLE,
    "Maximum_CpuTime_Exceeded": SolveStatus.TIME_LIMIT_EXCEEDED,
    "Maximum_WallTime_Exceeded": SolveStatus.TIME_LIMIT_EXCEEDED,
    "Maximum_Iterations_Exceeded": SolveStatus.ITERATION_LIMIT_EXCEEDED,
}

_STATUS_EXPLANATIONS = {
    "Infeasible_Problem_Detected": "problem is infeasible, constraints cannot be satisfied",
    "Restoration_Failed": "restoration phase failed, initial point likely infeasible",
    "Maximum_CpuTime_Exceeded": "solver time budget elapsed before convergence",
    "Maximum_Iterations_Exceeded": "solver hit maximum iterations",
    "Search_Direction_Becomes_Too_Small": "solver cannot make progress, problem may be ill-conditioned",
    "Diverging_Iterates": "iterates diverging, problem may be unbounded",
    "Error_In_Step_Computation": "error computing step, problem may be numerically difficult",
    "Invalid_Number_Detected": "NaN or Inf in function or derivative evaluation",
}


def classify_return_status(return_status: str) -> SolveStatus:
    """Map an IPOPT return status string to :class:`SolveStatus`.

    Only ``Solve_Succeeded`` counts as success; a point that merely reached
    the acceptable tolerance is reported as a numerical failure.
    """
    return _STATUS_MAP.get(return_status, SolveStatus.NUMERICAL_FAILURE)


def solver_error_for(result: SolveResult, config: Optional[SolverConfig] = None) -> SolverFailedError:
    """Exception matching a failed :class:`SolveResult`."""
    config = config or SolverConfig()
    status, iterations = result.return_status, result.iterations
    if result.status is SolveStatus.INFEASIBLE:
        return InfeasibleProblemError(status, iterations)
    if result.status is SolveStatus.TIME_LIMIT_EXCEEDED:
        return TimeLimitExceededError(config.max_cpu_time, status, iterations)
    if result.status is SolveStatus.ITERATION_LIMIT_EXCEEDED:
        return IterationLimitError(config.max_iterations, status, iterations)
    if result.status is SolveStatus.NUMERICAL_FAILURE:
        description = _STATUS_EXPLANATIONS.get(status, result.message or status or "unknown")
        return NumericalError(description, status, iterations)
    return SolverFailedError(f"unexpected status {result.status.value}", status, iterations)


class IpoptSolver:
    """Runs one IPOPT solve per call; keeps no state between calls."""

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()

    def options(self) -> dict:
        cfg = self.config
        return {
            "ipopt.print_level": cfg.print_level,
            "print_time": 0,
            "ipopt.sb": "yes",
            "ipopt.max_cpu_time": cfg.max_cpu_time,
            "ipopt.max_iter": cfg.max_iterations,
            "ipopt.tol": cfg.tolerance,
            "ipopt.linear_solver": cfg.linear_solver,
            # Solutions stay inside the original, unrelaxed bounds
            "ipopt.honor_original_bounds": "yes",
            "error_on_fail": False,
        }

    @timed
    def _build(self, problem: TrackingProblem):
        return cd.nlpsol("tracking_mpc", "ipopt", problem.nlp(), self.options())

    def solve(self, problem: TrackingProblem, bounds: ProblemBounds) -> SolveResult:
        solver = self._build(problem)
        start = time.perf_counter()

        try:
            sol = solver(
                x0=bounds.x0,
                lbx=bounds.lbx,
                ubx=bounds.ubx,
                lbg=bounds.lbg,
                ubg=bounds.ubg,
            )
        except RuntimeError as e:
            elapsed = time.perf_counter() - start
            status = (
                SolveStatus.INFEASIBLE
                if "ill-posed" in str(e).lower()
                else SolveStatus.NUMERICAL_FAILURE
            )
            result = SolveResult(
                status=status,
                objective=float("nan"),
                x=np.full(problem.layout.n_vars, np.nan),
                return_status="Exception",
                solve_time=elapsed,
                message=str(e),
            )
            log_solve(result)
            return result

        elapsed = time.perf_counter() - start
        stats = solver.stats()
        return_status = stats.get("return_status", "Unknown")
        status = classify_return_status(return_status)
        result = SolveResult(
            status=status,
            objective=float(sol["f"]),
            x=sol["x"].full().ravel(),
            return_status=return_status,
            iterations=int(stats.get("iter_count", 0)),
            solve_time=elapsed,
        )

        log_solve(result, _STATUS_EXPLANATIONS.get(return_status, ""))
        return result
