"""
Receding-horizon path tracking controller.

One control cycle:
    measured state + last actuation -> predict (latency compensation)
    -> recompute cte/epsi at the predicted pose
    -> TrackingProblem + BoundsPolicy -> IpoptSolver
    -> first actuation of the optimal plan
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

from kinmpc.bounds import BoundsPolicy, shifted_initial_guess
from kinmpc.config import MPCConfig
from kinmpc.dynamics import KinematicBicycleModel, evaluate_path
from kinmpc.exceptions import ControllerNotInitializedError, InvalidStateError
from kinmpc.layout import Layout
from kinmpc.logging import LOG_DEBUG, LOG_INFO
from kinmpc.problem import TrackingProblem
from kinmpc.solver import IpoptSolver, solver_error_for
from kinmpc.types import (
    POSE_NAMES,
    Actuation,
    ReferenceTargets,
    SolveResult,
    State,
    as_path_coefficients,
)


def extract_actuation(result: SolveResult, layout: Layout, solver_config=None) -> Actuation:
    """First-step steering and throttle of a successful solve.

    Raises:
        SolverFailedError: (or a subclass) if ``result`` is not a success.
    """
    if not result.success:
        raise solver_error_for(result, solver_config)
    return Actuation(float(result.x[layout.delta_start]), float(result.x[layout.a_start]))


def predict(
    state: Sequence[float],
    actuation: Union[Actuation, Sequence[float]],
    dt: float,
    lf: float = 2.67,
) -> np.ndarray:
    """Advance ``(x, y, psi, v)`` by ``dt`` under ``actuation``.

    Extra entries of ``state`` (cte, epsi) are ignored; they depend on the
    path and are recomputed by the caller.
    """
    values = np.asarray(state, dtype=float).ravel()
    if values.size < len(POSE_NAMES):
        raise InvalidStateError(
            "state", f"expected at least {len(POSE_NAMES)} values, got {values.size}"
        )
    if not isinstance(actuation, Actuation):
        actuation = Actuation.from_sequence(actuation)
    return KinematicBicycleModel(lf).propagate_pose(values[: len(POSE_NAMES)], actuation, dt)


def tracking_errors(coeffs: Sequence[float], x: float, y: float, psi: float):
    """Cross-track and heading error of a pose against the path."""
    f, heading_des = evaluate_path(tuple(float(c) for c in coeffs), x)
    return float(f - y), float(psi - heading_des)


class MPCController:
    """Kinematic bicycle MPC for following a cubic reference path.

    Example:
        controller = MPCController()
        controller.initialize(ref_cte=0.0, ref_epsi=0.0, ref_v=10.0)
        actuation = controller.cycle(measured_state, last_actuation, coeffs)

    Args:
        config: Typed or dictionary configuration; defaults when omitted.
        solver: Solver adapter; an :class:`IpoptSolver` from ``config.solver``
            when omitted.
        bounds_policy: Bounds builder; a :class:`BoundsPolicy` from
            ``config.limits`` when omitted.
    """

    def __init__(
        self,
        config: Optional[Union[MPCConfig, dict]] = None,
        solver: Optional[IpoptSolver] = None,
        bounds_policy: Optional[BoundsPolicy] = None,
    ):
        if config is None:
            config = MPCConfig()
        elif isinstance(config, dict):
            config = MPCConfig.from_dict(config)
        config.validate()

        self.config = config
        self.layout = Layout.from_horizon(config.horizon.steps)
        self.model = KinematicBicycleModel(config.horizon.lf)
        self.solver = solver or IpoptSolver(config.solver)
        self.bounds_policy = bounds_policy or BoundsPolicy(config.limits)
        self.references: Optional[ReferenceTargets] = None
        self._previous_solution: Optional[np.ndarray] = None

    def initialize(self, ref_cte: float, ref_epsi: float, ref_v: float) -> None:
        """Set the reference targets. Must be called before any solve."""
        self.references = ReferenceTargets(float(ref_cte), float(ref_epsi), float(ref_v))
        self._previous_solution = None
        LOG_INFO(
            f"MPCController initialized: ref_cte={ref_cte}, ref_epsi={ref_epsi}, "
            f"ref_v={ref_v}, horizon={self.layout.steps}, dt={self.config.horizon.dt}"
        )

    @property
    def is_initialized(self) -> bool:
        return self.references is not None

    def solve(self, state: Union[State, Sequence[float]], coeffs: Sequence[float]) -> Actuation:
        """Optimize from ``state`` and return the first actuation.

        Args:
            state: ``(x, y, psi, v, cte, epsi)``.
            coeffs: Cubic path coefficients ``(c0, c1, c2, c3)``.

        Raises:
            ControllerNotInitializedError: if ``initialize`` was never called.
            SolverFailedError: if IPOPT did not report success.
        """
        if self.references is None:
            raise ControllerNotInitializedError()
        if not isinstance(state, State):
            state = State.from_sequence(state)
        coeffs = as_path_coefficients(coeffs)

        horizon = self.config.horizon
        problem = TrackingProblem(
            self.layout, coeffs, self.references, self.config.weights, horizon.dt, horizon.lf
        )
        bounds = self.bounds_policy.build(self.layout, state)
        if self.config.solver.warm_start and self._previous_solution is not None:
            bounds = bounds.with_initial_guess(
                shifted_initial_guess(self.layout, self._previous_solution, state)
            )

        result = self.solver.solve(problem, bounds)

        if not result.success:
            self._previous_solution = None
        elif self.config.solver.warm_start:
            self._previous_solution = result.x.copy()

        actuation = extract_actuation(result, self.layout, self.config.solver)
        LOG_DEBUG(f"Actuation: delta={actuation.delta:.5f}, a={actuation.a:.5f}")
        return actuation

    def predict(
        self,
        state: Sequence[float],
        actuation: Union[Actuation, Sequence[float]],
        dt: Optional[float] = None,
    ) -> np.ndarray:
        """Latency compensation step; ``dt`` defaults to the configured latency."""
        if dt is None:
            dt = self.config.controller.latency
        return predict(state, actuation, dt, self.config.horizon.lf)

    def cycle(
        self,
        measured_state: Union[State, Sequence[float]],
        last_actuation: Union[Actuation, Sequence[float]],
        coeffs: Sequence[float],
    ) -> Actuation:
        """One full control cycle: predict, formulate, solve, extract."""
        if self.references is None:
            raise ControllerNotInitializedError()
        if isinstance(measured_state, State):
            measured_state = measured_state.as_array()

        x, y, psi, v = self.predict(measured_state, last_actuation)
        cte, epsi = tracking_errors(coeffs, x, y, psi)
        return self.solve(State(float(x), float(y), float(psi), float(v), cte, epsi), coeffs)
