"""
Objective and constraint formulation of the path tracking problem.

Decision vector layout (see :class:`kinmpc.layout.Layout`):
    [x_0..x_{N-1}, y_*, psi_*, v_*, cte_*, epsi_*, delta_0..delta_{N-2}, a_0..a_{N-2}]

Constraint vector (length 6N):
    g[start]         = vars[start]                           (pinned by bounds)
    g[start + t + 1] = vars[start + t + 1] - step(vars at t)  (dynamics defect)
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import casadi as cd

from kinmpc.config import CostWeights
from kinmpc.dynamics import kinematic_step
from kinmpc.layout import Layout
from kinmpc.logging import LOG_DEBUG
from kinmpc.types import ReferenceTargets


class TrackingProblem:
    """Cost and dynamics defects for one control cycle.

    A new instance is built every cycle; the path coefficients and reference
    targets it holds are copies and never change after construction.

    Args:
        layout: Index layout of the decision vector.
        coeffs: Cubic path coefficients ``(c0, c1, c2, c3)``.
        references: Reference targets for cte, epsi and v.
        weights: Cost weights.
        dt: Discretization step in seconds.
        lf: Front axle to center of gravity distance in meters.
    """

    def __init__(
        self,
        layout: Layout,
        coeffs: Sequence[float],
        references: ReferenceTargets,
        weights: CostWeights,
        dt: float,
        lf: float,
    ):
        self.layout = layout
        self.coeffs: Tuple[float, ...] = tuple(float(c) for c in coeffs)
        self.references = references
        self.weights = weights
        self.dt = float(dt)
        self.lf = float(lf)
        self._vars = None
        self._cost = None
        self._constraints = None

    def cost(self, vars):
        """Weighted tracking, effort and smoothness cost."""
        lay, w, ref = self.layout, self.weights, self.references
        N = lay.steps
        cost = 0

        # Reference state tracking
        for t in range(N):
            cost += w.tracking_cte * (vars[lay.cte_start + t] - ref.ref_cte) ** 2
            cost += w.tracking_epsi * (vars[lay.epsi_start + t] - ref.ref_epsi) ** 2
            cost += w.tracking_v * (vars[lay.v_start + t] - ref.ref_v) ** 2

        # Actuator effort
        for t in range(N - 1):
            cost += w.effort_delta * vars[lay.delta_start + t] ** 2
            cost += w.effort_a * vars[lay.a_start + t] ** 2

        # Change between sequential actuations
        for t in range(N - 2):
            cost += w.smoothness_delta * (
                vars[lay.delta_start + t + 1] - vars[lay.delta_start + t]
            ) ** 2
            cost += w.smoothness_a * (vars[lay.a_start + t + 1] - vars[lay.a_start + t]) ** 2

        return cost

    def constraints(self, vars) -> List:
        """Initial-state identities followed by the dynamics defects."""
        lay = self.layout
        starts = lay.state_starts
        g: List = [0] * lay.n_constraints

        for start in starts:
            g[start] = vars[start]

        for t in range(lay.steps - 1):
            current = [vars[start + t] for start in starts]
            actuation = (vars[lay.delta_start + t], vars[lay.a_start + t])
            predicted = kinematic_step(current, actuation, self.coeffs, self.dt, self.lf)
            for start, model_next in zip(starts, predicted):
                g[start + t + 1] = vars[start + t + 1] - model_next

        return g

    def evaluate(self, vars):
        """Return ``(cost, constraints)`` for ``vars``.

        Built from CasADi operations only, so it is differentiable when
        ``vars`` is symbolic.
        """
        return self.cost(vars), cd.vertcat(*self.constraints(vars))

    def nlp(self) -> Dict[str, cd.SX]:
        """Problem dictionary for ``casadi.nlpsol``."""
        if self._vars is None:
            self._vars = cd.SX.sym("vars", self.layout.n_vars)
            self._cost, self._constraints = self.evaluate(self._vars)
            LOG_DEBUG(
                f"TrackingProblem: {self.layout.n_vars} variables, "
                f"{self.layout.n_constraints} constraints, horizon={self.layout.steps}"
            )
        return {"x": self._vars, "f": self._cost, "g": self._constraints}

    def function(self) -> cd.Function:
        """Numeric evaluator ``vars -> (cost, g)``."""
        nlp = self.nlp()
        return cd.Function("fg", [nlp["x"]], [nlp["f"], nlp["g"]], ["vars"], ["cost", "g"])
