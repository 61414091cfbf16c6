"""
Kinematic bicycle model and reference path evaluation.

The transition functions accept plain floats as well as CasADi symbols, so
the same code builds the optimization constraints and propagates numeric
states. Numeric callers go through a cached ``casadi.Function`` which makes
repeated evaluations bit-identical.
"""

from functools import lru_cache
from typing import Sequence

import casadi as cd
import numpy as np

from kinmpc.types import INPUT_NAMES, POSE_NAMES, STATE_NAMES, Actuation, State


def evaluate_path(coeffs, x):
    """Evaluate the cubic reference path at ``x``.

    Args:
        coeffs: Indexable ``(c0, c1, c2, c3)``, Python floats or CasADi symbols.
        x: Longitudinal position, float or CasADi symbol.

    Returns:
        ``(f, heading_des)``: the path height and the desired heading used
        for the heading error.

    ``heading_des`` uses ``c3`` in the linear slope term as well as the
    quadratic one. The cost weights were tuned in closed loop against this
    form, so it is kept as is.
    """
    c0, c1, c2, c3 = (coeffs[i] for i in range(4))
    f = c0 + c1 * x + c2 * x ** 2 + c3 * x ** 3
    heading_des = cd.atan(c1 + 2 * c3 * x + 3 * c3 * x ** 2)
    return f, heading_des


def kinematic_step(state, actuation, coeffs, dt, lf):
    """One explicit Euler step of the kinematic bicycle.

    ``state`` is any indexable ``(x, y, psi, v, cte, epsi)`` and ``actuation``
    any indexable ``(delta, a)``. No clamping happens here; bounds belong to
    the optimization problem.

    Returns:
        The six next-state expressions as a list.
    """
    x, y, psi, v, cte, epsi = (state[i] for i in range(6))
    delta, a = actuation[0], actuation[1]

    f, heading_des = evaluate_path(coeffs, x)

    return [
        x + v * cd.cos(psi) * dt,
        y + v * cd.sin(psi) * dt,
        psi + v * delta / lf * dt,
        v + a * dt,
        (f - y) + v * cd.sin(epsi) * dt,
        (psi - heading_des) + v * delta / lf * dt,
    ]


@lru_cache(maxsize=None)
def _step_function(lf: float) -> cd.Function:
    state = cd.SX.sym("state", len(STATE_NAMES))
    actuation = cd.SX.sym("actuation", len(INPUT_NAMES))
    coeffs = cd.SX.sym("coeffs", 4)
    dt = cd.SX.sym("dt")

    next_state = cd.vertcat(*kinematic_step(state, actuation, coeffs, dt, lf))
    return cd.Function(
        "kinematic_step",
        [state, actuation, coeffs, dt],
        [next_state],
        ["state", "actuation", "coeffs", "dt"],
        ["next_state"],
    )


class KinematicBicycleModel:
    """Single-track kinematic bicycle with a cubic reference path.

    State: [x, y, psi, v, cte, epsi]
    Inputs: [delta, a] (steering angle, throttle)
    """

    def __init__(self, lf: float = 2.67):
        self.lf = float(lf)
        self.dependent_vars = list(STATE_NAMES)
        self.inputs = list(INPUT_NAMES)
        self.state_dimension = len(self.dependent_vars)
        self.nu = len(self.inputs)

    def step_function(self) -> cd.Function:
        """``casadi.Function`` mapping (state, actuation, coeffs, dt) to the next state."""
        return _step_function(self.lf)

    def step(self, state: State, actuation: Actuation, coeffs: Sequence[float], dt: float) -> State:
        next_state = self.step_function()(
            state.as_array(), actuation.as_array(), np.asarray(coeffs, dtype=float), float(dt)
        )
        return State(*(float(v) for v in next_state.full().ravel()))

    def propagate_pose(self, pose: Sequence[float], actuation: Actuation, dt: float) -> np.ndarray:
        """Advance ``(x, y, psi, v)`` only.

        The pose equations do not depend on the path or on the error states,
        which are filled with zeros here and dropped from the result.
        """
        pose = np.asarray(pose, dtype=float).ravel()[: len(POSE_NAMES)]
        state = State(*pose, cte=0.0, epsi=0.0)
        next_state = self.step(state, actuation, np.zeros(4), dt)
        return next_state.as_array()[: len(POSE_NAMES)]

    def __str__(self) -> str:
        return f"KinematicBicycleModel(lf={self.lf}, states={self.dependent_vars}, inputs={self.inputs})"
