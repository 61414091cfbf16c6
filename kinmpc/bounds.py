"""
Variable bounds, constraint bounds and the initial guess.

The current state enters the optimization only here: the six t = 0
constraint entries get ``lower == upper == state value``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from kinmpc.config import ActuatorLimits
from kinmpc.layout import Layout
from kinmpc.types import State


@dataclass
class ProblemBounds:
    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray
    x0: np.ndarray

    def with_initial_guess(self, x0: np.ndarray) -> "ProblemBounds":
        return replace(self, x0=np.asarray(x0, dtype=float))


class BoundsPolicy:
    """Builds the bound vectors consumed by the solver adapter."""

    def __init__(self, limits: Optional[ActuatorLimits] = None):
        self.limits = limits or ActuatorLimits()

    def variable_bounds(self, layout: Layout):
        lim = self.limits
        lbx = np.empty(layout.n_vars)
        ubx = np.empty(layout.n_vars)

        # States are free
        lbx[: layout.delta_start] = -lim.unbounded
        ubx[: layout.delta_start] = lim.unbounded

        lbx[layout.block("delta")] = -lim.steering
        ubx[layout.block("delta")] = lim.steering

        lbx[layout.block("a")] = -lim.throttle
        ubx[layout.block("a")] = lim.throttle

        return lbx, ubx

    def constraint_bounds(self, layout: Layout, state: State):
        lbg = np.zeros(layout.n_constraints)
        ubg = np.zeros(layout.n_constraints)

        values = state.as_array()
        starts = list(layout.state_starts)
        lbg[starts] = values
        ubg[starts] = values

        return lbg, ubg

    def initial_guess(self, layout: Layout, state: State) -> np.ndarray:
        x0 = np.zeros(layout.n_vars)
        x0[list(layout.state_starts)] = state.as_array()
        return x0

    def build(self, layout: Layout, state: State) -> ProblemBounds:
        lbx, ubx = self.variable_bounds(layout)
        lbg, ubg = self.constraint_bounds(layout, state)
        return ProblemBounds(lbx, ubx, lbg, ubg, self.initial_guess(layout, state))


def shifted_initial_guess(layout: Layout, previous: np.ndarray, state: State) -> np.ndarray:
    """Seed the next solve with the previous solution advanced by one step.

    Every block drops its first entry and repeats its last; the t = 0 state
    entries are then overwritten with the current state.
    """
    previous = np.asarray(previous, dtype=float)
    if previous.shape != (layout.n_vars,):
        raise ValueError(
            f"previous solution has shape {previous.shape}, expected ({layout.n_vars},)"
        )

    x0 = np.empty(layout.n_vars)
    for name in layout.block_starts:
        block = previous[layout.block(name)]
        x0[layout.block(name)] = np.append(block[1:], block[-1])

    x0[list(layout.state_starts)] = state.as_array()
    return x0
