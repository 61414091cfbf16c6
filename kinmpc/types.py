"""
Plain data exchanged between the controller, the problem formulation and
the solver adapter.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, Tuple

import numpy as np

from kinmpc.exceptions import InvalidPathError, InvalidStateError

STATE_NAMES: Tuple[str, ...] = ("x", "y", "psi", "v", "cte", "epsi")
INPUT_NAMES: Tuple[str, ...] = ("delta", "a")
POSE_NAMES: Tuple[str, ...] = STATE_NAMES[:4]


@dataclass
class State:
    """Vehicle state in the vehicle-relative frame.

    Positions in meters, angles in radians, speed in m/s. ``cte`` and
    ``epsi`` are the cross-track and heading errors against the fitted path.
    """

    x: float
    y: float
    psi: float
    v: float
    cte: float = 0.0
    epsi: float = 0.0

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "State":
        values = list(values)
        if len(values) != len(STATE_NAMES):
            raise InvalidStateError(
                "state", f"expected {len(STATE_NAMES)} values, got {len(values)}"
            )
        for name, value in zip(STATE_NAMES, values):
            if not math.isfinite(float(value)):
                raise InvalidStateError(name, f"must be finite, got {value}")
        return cls(*(float(v) for v in values))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi])


@dataclass
class Actuation:
    """Steering angle (radians) and throttle/brake command (unitless)."""

    delta: float
    a: float

    @classmethod
    def zero(cls) -> "Actuation":
        return cls(0.0, 0.0)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "Actuation":
        values = list(values)
        if len(values) != len(INPUT_NAMES):
            raise InvalidStateError(
                "actuation", f"expected {len(INPUT_NAMES)} values, got {len(values)}"
            )
        return cls(float(values[0]), float(values[1]))

    def as_array(self) -> np.ndarray:
        return np.array([self.delta, self.a])


@dataclass(frozen=True)
class ReferenceTargets:
    """Desired steady-state tracking values held for the controller's lifetime."""

    ref_cte: float
    ref_epsi: float
    ref_v: float


def as_path_coefficients(values: Sequence[float]) -> np.ndarray:
    """Validate cubic path coefficients ``(c0, c1, c2, c3)``.

    Returns a read-only copy so the caller's data can never be modified
    through the problem formulation.
    """
    coeffs = np.array(values, dtype=float).ravel()
    if coeffs.shape != (4,):
        raise InvalidPathError(f"expected 4 coefficients, got {coeffs.size}")
    if not np.all(np.isfinite(coeffs)):
        raise InvalidPathError("coefficients must be finite")
    coeffs.setflags(write=False)
    return coeffs


class SolveStatus(Enum):
    SUCCESS = "success"
    INFEASIBLE = "infeasible"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"
    NUMERICAL_FAILURE = "numerical_failure"


@dataclass
class SolveResult:
    """Outcome of one solver call.

    ``x`` is the full decision vector laid out by :class:`kinmpc.layout.Layout`.
    It is only meaningful when ``success`` is true.
    """

    status: SolveStatus
    objective: float
    x: np.ndarray
    return_status: str = ""
    iterations: int = 0
    solve_time: float = 0.0
    message: str = field(default="", repr=False)

    @property
    def success(self) -> bool:
        return self.status is SolveStatus.SUCCESS
