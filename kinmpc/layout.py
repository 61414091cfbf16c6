"""
Index layout of the flat decision vector.

The vector holds six state blocks of length N (x, y, psi, v, cte, epsi)
followed by two actuator blocks of length N - 1 (delta, a). Index 0 of each
state block is the current state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from kinmpc.exceptions import ConfigValidationError
from kinmpc.types import INPUT_NAMES, STATE_NAMES


@dataclass(frozen=True)
class Layout:
    """Block offsets for a horizon of ``steps`` discretization points."""

    steps: int
    x_start: int
    y_start: int
    psi_start: int
    v_start: int
    cte_start: int
    epsi_start: int
    delta_start: int
    a_start: int
    n_vars: int
    n_constraints: int

    @classmethod
    def from_horizon(cls, steps: int) -> "Layout":
        if steps < 2:
            raise ConfigValidationError("horizon.steps", "must be >= 2", steps)

        offsets = {}
        offset = 0
        for name in STATE_NAMES:
            offsets[f"{name}_start"] = offset
            offset += steps
        for name in INPUT_NAMES:
            offsets[f"{name}_start"] = offset
            offset += steps - 1

        return cls(
            steps=steps,
            n_vars=offset,
            n_constraints=steps * len(STATE_NAMES),
            **offsets,
        )

    @property
    def state_starts(self) -> Tuple[int, ...]:
        """Start offsets of the six state blocks in channel order."""
        return tuple(getattr(self, f"{name}_start") for name in STATE_NAMES)

    @property
    def block_starts(self) -> Dict[str, int]:
        return {
            name: getattr(self, f"{name}_start") for name in STATE_NAMES + INPUT_NAMES
        }

    def block(self, name: str) -> slice:
        """Slice of the decision vector holding channel ``name``."""
        start = self.block_starts[name]
        length = self.steps if name in STATE_NAMES else self.steps - 1
        return slice(start, start + length)
