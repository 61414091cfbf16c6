"""
Tests for the closed-loop runner.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from kinmpc.controller import MPCController
from kinmpc.exceptions import InfeasibleProblemError
from kinmpc.runner import fallback_actuation, run_closed_loop
from kinmpc.types import Actuation


class TestFallbackActuation:
    def test_holds_steering_and_decelerates(self):
        assert fallback_actuation(Actuation(0.2, 0.8), 1.0) == Actuation(0.2, -0.1)

    def test_deceleration_clipped_to_limit(self):
        assert fallback_actuation(Actuation(0.0, 0.0), 0.05) == Actuation(0.0, -0.05)


class TestRunClosedLoopStubbed:
    """Runner bookkeeping with a scripted controller."""

    def _controller(self, side_effect):
        ctrl = MPCController()
        ctrl.initialize(0.0, 0.0, 10.0)
        ctrl.cycle = MagicMock(side_effect=side_effect)
        return ctrl

    def test_result_shape(self):
        ctrl = self._controller([Actuation(0.0, 1.0)] * 3)
        result = run_closed_loop(ctrl, [0.0] * 4, [0.0, 0.0, 0.0, 5.0], steps=3)

        assert result["steps"] == 3
        assert result["failures"] == 0
        assert result["trajectory"].shape == (4, 4)
        assert result["actuations"] == [Actuation(0.0, 1.0)] * 3
        assert len(result["solve_times"]) == 3

    def test_actuation_applied_one_cycle_late(self):
        """The plant moves under the command that was in effect at measurement."""
        ctrl = self._controller([Actuation(0.0, 1.0)] * 2)
        result = run_closed_loop(ctrl, [0.0] * 4, [0.0, 0.0, 0.0, 5.0], steps=2, latency=0.1)
        speeds = result["trajectory"][:, 3]
        assert speeds == pytest.approx([5.0, 5.0, 5.1])

    def test_measured_errors_passed_to_cycle(self):
        ctrl = self._controller([Actuation.zero()])
        run_closed_loop(ctrl, [1.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 5.0], steps=1)
        measured, last, coeffs = ctrl.cycle.call_args[0]
        assert list(measured) == pytest.approx([0.0, 0.0, 0.0, 5.0, 1.0, 0.0])
        assert last == Actuation.zero()

    def test_failure_uses_fallback(self):
        ctrl = self._controller([Actuation(0.1, 0.5), InfeasibleProblemError(), Actuation(0.0, 0.0)])
        result = run_closed_loop(ctrl, [0.0] * 4, [0.0, 0.0, 0.0, 5.0], steps=3)

        assert result["failures"] == 1
        assert result["actuations"][1] == Actuation(0.1, -0.1)


@pytest.mark.requires_casadi
@pytest.mark.integration
@pytest.mark.slow
class TestRunClosedLoop:
    """Closed loop with IPOPT."""

    def test_converges_to_path_and_speed(self, controller):
        result = run_closed_loop(controller, [1.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 5.0], steps=60)

        assert result["failures"] == 0
        final = result["trajectory"][-1]
        assert abs(final[1] - 1.0) < 0.5
        assert 6.0 < final[3] < 10.5
        for actuation in result["actuations"]:
            assert abs(actuation.delta) <= 0.436332 + 1e-6
            assert abs(actuation.a) <= 1.0 + 1e-6

    def test_trajectory_is_finite(self, controller):
        result = run_closed_loop(controller, [0.0] * 4, [0.0, -0.5, 0.0, 3.0], steps=10)
        assert np.all(np.isfinite(result["trajectory"]))
