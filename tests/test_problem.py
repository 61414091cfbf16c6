"""
Tests for the tracking problem formulation and the bounds policy.
"""

from __future__ import annotations

import numpy as np
import pytest

from kinmpc.bounds import BoundsPolicy, ProblemBounds, shifted_initial_guess
from kinmpc.config import ActuatorLimits, CostWeights
from kinmpc.dynamics import KinematicBicycleModel
from kinmpc.layout import Layout
from kinmpc.problem import TrackingProblem
from kinmpc.types import Actuation, ReferenceTargets, State


def rollout(layout, state, actuations, coeffs, dt=0.1, lf=2.67):
    """Decision vector whose states follow the model exactly."""
    model = KinematicBicycleModel(lf)
    vars = np.zeros(layout.n_vars)
    current = state
    for t in range(layout.steps):
        vars[[start + t for start in layout.state_starts]] = current.as_array()
        if t < layout.steps - 1:
            u = actuations[t]
            vars[layout.delta_start + t] = u.delta
            vars[layout.a_start + t] = u.a
            current = model.step(current, u, coeffs, dt)
    return vars


@pytest.mark.requires_casadi
class TestTrackingProblem:
    """Tests for TrackingProblem."""

    def test_nlp_dimensions(self, tracking_problem, layout):
        nlp = tracking_problem.nlp()
        assert nlp["x"].shape == (layout.n_vars, 1)
        assert nlp["g"].shape == (layout.n_constraints, 1)
        assert nlp["f"].shape == (1, 1)

    def test_nlp_built_once(self, tracking_problem):
        assert tracking_problem.nlp()["x"] is tracking_problem.nlp()["x"]

    def test_speed_tracking_cost(self, tracking_problem, layout):
        """A zero vector pays (v - ref_v)^2 at every step."""
        cost, _ = tracking_problem.function()(np.zeros(layout.n_vars))
        assert float(cost) == pytest.approx(11 * 100.0)

    def test_effort_and_smoothness_cost(self, tracking_problem, layout):
        vars = np.zeros(layout.n_vars)
        vars[layout.v_start : layout.v_start + layout.steps] = 10.0
        vars[layout.delta_start] = 0.1
        cost, _ = tracking_problem.function()(vars)
        # 8 * 0.1^2 effort plus 400 * 0.1^2 for the change to delta_1 = 0
        assert float(cost) == pytest.approx(0.08 + 4.0)

    def test_cost_on_plain_numbers(self, tracking_problem, layout):
        """The cost expression also evaluates directly on a numeric vector."""
        vars = np.zeros(layout.n_vars)
        vars[layout.a_start] = 0.5
        cost = tracking_problem.cost(vars)
        # Speed error at every step, 6 * 0.5^2 effort, 10 * 0.5^2 for the change to a_1 = 0
        assert float(cost) == pytest.approx(11 * 100.0 + 1.5 + 2.5)
        symbolic, _ = tracking_problem.function()(vars)
        assert float(symbolic) == pytest.approx(float(cost))

    def test_reference_targets_shift_cost(self, layout, straight_coeffs):
        refs = ReferenceTargets(ref_cte=1.0, ref_epsi=0.0, ref_v=0.0)
        problem = TrackingProblem(layout, straight_coeffs, refs, CostWeights(), 0.1, 2.67)
        cost, _ = problem.function()(np.zeros(layout.n_vars))
        assert float(cost) == pytest.approx(11 * 16.0)

    def test_initial_constraints_are_identities(self, tracking_problem, layout):
        vars = np.arange(layout.n_vars, dtype=float)
        _, g = tracking_problem.function()(vars)
        g = g.full().ravel()
        for start in layout.state_starts:
            assert g[start] == vars[start]

    def test_defects_vanish_on_model_rollout(self, layout):
        coeffs = (0.5, 0.1, -0.01, 0.001)
        refs = ReferenceTargets(0.0, 0.0, 10.0)
        problem = TrackingProblem(layout, coeffs, refs, CostWeights(), 0.1, 2.67)
        actuations = [Actuation(0.05 * np.sin(t), 0.3) for t in range(layout.steps - 1)]
        vars = rollout(layout, State(0.0, 0.0, 0.1, 6.0, 0.5, -0.1), actuations, coeffs)

        _, g = problem.function()(vars)
        g = g.full().ravel()
        mask = np.ones(layout.n_constraints, dtype=bool)
        mask[list(layout.state_starts)] = False
        assert np.max(np.abs(g[mask])) < 1e-9

    def test_defects_detect_inconsistency(self, tracking_problem, layout):
        vars = rollout(layout, State(0.0, 0.0, 0.0, 10.0), [Actuation.zero()] * 10, (0.0,) * 4)
        vars[layout.x_start + 3] += 1.0
        _, g = tracking_problem.function()(vars)
        assert float(g[layout.x_start + 3]) == pytest.approx(1.0)

    def test_coefficients_copied(self, layout, references):
        coeffs = np.array([0.1, 0.2, 0.3, 0.4])
        problem = TrackingProblem(layout, coeffs, references, CostWeights(), 0.1, 2.67)
        coeffs[0] = 99.0
        assert problem.coeffs == (0.1, 0.2, 0.3, 0.4)


class TestBoundsPolicy:
    """Tests for BoundsPolicy."""

    def test_variable_bounds(self, layout):
        lbx, ubx = BoundsPolicy().variable_bounds(layout)
        assert np.all(lbx[: layout.delta_start] == -1.0e19)
        assert np.all(ubx[: layout.delta_start] == 1.0e19)
        assert np.all(lbx[layout.block("delta")] == -0.436332)
        assert np.all(ubx[layout.block("delta")] == 0.436332)
        assert np.all(lbx[layout.block("a")] == -1.0)
        assert np.all(ubx[layout.block("a")] == 1.0)

    def test_custom_limits(self, layout):
        lbx, ubx = BoundsPolicy(ActuatorLimits(steering=0.2, throttle=0.5)).variable_bounds(layout)
        assert ubx[layout.delta_start] == 0.2
        assert lbx[layout.a_start] == -0.5

    def test_constraint_bounds_pin_initial_state(self, layout):
        state = State(1.0, 2.0, 0.1, 5.0, 0.3, -0.2)
        lbg, ubg = BoundsPolicy().constraint_bounds(layout, state)
        starts = list(layout.state_starts)
        assert np.array_equal(lbg[starts], state.as_array())
        assert np.array_equal(ubg[starts], state.as_array())
        mask = np.ones(layout.n_constraints, dtype=bool)
        mask[starts] = False
        assert np.all(lbg[mask] == 0.0) and np.all(ubg[mask] == 0.0)

    def test_initial_guess(self, layout):
        state = State(1.0, 2.0, 0.1, 5.0, 0.3, -0.2)
        x0 = BoundsPolicy().initial_guess(layout, state)
        assert np.array_equal(x0[list(layout.state_starts)], state.as_array())
        assert np.count_nonzero(x0) == 6

    def test_build(self, layout):
        bounds = BoundsPolicy().build(layout, State(0.0, 0.0, 0.0, 5.0))
        assert isinstance(bounds, ProblemBounds)
        assert bounds.lbx.shape == bounds.x0.shape == (layout.n_vars,)
        assert bounds.lbg.shape == (layout.n_constraints,)

    def test_with_initial_guess(self, layout):
        bounds = BoundsPolicy().build(layout, State(0.0, 0.0, 0.0, 5.0))
        seeded = bounds.with_initial_guess(np.ones(layout.n_vars))
        assert np.all(seeded.x0 == 1.0)
        assert np.count_nonzero(bounds.x0) == 1


class TestShiftedInitialGuess:
    """Tests for the warm start seed."""

    def test_blocks_shift_forward(self):
        lay = Layout.from_horizon(4)
        previous = np.arange(lay.n_vars, dtype=float)
        state = State(-1.0, -2.0, -3.0, -4.0, -5.0, -6.0)
        x0 = shifted_initial_guess(lay, previous, state)

        assert list(x0[lay.block("x")]) == [-1.0, 2.0, 3.0, 3.0]
        assert list(x0[lay.block("epsi")]) == [-6.0, 22.0, 23.0, 23.0]
        assert list(x0[lay.block("delta")]) == [25.0, 26.0, 26.0]
        assert list(x0[lay.block("a")]) == [28.0, 29.0, 29.0]

    def test_previous_not_modified(self):
        lay = Layout.from_horizon(4)
        previous = np.arange(lay.n_vars, dtype=float)
        shifted_initial_guess(lay, previous, State(0.0, 0.0, 0.0, 0.0))
        assert np.array_equal(previous, np.arange(lay.n_vars, dtype=float))

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            shifted_initial_guess(Layout.from_horizon(4), np.zeros(3), State(0.0, 0.0, 0.0, 0.0))
