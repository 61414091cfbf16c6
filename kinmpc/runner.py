"""
Closed-loop execution runner.

Drives a kinematic plant with :class:`MPCController` over a fixed path.
"""

from typing import Dict, Optional, Sequence

import numpy as np

from kinmpc.controller import MPCController, tracking_errors
from kinmpc.exceptions import SolverFailedError
from kinmpc.logging import LOG_INFO, LOG_WARN, CycleTimer
from kinmpc.types import Actuation, as_path_coefficients

FALLBACK_DECELERATION = -0.1


def fallback_actuation(previous: Actuation, throttle_limit: float) -> Actuation:
    """Hold the previous steering and coast down gently."""
    return Actuation(previous.delta, max(FALLBACK_DECELERATION, -throttle_limit))


def run_closed_loop(
    controller: MPCController,
    coeffs: Sequence[float],
    initial_state: Sequence[float],
    steps: int = 50,
    latency: Optional[float] = None,
) -> Dict:
    """
    Run the controller against a kinematic plant.

    The plant shares the controller's model. Each step the measured pose is
    handed to ``controller.cycle`` together with the actuation still in
    effect; the plant then advances one ``latency`` interval under that
    actuation before the new command takes over.

    Args:
        controller: Initialized controller.
        coeffs: Path coefficients, fixed for the whole run.
        initial_state: Plant pose ``(x, y, psi, v)``.
        steps: Number of control cycles.
        latency: Cycle period in seconds; defaults to the controller's latency.

    Returns:
        Dictionary with trajectory, actuations and statistics
    """
    coeffs = as_path_coefficients(coeffs)
    if latency is None:
        latency = controller.config.controller.latency
    throttle_limit = controller.config.limits.throttle

    plant = np.asarray(initial_state, dtype=float).ravel()[:4]
    last_actuation = Actuation.zero()
    trajectory = [plant.copy()]
    actuations = []
    failures = 0
    timer = CycleTimer()

    LOG_INFO(f"Starting closed loop: {steps} steps, latency={latency}s")

    for step in range(steps):
        cte, epsi = tracking_errors(coeffs, *plant[:3])
        measured = np.concatenate([plant, [cte, epsi]])

        try:
            with timer.measure():
                command = controller.cycle(measured, last_actuation, coeffs)
        except SolverFailedError as e:
            LOG_WARN(f"Step {step}: solve failed ({e}), applying fallback")
            failures += 1
            command = fallback_actuation(last_actuation, throttle_limit)

        plant = controller.predict(plant, last_actuation, latency)
        last_actuation = command
        trajectory.append(plant.copy())
        actuations.append(command)

        if step % 20 == 0:
            LOG_INFO(
                f"Step {step}: position=({plant[0]:.2f}, {plant[1]:.2f}), "
                f"v={plant[3]:.2f}, cte={cte:.3f}"
            )

    LOG_INFO(f"Closed loop completed after {steps} steps, {failures} failed solves")
    timer.log_stats()

    return {
        "trajectory": np.array(trajectory),
        "actuations": actuations,
        "failures": failures,
        "steps": steps,
        "solve_times": timer.times,
    }
