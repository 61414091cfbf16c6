"""
Pytest configuration and fixtures for kinmpc tests.

This module provides shared fixtures for testing:
- Configuration fixtures
- State and path fixtures
- Problem and controller fixtures
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import numpy as np
import pytest


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def default_config() -> Dict[str, Any]:
    """Create default MPC configuration."""
    from kinmpc import create_default_config

    return create_default_config()


@pytest.fixture
def mpc_config():
    """Create typed MPC configuration."""
    from kinmpc.config import MPCConfig

    return MPCConfig()


# =============================================================================
# State and Path Fixtures
# =============================================================================


@pytest.fixture
def stationary_state() -> np.ndarray:
    """On the path, aligned with it, already at the reference speed."""
    return np.array([0.0, 0.0, 0.0, 10.0, 0.0, 0.0])


@pytest.fixture
def offset_state() -> np.ndarray:
    """Below reference speed with a one meter cross-track error."""
    return np.array([0.0, 0.0, 0.0, 5.0, 1.0, 0.0])


@pytest.fixture
def straight_coeffs() -> np.ndarray:
    """The x axis."""
    return np.zeros(4)


@pytest.fixture
def sloped_coeffs() -> np.ndarray:
    """A straight line rising to the left."""
    return np.array([0.0, 0.2, 0.0, 0.0])


@pytest.fixture
def references():
    from kinmpc.types import ReferenceTargets

    return ReferenceTargets(ref_cte=0.0, ref_epsi=0.0, ref_v=10.0)


# =============================================================================
# Problem and Controller Fixtures
# =============================================================================


@pytest.fixture
def layout():
    from kinmpc.layout import Layout

    return Layout.from_horizon(11)


@pytest.fixture
def tracking_problem(layout, straight_coeffs, references):
    """Problem on the straight path with default weights."""
    from kinmpc.config import CostWeights
    from kinmpc.problem import TrackingProblem

    return TrackingProblem(layout, straight_coeffs, references, CostWeights(), dt=0.1, lf=2.67)


@pytest.fixture
def controller():
    """Controller with default configuration and the standard references."""
    from kinmpc.controller import MPCController

    ctrl = MPCController()
    ctrl.initialize(ref_cte=0.0, ref_epsi=0.0, ref_v=10.0)
    return ctrl


# =============================================================================
# Temporary Files Fixtures
# =============================================================================


@pytest.fixture
def temp_config_file(tmp_path) -> Path:
    """Create a temporary configuration file."""
    import yaml

    config = {
        "horizon": {
            "steps": 15,
            "dt": 0.05,
        },
        "solver": {
            "warm_start": True,
        },
    }

    config_path = tmp_path / "test_config.yml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)

    return config_path


# =============================================================================
# Marker Registrations
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_casadi: marks tests that require CasADi"
    )


# =============================================================================
# Skip Conditions
# =============================================================================


@pytest.fixture
def skip_without_casadi():
    """Skip test if CasADi is not available."""
    pytest.importorskip("casadi")
