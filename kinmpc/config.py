"""
Configuration management for kinmpc.

This module provides:
- MPCConfig: Typed configuration dataclass (horizon, cost weights, actuator
  limits, solver tuning, latency and default reference targets)
- ConfigManager: Central configuration management with environment support
- create_default_config: Factory function for the default configuration
"""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from kinmpc.exceptions import ConfigNotFoundError, ConfigValidationError


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class HorizonConfig:
    """Discretization of the prediction horizon.

    ``lf`` is the distance between the front axle and the center of gravity
    of the kinematic bicycle, calibrated so that the model reproduces the
    vehicle's turning radius.
    """

    steps: int = 11
    dt: float = 0.1
    lf: float = 2.67

    def validate(self) -> None:
        """Validate horizon configuration."""
        if self.steps < 2:
            raise ConfigValidationError("horizon.steps", "must be >= 2", self.steps)
        if self.dt <= 0:
            raise ConfigValidationError("horizon.dt", "must be > 0", self.dt)
        if self.lf <= 0:
            raise ConfigValidationError("horizon.lf", "must be > 0", self.lf)


@dataclass
class CostWeights:
    """Relative priority of path tracking against actuator effort and smoothness."""

    tracking_cte: float = 16.0
    tracking_epsi: float = 12.0
    tracking_v: float = 1.0
    effort_delta: float = 8.0
    effort_a: float = 6.0
    smoothness_delta: float = 400.0
    smoothness_a: float = 10.0

    def validate(self) -> None:
        """Validate cost weights."""
        for name, value in asdict(self).items():
            if value < 0:
                raise ConfigValidationError(f"weights.{name}", "must be >= 0", value)


@dataclass
class ActuatorLimits:
    """Box bounds on the decision vector.

    ``unbounded`` stands in for infinity on state variables; IPOPT treats
    magnitudes of 1e19 and above as no bound.
    """

    steering: float = 0.436332
    throttle: float = 1.0
    unbounded: float = 1.0e19

    def validate(self) -> None:
        """Validate actuator limits."""
        if self.steering <= 0:
            raise ConfigValidationError("limits.steering", "must be > 0", self.steering)
        if self.throttle <= 0:
            raise ConfigValidationError("limits.throttle", "must be > 0", self.throttle)
        if self.unbounded <= max(self.steering, self.throttle):
            raise ConfigValidationError(
                "limits.unbounded", "must exceed the actuator limits", self.unbounded
            )


@dataclass
class SolverConfig:
    """IPOPT tuning."""

    max_cpu_time: float = 0.5
    print_level: int = 0
    max_iterations: int = 3000
    tolerance: float = 1e-8
    linear_solver: str = "mumps"
    warm_start: bool = False

    def validate(self) -> None:
        """Validate solver configuration."""
        if self.max_cpu_time <= 0:
            raise ConfigValidationError(
                "solver.max_cpu_time", "must be > 0", self.max_cpu_time
            )
        if not 0 <= self.print_level <= 12:
            raise ConfigValidationError(
                "solver.print_level", "must be in [0, 12]", self.print_level
            )
        if self.max_iterations < 1:
            raise ConfigValidationError(
                "solver.max_iterations", "must be >= 1", self.max_iterations
            )
        if self.tolerance <= 0:
            raise ConfigValidationError("solver.tolerance", "must be > 0", self.tolerance)


@dataclass
class ControllerConfig:
    """Actuation latency compensated by forward prediction, in seconds."""

    latency: float = 0.1

    def validate(self) -> None:
        if self.latency < 0:
            raise ConfigValidationError("controller.latency", "must be >= 0", self.latency)


@dataclass
class ReferenceConfig:
    """Default reference targets used by the CLI and the closed-loop runner."""

    ref_cte: float = 0.0
    ref_epsi: float = 0.0
    ref_v: float = 10.0

    def validate(self) -> None:
        """Validate reference targets."""
        for name, value in asdict(self).items():
            if not math.isfinite(value):
                raise ConfigValidationError(f"references.{name}", "must be finite", value)
        if self.ref_v < 0:
            raise ConfigValidationError("references.ref_v", "must be >= 0", self.ref_v)


@dataclass
class MPCConfig:
    """Complete controller configuration."""

    horizon: HorizonConfig = field(default_factory=HorizonConfig)
    weights: CostWeights = field(default_factory=CostWeights)
    limits: ActuatorLimits = field(default_factory=ActuatorLimits)
    solver: SolverConfig = field(default_factory=SolverConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    references: ReferenceConfig = field(default_factory=ReferenceConfig)

    def validate(self) -> None:
        """Validate all configuration settings."""
        self.horizon.validate()
        self.weights.validate()
        self.limits.validate()
        self.solver.validate()
        self.controller.validate()
        self.references.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to its nested dictionary form."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MPCConfig":
        """Create MPCConfig from dictionary, ignoring unknown keys."""
        sections = {
            "horizon": HorizonConfig,
            "weights": CostWeights,
            "limits": ActuatorLimits,
            "solver": SolverConfig,
            "controller": ControllerConfig,
            "references": ReferenceConfig,
        }
        kwargs = {}
        for name, section_cls in sections.items():
            section_data = data.get(name) or {}
            known = section_cls.__dataclass_fields__
            kwargs[name] = section_cls(
                **{k: v for k, v in section_data.items() if k in known}
            )
        return cls(**kwargs)


# =============================================================================
# Configuration Manager
# =============================================================================


class ConfigManager:
    """Central configuration management with environment variable support.

    Environment variables take precedence over config files.
    Config files take precedence over defaults.

    Environment variable format: KINMPC_<SECTION>_<KEY>
    Example: KINMPC_SOLVER_MAX_CPU_TIME=0.2
    """

    ENV_PREFIX = "KINMPC"
    SECTIONS = ("horizon", "weights", "limits", "solver", "controller", "references")

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to YAML configuration file.
        """
        self._config: Optional[MPCConfig] = None
        self._config_path = Path(config_path) if config_path else None
        self._raw_config: Dict[str, Any] = {}

    def load(self, validate: bool = True) -> MPCConfig:
        """Load and return configuration.

        Args:
            validate: Whether to validate configuration after loading.

        Returns:
            Loaded MPCConfig instance.
        """
        self._raw_config = create_default_config()

        if self._config_path:
            self._load_from_file(self._config_path)

        self._load_from_env()

        self._config = MPCConfig.from_dict(self._raw_config)

        if validate:
            self._config.validate()

        return self._config

    def _load_from_file(self, path: Path) -> None:
        """Load configuration from YAML file."""
        if not path.exists():
            raise ConfigNotFoundError(str(path))

        with open(path, "r") as f:
            file_config = yaml.safe_load(f)

        if file_config:
            self._deep_update(self._raw_config, file_config)

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        prefix = f"{self.ENV_PREFIX}_"
        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue
            config_key = key[len(prefix):].lower()
            section, _, name = config_key.partition("_")
            # KINMPC_LOG_LEVEL and friends belong to the logging module
            if section in self.SECTIONS and name:
                self._raw_config.setdefault(section, {})[name] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate Python type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _deep_update(base: dict, update: dict) -> dict:
        """Deep merge update into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ConfigManager._deep_update(base[key], value)
            else:
                base[key] = value
        return base


# =============================================================================
# Factory Functions
# =============================================================================


def create_default_config() -> Dict[str, Any]:
    """Create the default configuration dictionary."""
    return MPCConfig().to_dict()

