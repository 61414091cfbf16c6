"""
Logging for kinmpc.

Everything goes through the ``kinmpc`` logger. Its level comes from
``KINMPC_LOG_LEVEL`` unless the CLI overrides it with ``-v``/``-q``.
Besides the LOG_* helpers this module reports the outcome of each solve
and keeps per-cycle wall times for the closed-loop runner.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, List, Optional, TextIO, Tuple, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

LOG_LEVEL_ENV = "KINMPC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_logger = logging.getLogger("kinmpc")


def setup_logging(
    level: Optional[int] = None,
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach a single stream handler to the ``kinmpc`` logger.

    Args:
        level: Log level; read from ``KINMPC_LOG_LEVEL`` (default INFO) if omitted.
        stream: Destination; stderr if omitted.
        force: Replace an existing handler.
    """
    if _logger.handlers and not force:
        return _logger

    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)

    if level is None:
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _logger.addHandler(handler)
    _logger.setLevel(level)
    _logger.propagate = False
    return _logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """The ``kinmpc`` logger, or its child ``kinmpc.<name>``."""
    return _logger.getChild(name) if name else _logger


def LOG_DEBUG(msg: str, *args: Any) -> None:
    _logger.debug(msg, *args)


def LOG_INFO(msg: str, *args: Any) -> None:
    _logger.info(msg, *args)


def LOG_WARN(msg: str, *args: Any) -> None:
    _logger.warning(msg, *args)


def timed(func: F) -> F:
    """Log how long ``func`` took at debug level."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            LOG_DEBUG(f"{func.__name__} took {time.perf_counter() - start:.4f}s")

    return wrapper  # type: ignore


def log_solve(result, explanation: str = "") -> None:
    """Report one solver call.

    Successful solves are logged at debug level with their objective;
    failures are warnings carrying the IPOPT return status.
    """
    timing = f"{result.iterations} iterations, {result.solve_time * 1000:.1f} ms"
    if result.success:
        LOG_DEBUG(f"Cost {result.objective:.6f} ({timing})")
        return
    detail = explanation or result.message or "no interpretation"
    LOG_WARN(f"Solve failed: {result.return_status} [{result.status.value}] ({timing}): {detail}")


class CycleTimer:
    """Wall time of each control cycle, in milliseconds.

    Example:
        timer = CycleTimer()
        with timer.measure():
            controller.cycle(state, actuation, coeffs)
        timer.log_stats()
    """

    def __init__(self):
        self._times: List[float] = []

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self._times.append((time.perf_counter() - start) * 1000)

    @property
    def times(self) -> List[float]:
        return list(self._times)

    def get_stats(self) -> Tuple[float, float, int]:
        """``(mean_ms, max_ms, count)``; zeros when nothing was measured."""
        if not self._times:
            return 0.0, 0.0, 0
        return sum(self._times) / len(self._times), max(self._times), len(self._times)

    def log_stats(self) -> None:
        mean, worst, count = self.get_stats()
        LOG_INFO(f"Cycle time over {count} cycles: mean {mean:.1f} ms, max {worst:.1f} ms")

    def reset(self) -> None:
        self._times = []


setup_logging()
