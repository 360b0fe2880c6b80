"""
Exception hierarchy for optimization runs.
"""


class OptimizationError(Exception):
    """Base class for every error raised by the optimization engine."""


class OptimizationConfigError(OptimizationError, ValueError):
    """Invalid run configuration; raised before any candidate is evaluated."""


class EvaluationError(OptimizationError, RuntimeError):
    """A single candidate could not be scored. Never aborts a run."""


class OptimizationCancelled(OptimizationError):
    """Raised inside workers when the run was stopped before a backtest began."""
