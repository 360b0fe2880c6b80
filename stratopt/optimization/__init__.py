"""
Optimization module for multi-objective strategy parameter tuning.

This module searches the parameter space of a block-based strategy for the
Pareto-optimal trade-offs between several backtest objectives, and
revalidates the trade-offs it finds on held-out data.
"""

from .orchestrator import OptimizationOrchestrator
from .algorithms.base import BaseOptimizer
from .errors import EvaluationError, OptimizationCancelled, OptimizationConfigError, OptimizationError
from .objectives import Objective
from .results.models import OptimizationProgress, OptimizationResult, OptimizationSolution
from .scoring import BacktestRequest
from .search_space.parameter import ParameterDefinition, ParameterKind
from .search_space.space import SearchSpace

__all__ = [
    'OptimizationOrchestrator',
    'BaseOptimizer',
    'EvaluationError',
    'OptimizationCancelled',
    'OptimizationConfigError',
    'OptimizationError',
    'Objective',
    'OptimizationProgress',
    'OptimizationResult',
    'OptimizationSolution',
    'BacktestRequest',
    'ParameterDefinition',
    'ParameterKind',
    'SearchSpace',
]
