from .optimization import (
    BacktestRequest,
    Objective,
    OptimizationOrchestrator,
    OptimizationResult,
    ParameterDefinition,
)
from .configs.optimization.orchestrator import Algorithm, OptimizationConfig, OrchestratorConfig
from .configs.backtest import BacktestWindow

__all__ = [
    'Algorithm',
    'BacktestRequest',
    'BacktestWindow',
    'Objective',
    'OptimizationConfig',
    'OptimizationOrchestrator',
    'OptimizationResult',
    'OrchestratorConfig',
    'ParameterDefinition',
]
