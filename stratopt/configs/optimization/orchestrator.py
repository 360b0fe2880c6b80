import os
from enum import Enum
from typing import List, Optional
from pydantic import Field, field_validator, model_validator

from stratopt.optimization.objectives import Objective
from stratopt.optimization.search_space.parameter import ParameterDefinition
from ..backtest import BacktestWindow
from ..base import BaseConfig
from .algorithms import BayesianConfig, GeneticConfig
from .walk_forward import WalkForwardConfig


class Algorithm(str, Enum):
    BAYESIAN = "bayesian"
    GENETIC = "genetic"


# Iteration budget when none is given: candidates for bayesian, generations for genetic
DEFAULT_MAX_ITERATIONS = {
    Algorithm.BAYESIAN: 50,
    Algorithm.GENETIC: 100,
}


class OptimizationConfig(BaseConfig):
    """
    Configuration of one optimization run.

    Attributes:
        algorithm (Algorithm): Search strategy, 'bayesian' or 'genetic'.
        objectives (List[Objective]): At least two distinct objectives; the first is the primary one.
        max_iterations (int): Candidates (bayesian) or generations (genetic) to run. 0 runs nothing.
        parameters (List[ParameterDefinition], optional): Explicit search space; extracted from the blocks when omitted.
        backtest_window (BacktestWindow): Full date range and capital for the backtests.
    """
    algorithm: Algorithm = Algorithm.BAYESIAN
    objectives: List[Objective]
    max_iterations: Optional[int] = Field(None, ge=0)
    parameters: Optional[List[ParameterDefinition]] = None
    backtest_window: BacktestWindow

    bayesian: BayesianConfig = Field(default_factory=BayesianConfig)
    genetic: GeneticConfig = Field(default_factory=GeneticConfig)
    walk_forward: WalkForwardConfig = Field(default_factory=WalkForwardConfig)

    @field_validator('objectives')
    @classmethod
    def validate_objectives(cls, v: List[Objective]) -> List[Objective]:
        if len(v) < 2:
            raise ValueError(f"At least two objectives are required, got {len(v)}")
        if len(set(v)) != len(v):
            raise ValueError(f"Objectives must be distinct: {[o.value for o in v]}")
        return v

    @model_validator(mode='after')
    def apply_default_iterations(self) -> 'OptimizationConfig':
        if self.max_iterations is None:
            self.max_iterations = DEFAULT_MAX_ITERATIONS[self.algorithm]
        return self

    @property
    def primary_objective(self) -> Objective:
        return self.objectives[0]


def default_worker_count() -> int:
    return min(os.cpu_count() or 4, 8)


class OrchestratorConfig(BaseConfig):
    """Execution settings of the orchestrator itself (not of a single run)."""
    max_workers: int = Field(default_factory=default_worker_count, gt=0)
    cache_size: int = Field(1000, gt=0, description="Maximum evaluated parameter sets kept in the cache")
    progress_queue_size: int = Field(256, gt=0, description="Buffered progress snapshots per subscriber")
    progress_put_timeout: float = Field(1.0, ge=0, description="Seconds to wait on a full subscriber queue before dropping")
    max_retries: int = Field(2, ge=0, description="Retries for timeout/network backtest failures")
    retry_initial_delay: float = Field(1.0, ge=0)
    retry_max_delay: float = Field(5.0, ge=0)
    default_seconds_per_iteration: float = Field(5.0, ge=0, description="ETA guess before the first iteration completes")
