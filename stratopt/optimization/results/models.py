from typing import Any, Dict, List, Optional
import pandas as pd
from pydantic import BaseModel, Field

from stratopt.configs.optimization.orchestrator import OptimizationConfig
from stratopt.optimization.objectives import ObjectiveScores
from stratopt.optimization.search_space.space import ParameterSet


class OptimizationSolution(BaseModel):
    """
    One evaluated candidate.

    The in-sample part never changes after creation. ``is_pareto_optimal`` is
    re-derived whenever the frontier changes, and the out-of-sample fields are
    filled once by the walk-forward validator when the solution first reaches
    the frontier.
    """
    id: str
    iteration: int
    parameters: ParameterSet
    in_sample_scores: ObjectiveScores

    out_of_sample_scores: ObjectiveScores = Field(default_factory=dict)
    degradation_pct: float = 0.0
    degradation_defined: bool = False
    is_overfit: bool = False
    is_validated: bool = False
    validation_error: Optional[str] = None

    is_pareto_optimal: bool = False


class OptimizationProgress(BaseModel):
    """Transient snapshot published while a run is in flight."""
    iteration: int
    max_iterations: int
    best_solution: Optional[OptimizationSolution] = None
    pareto_frontier: List[OptimizationSolution] = Field(default_factory=list)
    estimated_time_remaining_seconds: float = 0.0
    workers_active: int = 0
    evaluations_completed: int = 0
    last_error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class OptimizationResult(BaseModel):
    """Terminal snapshot of a completed, stopped or failed run."""
    config: OptimizationConfig
    solutions: List[OptimizationSolution] = Field(default_factory=list)
    pareto_frontier: List[OptimizationSolution] = Field(default_factory=list)
    total_iterations: int = 0
    total_time_seconds: float = 0.0
    cache_hit_rate: float = 0.0
    cancelled: bool = False
    error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_frame(self) -> pd.DataFrame:
        """
        One row per solution, for side-by-side comparison.

        Parameters are flattened to ``<block_id>.<param_name>`` columns and
        scores to ``in_sample.<objective>`` / ``out_of_sample.<objective>``.
        """
        rows: List[Dict[str, Any]] = []
        for solution in self.solutions:
            row: Dict[str, Any] = {
                'id': solution.id,
                'iteration': solution.iteration,
                'is_pareto_optimal': solution.is_pareto_optimal,
                'degradation_pct': solution.degradation_pct if solution.degradation_defined else float('nan'),
                'is_overfit': solution.is_overfit,
            }
            for block_id, values in solution.parameters.items():
                for name, value in values.items():
                    row[f"{block_id}.{name}"] = value
            for name, value in solution.in_sample_scores.items():
                row[f"in_sample.{name}"] = value
            for name, value in solution.out_of_sample_scores.items():
                row[f"out_of_sample.{name}"] = value
            rows.append(row)

        if not rows:
            return pd.DataFrame(
                columns=['id', 'iteration', 'is_pareto_optimal', 'degradation_pct', 'is_overfit']
            ).set_index('id')
        return pd.DataFrame(rows).set_index('id')
