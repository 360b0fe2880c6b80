"""
Objective scorer: the thin layer between the engine and the backtest collaborator.
"""

from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence
from pydantic import BaseModel, Field

from stratopt.configs.backtest import BacktestWindow
from stratopt.strategy.block import StrategyBlock, apply_parameters, coerce_blocks
from utils.logger import get_logger
from .errors import EvaluationError, OptimizationCancelled
from .objectives import ObjectiveScores, average_scores, scores_from_backtest
from .search_space.space import ParameterSet
from .walk_forward import WalkForwardWindow

logger = get_logger(__name__)


class BacktestRequest(BaseModel):
    """Everything the backtest collaborator needs for one run."""
    blocks: List[StrategyBlock]
    parameter_overrides: ParameterSet = Field(default_factory=dict)
    start_date: datetime
    end_date: datetime
    initial_capital: float
    rebalance_interval: int


# Must be safe to call concurrently from several workers
BacktestRunner = Callable[[BacktestRequest], Mapping[str, Any]]


class CandidateScores(BaseModel):
    in_sample: ObjectiveScores
    out_of_sample: ObjectiveScores


class ObjectiveScorer:
    """
    Runs one candidate parameter set through the backtest collaborator.

    The candidate's values are written onto a fresh copy of the blocks for
    every backtest call; the caller's blocks are never mutated.
    """

    def __init__(self, run_backtest: BacktestRunner):
        self.run_backtest = run_backtest

    def score(
        self,
        blocks: Sequence[Any],
        parameters: ParameterSet,
        segments: Sequence[BacktestWindow],
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> ObjectiveScores:
        """
        Score a candidate over one or more date segments.

        Each objective is averaged over the segments that produced it.

        Raises:
            EvaluationError: The backtest raised, returned something that is
                not a mapping, or produced no usable score at all.
            OptimizationCancelled: ``should_abort`` fired before a backtest started.
        """
        blocks = coerce_blocks(blocks)
        samples = []
        for segment in segments:
            if should_abort is not None and should_abort():
                raise OptimizationCancelled("Evaluation aborted before backtest start")

            request = BacktestRequest(
                blocks=apply_parameters(blocks, parameters),
                parameter_overrides=parameters,
                start_date=segment.start_date,
                end_date=segment.end_date,
                initial_capital=segment.initial_capital,
                rebalance_interval=segment.rebalance_interval,
            )
            try:
                raw = self.run_backtest(request)
            except Exception as e:
                raise EvaluationError(
                    f"Backtest failed for {segment.start_date:%Y-%m-%d}..{segment.end_date:%Y-%m-%d}: {e}"
                ) from e

            if not isinstance(raw, Mapping):
                raise EvaluationError(f"Backtest returned {type(raw).__name__}, expected a mapping of metrics")
            scores = scores_from_backtest(raw)
            if scores:
                samples.append(scores)

        if not samples:
            raise EvaluationError("Backtest produced no usable scores")
        return average_scores(samples)

    def evaluate(
        self,
        blocks: Sequence[Any],
        parameters: ParameterSet,
        base_window: BacktestWindow,
        windows: Sequence[WalkForwardWindow],
    ) -> CandidateScores:
        """Score a candidate on the train segments and on the test segments."""
        in_sample = self.score(blocks, parameters, [w.train_segment(base_window) for w in windows])
        out_of_sample = self.score(blocks, parameters, [w.test_segment(base_window) for w in windows])
        return CandidateScores(in_sample=in_sample, out_of_sample=out_of_sample)
