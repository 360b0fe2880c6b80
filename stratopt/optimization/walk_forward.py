"""
Walk-forward validation: train/test window derivation and overfitting checks.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import pandas as pd
from pydantic import BaseModel, model_validator

from stratopt.configs.backtest import BacktestWindow
from stratopt.configs.optimization.walk_forward import WalkForwardConfig, WalkForwardMode
from stratopt.optimization.errors import OptimizationConfigError
from stratopt.optimization.objectives import Objective, ObjectiveScores, is_maximized
from stratopt.optimization.results.models import OptimizationSolution
from utils.logger import get_logger

logger = get_logger(__name__)

# solution id -> out-of-sample scores, or the error message when scoring failed
OutOfSampleOutcomes = Dict[str, Union[ObjectiveScores, str]]


class WalkForwardWindow(BaseModel):
    train_start: datetime
    train_end: datetime
    test_start: datetime
    test_end: datetime

    @model_validator(mode='after')
    def validate_order(self) -> 'WalkForwardWindow':
        if not self.train_start < self.train_end <= self.test_start < self.test_end:
            raise ValueError("Walk-forward window must satisfy train_start < train_end <= test_start < test_end")
        return self

    def train_segment(self, base: BacktestWindow) -> BacktestWindow:
        return base.with_range(self.train_start, self.train_end)

    def test_segment(self, base: BacktestWindow) -> BacktestWindow:
        return base.with_range(self.test_start, self.test_end)


def holdout_split(window: BacktestWindow, holdout_fraction: float) -> WalkForwardWindow:
    """
    Single window holding out the last ``holdout_fraction`` of the range.

    The split is rounded to whole seconds unless that would empty one side.

    Raises:
        OptimizationConfigError: The range is too short to split.
    """
    start = pd.Timestamp(window.start_date)
    end = pd.Timestamp(window.end_date)
    exact = end - (end - start) * holdout_fraction
    split = exact.round('s')
    if not start < split < end:
        split = exact.round('us')
    if not start < split < end:
        raise OptimizationConfigError(
            f"Backtest range {window.start_date} .. {window.end_date} is too short for a train/test split"
        )
    return WalkForwardWindow(
        train_start=start.to_pydatetime(),
        train_end=split.to_pydatetime(),
        test_start=split.to_pydatetime(),
        test_end=end.to_pydatetime(),
    )


def walk_forward_split(window: BacktestWindow, config: WalkForwardConfig) -> List[WalkForwardWindow]:
    """
    Derives the walk-forward windows of one run.

    Args:
        window (BacktestWindow): Full backtest range.
        config (WalkForwardConfig): Split policy. Holdout mode yields one window;
            rolling mode slides ``train_window_days`` + ``test_window_days``
            forward by ``step_size_days`` while the test segment fits.

    Returns:
        List[WalkForwardWindow]: At least one window.
    """
    if config.mode == WalkForwardMode.HOLDOUT:
        return [holdout_split(window, config.holdout_fraction)]

    start = pd.Timestamp(window.start_date)
    end = pd.Timestamp(window.end_date)
    train = pd.Timedelta(days=config.train_window_days)
    test = pd.Timedelta(days=config.test_window_days)
    step = pd.Timedelta(days=config.step_size_days)

    if start + train + test > end:
        logger.warning(
            f"Cannot create rolling splits: train_window ({config.train_window_days}d) + "
            f"test_window ({config.test_window_days}d) exceeds the backtest range; falling back to holdout"
        )
        return [holdout_split(window, config.holdout_fraction)]

    windows = []
    current = start
    while current + train + test <= end:
        train_end = current + train
        windows.append(WalkForwardWindow(
            train_start=current.to_pydatetime(),
            train_end=train_end.to_pydatetime(),
            test_start=train_end.to_pydatetime(),
            test_end=(train_end + test).to_pydatetime(),
        ))
        current = current + step

    logger.info(
        f"Created {len(windows)} walk-forward windows with train_window={config.train_window_days}d, "
        f"test_window={config.test_window_days}d, step_size={config.step_size_days}d"
    )
    return windows


class WalkForwardValidator:
    """
    Revalidates Pareto frontier members on the held-out segment(s).

    Only frontier members are scored out-of-sample, and each of them only
    once, which keeps the extra backtest cost bounded by the frontier size.
    """

    def __init__(self, config: WalkForwardConfig, primary_objective: Objective):
        self.config = config
        self.primary_objective = Objective(primary_objective)
        self.windows: List[WalkForwardWindow] = []
        self._base: Optional[BacktestWindow] = None

    def prepare(self, backtest_window: BacktestWindow) -> List[WalkForwardWindow]:
        """Derive the run's windows once, before any evaluation."""
        self._base = backtest_window
        self.windows = walk_forward_split(backtest_window, self.config)
        return self.windows

    def train_segments(self) -> List[BacktestWindow]:
        return [w.train_segment(self._base) for w in self.windows]

    def test_segments(self) -> List[BacktestWindow]:
        return [w.test_segment(self._base) for w in self.windows]

    def calculate_degradation(self, in_sample: ObjectiveScores, out_of_sample: ObjectiveScores) -> Tuple[float, bool]:
        """
        Relative in-sample to out-of-sample drop of the primary objective, in percent.

        Positive means worse out-of-sample, whatever the objective's direction.

        Returns:
            (degradation_pct, defined); undefined (0.0, False) when the
            in-sample score is zero or either score is missing.
        """
        name = self.primary_objective.value
        in_value = in_sample.get(name)
        out_value = out_of_sample.get(name)
        if in_value is None or out_value is None or in_value == 0:
            return 0.0, False

        if is_maximized(self.primary_objective):
            degradation = (in_value - out_value) / in_value * 100
        else:
            degradation = (out_value - in_value) / in_value * 100
        return float(degradation), True

    def is_overfit(self, degradation_pct: float) -> bool:
        return degradation_pct > self.config.overfit_threshold_pct

    def validate(
        self,
        frontier: Sequence[OptimizationSolution],
        evaluate_out_of_sample: Callable[[List[OptimizationSolution]], OutOfSampleOutcomes],
    ) -> List[OptimizationSolution]:
        """
        Score not-yet-validated frontier members out-of-sample.

        Args:
            frontier: Current Pareto frontier.
            evaluate_out_of_sample: Scores a batch of solutions on the test
                segments; members missing from its output (e.g. cancelled)
                stay unvalidated and are retried on the next call.

        Returns:
            The solutions validated by this call.
        """
        pending = [s for s in frontier if not s.is_validated]
        if not pending:
            return []

        outcomes = evaluate_out_of_sample(pending)
        validated = []
        for solution in pending:
            outcome = outcomes.get(solution.id)
            if outcome is None:
                continue
            solution.is_validated = True
            if isinstance(outcome, str):
                solution.validation_error = outcome
                logger.warning(f"Out-of-sample validation failed for {solution.id}: {outcome}")
            else:
                solution.out_of_sample_scores = dict(outcome)
                degradation, defined = self.calculate_degradation(solution.in_sample_scores, outcome)
                solution.degradation_pct = degradation
                solution.degradation_defined = defined
                solution.is_overfit = defined and self.is_overfit(degradation)
                if solution.is_overfit:
                    logger.info(f"{solution.id} looks overfit: {degradation:.1f}% degradation on {self.primary_objective.value}")
            validated.append(solution)
        return validated
