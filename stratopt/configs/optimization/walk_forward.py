from enum import Enum
from pydantic import Field

from ..base import BaseConfig


class WalkForwardMode(str, Enum):
    HOLDOUT = "holdout"
    ROLLING = "rolling"


class WalkForwardConfig(BaseConfig):
    """
    Train/test splitting policy for walk-forward validation.

    The default holdout mode keeps the last `holdout_fraction` of the backtest
    window as the out-of-sample segment. Rolling mode slides fixed-size
    train/test windows (in days) across the range, like a classic walk-forward
    study, and averages the scores over every window.
    """
    mode: WalkForwardMode = WalkForwardMode.HOLDOUT
    holdout_fraction: float = Field(1 / 6, gt=0, lt=1)

    # Rolling mode only
    train_window_days: int = Field(90, gt=0)
    test_window_days: int = Field(30, gt=0)
    step_size_days: int = Field(30, gt=0)

    overfit_threshold_pct: float = Field(60.0, ge=0, description="Degradation above this flags a solution as overfit")
