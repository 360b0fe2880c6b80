from datetime import datetime
from pydantic import Field, model_validator

from .base import BaseConfig


class BacktestWindow(BaseConfig):
    """
    Date range and capital settings handed to the backtest collaborator.

    Attributes:
        start_date (datetime): First day of the full backtest range.
        end_date (datetime): Last day of the full backtest range.
        initial_capital (float): Starting capital for every backtest run.
        rebalance_interval (int): Rebalance interval passed through to the simulator.
    """
    start_date: datetime
    end_date: datetime
    initial_capital: float = Field(10_000.0, gt=0, description="Starting capital for each backtest")
    rebalance_interval: int = Field(1, gt=0, description="Rebalance interval in days")

    @model_validator(mode='after')
    def validate_dates(self) -> 'BacktestWindow':
        if self.start_date >= self.end_date:
            raise ValueError('start_date must be before end_date')
        return self

    def with_range(self, start_date: datetime, end_date: datetime) -> 'BacktestWindow':
        """Copy of this window restricted to another date range."""
        return self.model_copy(update={'start_date': start_date, 'end_date': end_date})
