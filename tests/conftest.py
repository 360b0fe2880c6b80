"""
pytest configuration

Shared fixtures: sample strategy blocks, a backtest window and a
deterministic fake backtest collaborator.
"""

import os
import tempfile
import threading

# Keep log files out of the working tree; must happen before stratopt is imported
os.environ.setdefault("STRATOPT_LOG_DIR", tempfile.mkdtemp(prefix="stratopt-logs-"))

from datetime import datetime

import pytest

from stratopt.configs.backtest import BacktestWindow
from stratopt.configs.optimization.orchestrator import OrchestratorConfig


class FakeBacktest:
    """
    Deterministic stand-in for the backtest simulator.

    Scores depend only on the swap block's slippage/amount and the stop-loss
    percentage, so equal parameter sets always score the same. Short date
    ranges (the out-of-sample segments) score 20% lower on Sharpe.
    """

    def __init__(self, fail_when=None, delay: float = 0.0):
        self.fail_when = fail_when
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def __call__(self, request):
        with self._lock:
            self.calls.append(request)
        if self.delay:
            threading.Event().wait(self.delay)

        params = {block.id: block.params for block in request.blocks}
        if self.fail_when is not None and self.fail_when(params):
            raise ValueError("Invalid parameter combination")

        swap = params.get("swap-1", {})
        slippage = float(swap.get("slippage", 0.5))
        amount = float(swap.get("amount", 100.0))
        stop = float(params.get("stop-1", {}).get("percentage", 5.0))

        days = (request.end_date - request.start_date).days
        regime = 1.0 if days > 60 else 0.8

        return {
            "metrics": {
                "sharpeRatio": (2.0 - (slippage - 0.4) ** 2 - ((amount - 120.0) / 100.0) ** 2) * regime,
                "totalReturn": amount / 10.0 - slippage,
                "maxDrawdown": 5.0 + slippage * 4.0 + stop * 0.5 + amount / 100.0,
                "winTrades": 6,
                "totalTrades": 10,
                "totalGasSpent": 2.5,
                "totalFeesSpent": amount * 0.003,
            }
        }


@pytest.fixture
def fake_backtest():
    return FakeBacktest()


@pytest.fixture
def make_backtest():
    """Factory for fake backtests with a failure predicate or a per-call delay."""
    return FakeBacktest


@pytest.fixture
def swap_block():
    return {"id": "swap-1", "type": "uniswap_swap", "params": {"slippage": 0.5, "amount": 100}}


@pytest.fixture
def strategy_blocks(swap_block):
    """Swap plus stop-loss, with an untunable wallet block in front."""
    return [
        {"id": "wallet-1", "type": "wallet", "params": {"address": "0xabc"}},
        swap_block,
        {"id": "stop-1", "type": "stop_loss", "params": {"percentage": 5}},
    ]


@pytest.fixture
def backtest_window():
    return BacktestWindow(start_date=datetime(2024, 1, 1), end_date=datetime(2024, 6, 29))


@pytest.fixture
def orchestrator_config():
    """Small pool and no retry backoff so tests stay fast."""
    return OrchestratorConfig(
        max_workers=2,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
        progress_put_timeout=0.1,
    )
