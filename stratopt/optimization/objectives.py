"""
Objective names, optimization directions and mapping of backtest output to scores.
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

# Sparse mapping objective name -> value; a missing key means the backtest
# could not compute that score.
ObjectiveScores = Dict[str, float]


class Objective(str, Enum):
    """Performance objectives the engine can optimize."""
    SHARPE_RATIO = "sharpeRatio"
    TOTAL_RETURN = "totalReturn"
    MAX_DRAWDOWN = "maxDrawdown"
    WIN_RATE = "winRate"
    GAS_COSTS = "gasCosts"
    PROTOCOL_FEES = "protocolFees"


class Direction(str, Enum):
    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


OBJECTIVE_DIRECTIONS: Dict[Objective, Direction] = {
    Objective.SHARPE_RATIO: Direction.MAXIMIZE,
    Objective.TOTAL_RETURN: Direction.MAXIMIZE,
    Objective.WIN_RATE: Direction.MAXIMIZE,
    Objective.MAX_DRAWDOWN: Direction.MINIMIZE,
    Objective.GAS_COSTS: Direction.MINIMIZE,
    Objective.PROTOCOL_FEES: Direction.MINIMIZE,
}

# Native simulator metric names used when the objective key itself is absent
_FALLBACK_KEYS: Dict[Objective, str] = {
    Objective.GAS_COSTS: "totalGasSpent",
    Objective.PROTOCOL_FEES: "totalFeesSpent",
}


def direction_of(objective: Any) -> Direction:
    return OBJECTIVE_DIRECTIONS[Objective(objective)]


def is_maximized(objective: Any) -> bool:
    return direction_of(objective) == Direction.MAXIMIZE


def oriented_value(scores: Mapping[str, float], objective: Any) -> float:
    """
    Score of one objective turned into a "larger is better" value.

    Missing scores map to -inf so they can never dominate on that objective.
    """
    objective = Objective(objective)
    value = scores.get(objective.value)
    if value is None:
        return -math.inf
    return value if is_maximized(objective) else -value


def oriented_vector(scores: Mapping[str, float], objectives: Iterable[Any]) -> tuple:
    return tuple(oriented_value(scores, objective) for objective in objectives)


def _as_finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def scores_from_backtest(result: Mapping[str, Any]) -> ObjectiveScores:
    """
    Map a backtest result onto ObjectiveScores.

    Accepts the flat objective keys directly, or the simulator's native metric
    names (optionally nested under a ``metrics`` key): ``winTrades`` /
    ``totalTrades`` for the win rate, ``totalGasSpent`` and ``totalFeesSpent``
    for costs. Non-numeric and non-finite values are dropped.
    """
    metrics: Mapping[str, Any] = result
    if isinstance(result.get("metrics"), Mapping):
        metrics = {**result["metrics"], **{k: v for k, v in result.items() if k != "metrics"}}

    scores: ObjectiveScores = {}
    for objective in Objective:
        value = _as_finite(metrics.get(objective.value))
        if value is None and objective in _FALLBACK_KEYS:
            value = _as_finite(metrics.get(_FALLBACK_KEYS[objective]))
        if value is None and objective == Objective.WIN_RATE:
            wins = _as_finite(metrics.get("winTrades"))
            total = _as_finite(metrics.get("totalTrades"))
            # zero trades leaves the win rate undefined
            if wins is not None and total:
                value = wins / total
        if value is not None:
            scores[objective.value] = value
    return scores


def average_scores(samples: Iterable[ObjectiveScores]) -> ObjectiveScores:
    """Average each objective over the samples that produced it."""
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for scores in samples:
        for name, value in scores.items():
            totals[name] = totals.get(name, 0.0) + value
            counts[name] = counts.get(name, 0) + 1
    return {name: totals[name] / counts[name] for name in totals}
