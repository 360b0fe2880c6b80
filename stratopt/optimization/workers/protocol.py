"""
Request/response messages exchanged between the orchestrator loop and workers.

Responses are a tagged union on ``status`` and carry the request ``id`` for
correlation. Errors travel as plain strings plus a coarse kind.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Union
from pydantic import BaseModel, Discriminator

from stratopt.configs.backtest import BacktestWindow
from stratopt.optimization.objectives import ObjectiveScores
from stratopt.optimization.search_space.space import ParameterSet


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    CALCULATION = "calculation"
    NETWORK = "network"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({FailureKind.TIMEOUT, FailureKind.NETWORK})

ACTIONABLE_HINTS = {
    FailureKind.TIMEOUT: "The backtest is taking too long. Try reducing the date range or simplifying your strategy.",
    FailureKind.VALIDATION: "Check your strategy configuration. Ensure all required parameters are set correctly.",
    FailureKind.CALCULATION: (
        "A calculation error occurred. Check your strategy parameters for invalid values "
        "(e.g., negative amounts, zero divisions)."
    ),
    FailureKind.NETWORK: "Network error occurred while fetching price data. Check your connection and try again.",
}

_KEYWORDS = [
    (FailureKind.TIMEOUT, ("timeout", "timed out")),
    (FailureKind.VALIDATION, ("validation", "invalid", "missing")),
    (FailureKind.CALCULATION, ("calculation", "nan", "infinity", "division")),
    (FailureKind.NETWORK, ("network", "fetch", "connection")),
]


def classify_error(message: str) -> FailureKind:
    """Coarse failure kind from an error message."""
    lowered = message.lower()
    for kind, keywords in _KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return FailureKind.UNKNOWN


class EvaluationRequest(BaseModel):
    """
    One unit of work: score ``parameters`` on the blocks over ``segments``.

    ``segments`` is the evaluation window: the train (or test) date ranges of
    every walk-forward window.
    """
    id: str
    blocks: List[Any]
    parameters: ParameterSet
    segments: List[BacktestWindow]


class EvaluationSuccess(BaseModel):
    status: Literal["success"] = "success"
    id: str
    parameters: ParameterSet
    scores: ObjectiveScores
    attempts: int = 1


class EvaluationFailure(BaseModel):
    status: Literal["failure"] = "failure"
    id: str
    parameters: ParameterSet
    error: str
    kind: FailureKind = FailureKind.UNKNOWN
    attempts: int = 1

    @property
    def message(self) -> str:
        """Error text with the actionable hint for its kind appended."""
        hint = ACTIONABLE_HINTS.get(self.kind)
        return f"{self.error}. {hint}" if hint else self.error


EvaluationResponse = Annotated[Union[EvaluationSuccess, EvaluationFailure], Discriminator("status")]


def failure_for(request: EvaluationRequest, error: str, kind: FailureKind = None, attempts: int = 1) -> EvaluationFailure:
    return EvaluationFailure(
        id=request.id,
        parameters=request.parameters,
        error=error,
        kind=kind or classify_error(error),
        attempts=attempts,
    )
