"""
Parameter definitions for optimization search spaces using Pydantic.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple
import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class ParameterKind(str, Enum):
    """Kinds of parameters that can be optimized."""
    CONTINUOUS = "continuous"
    DISCRETE = "discrete"
    PERCENTAGE = "percentage"


class ParameterDefinition(BaseModel):
    """
    Definition of a single tunable block parameter in the search space.

    Args:
        block_id: Id of the block the parameter belongs to
        block_type: Type of that block (e.g. ``uniswap_swap``)
        param_name: Name of the field inside the block's params
        kind: Parameter kind (continuous, discrete, percentage)
        low: Lower bound (derived from ``discrete_values`` for discrete parameters)
        high: Upper bound (derived from ``discrete_values`` for discrete parameters)
        discrete_values: Allowed values for discrete parameters
        default_value: Value the block currently holds

    Examples:
        # Continuous parameter
        ParameterDefinition(block_id="swap-1", block_type="uniswap_swap", param_name="slippage",
                            kind=ParameterKind.CONTINUOUS, low=0.1, high=2.0, default_value=0.5)

        # Discrete parameter
        ParameterDefinition(block_id="rebalance", block_type="rebalance", param_name="interval",
                            kind=ParameterKind.DISCRETE, discrete_values=(1, 7, 30), default_value=7)
    """
    model_config = ConfigDict(frozen=True)

    block_id: str
    block_type: str
    param_name: str
    kind: ParameterKind

    low: Optional[float] = None
    high: Optional[float] = None
    discrete_values: Optional[Tuple[float, ...]] = None

    default_value: float

    @field_validator('discrete_values')
    @classmethod
    def validate_discrete_values(cls, v):
        """Discrete values are kept sorted and unique."""
        if v is None:
            return v
        if len(v) == 0:
            raise ValueError("discrete_values cannot be empty")
        return tuple(sorted(set(float(x) for x in v)))

    @model_validator(mode='before')
    @classmethod
    def derive_discrete_bounds(cls, values: Any) -> Any:
        if isinstance(values, dict) and values.get('discrete_values'):
            choices = [float(x) for x in values['discrete_values']]
            values = dict(values)
            if values.get('low') is None:
                values['low'] = min(choices)
            if values.get('high') is None:
                values['high'] = max(choices)
        return values

    @model_validator(mode='after')
    def validate_parameter(self):
        """Validate bounds and default value after initialization."""
        if self.kind == ParameterKind.DISCRETE:
            if not self.discrete_values:
                raise ValueError(f"Discrete parameter '{self.param_name}' requires non-empty discrete_values")
            if self.default_value not in self.discrete_values:
                raise ValueError(
                    f"Parameter '{self.param_name}': default {self.default_value} is not one of {list(self.discrete_values)}"
                )
            return self

        if self.low is None or self.high is None:
            raise ValueError(f"Parameter '{self.param_name}' requires low and high bounds")
        if self.low >= self.high:
            raise ValueError(f"Parameter '{self.param_name}': low ({self.low}) must be < high ({self.high})")
        if not self.low <= self.default_value <= self.high:
            raise ValueError(
                f"Parameter '{self.param_name}': default {self.default_value} outside [{self.low}, {self.high}]"
            )
        return self

    @property
    def key(self) -> Tuple[str, str]:
        return self.block_id, self.param_name

    @property
    def label(self) -> str:
        return f"{self.block_id}.{self.param_name}"

    def sample(self, rng: Optional[np.random.Generator] = None) -> float:
        """
        Sample a value uniformly from this parameter's range.

        Args:
            rng: Random generator for reproducible sampling

        Returns:
            Sampled parameter value
        """
        rng = rng or np.random.default_rng()
        if self.kind == ParameterKind.DISCRETE:
            return float(self.discrete_values[rng.integers(len(self.discrete_values))])
        return float(rng.uniform(self.low, self.high))

    def validate_value(self, value: Any) -> bool:
        """True if value is a legal setting for this parameter."""
        try:
            value = float(value)
        except (TypeError, ValueError):
            return False
        if self.kind == ParameterKind.DISCRETE:
            return value in self.discrete_values
        return self.low <= value <= self.high

    def clip_value(self, value: float) -> float:
        """
        Clip a value to this parameter's valid range.

        Discrete parameters snap to the nearest allowed value.
        """
        if self.kind == ParameterKind.DISCRETE:
            choices = np.asarray(self.discrete_values)
            return float(choices[np.argmin(np.abs(choices - value))])
        return float(np.clip(value, self.low, self.high))

    def to_unit(self, value: float) -> float:
        """Encode a value onto [0, 1]; discrete values map by their index."""
        if self.kind == ParameterKind.DISCRETE:
            n = len(self.discrete_values)
            if n == 1:
                return 0.5
            index = self.discrete_values.index(self.clip_value(value))
            return index / (n - 1)
        return (float(value) - self.low) / (self.high - self.low)

    def from_unit(self, u: float) -> float:
        """Decode a point of [0, 1] back into a legal value."""
        u = float(np.clip(u, 0.0, 1.0))
        if self.kind == ParameterKind.DISCRETE:
            n = len(self.discrete_values)
            return float(self.discrete_values[min(n - 1, int(np.floor(u * n)))])
        return float(self.low + u * (self.high - self.low))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')
