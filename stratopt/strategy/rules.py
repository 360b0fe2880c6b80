"""
Built-in parameter rules for the block types the engine knows how to tune.
"""

import math
from typing import List, Optional

from stratopt.optimization.search_space.parameter import ParameterDefinition, ParameterKind
from .block import StrategyBlock
from .registry import parameter_rule


def _numeric_param(block: StrategyBlock, name: str) -> Optional[float]:
    value = block.params.get(name)
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def fixed_parameter(block: StrategyBlock, name: str, low: float, high: float,
                    kind: ParameterKind = ParameterKind.CONTINUOUS) -> List[ParameterDefinition]:
    """Parameter with a fixed range; the current value is clamped into it."""
    current = _numeric_param(block, name)
    if current is None:
        return []
    return [ParameterDefinition(
        block_id=block.id,
        block_type=block.type,
        param_name=name,
        kind=kind,
        low=low,
        high=high,
        default_value=min(max(current, low), high),
    )]


def relative_parameter(block: StrategyBlock, name: str, fraction: float) -> List[ParameterDefinition]:
    """Parameter bounded to +/- ``fraction`` of its current value."""
    current = _numeric_param(block, name)
    if current is None:
        return []
    low, high = sorted((current * (1 - fraction), current * (1 + fraction)))
    if low == high:
        # zero current value leaves nothing to tune
        return []
    return [ParameterDefinition(
        block_id=block.id,
        block_type=block.type,
        param_name=name,
        kind=ParameterKind.CONTINUOUS,
        low=low,
        high=high,
        default_value=current,
    )]


@parameter_rule("uniswap_swap")
def swap_rule(block: StrategyBlock) -> List[ParameterDefinition]:
    return fixed_parameter(block, "slippage", 0.1, 2.0) + relative_parameter(block, "amount", 0.5)


@parameter_rule("aave_supply")
def supply_rule(block: StrategyBlock) -> List[ParameterDefinition]:
    return relative_parameter(block, "amount", 0.5)


@parameter_rule("price_trigger")
def trigger_rule(block: StrategyBlock) -> List[ParameterDefinition]:
    return relative_parameter(block, "targetPrice", 0.2)


@parameter_rule("stop_loss")
def stop_loss_rule(block: StrategyBlock) -> List[ParameterDefinition]:
    return fixed_parameter(block, "percentage", 1.0, 20.0, kind=ParameterKind.PERCENTAGE)
