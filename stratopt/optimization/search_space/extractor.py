"""
Turns a strategy's block list into the bounded search space of one run.
"""

from typing import Any, List, Sequence

from stratopt.strategy.block import coerce_blocks
from stratopt.strategy.registry import get_rule
from stratopt.strategy import rules  # noqa: F401  registers the built-in rules
from utils.logger import get_logger
from .parameter import ParameterDefinition

logger = get_logger(__name__)

MAX_PARAMETERS = 10

# Risk first, then entry, then cost, then sizing
PARAMETER_PRIORITY = {
    'percentage': 1,
    'targetPrice': 2,
    'slippage': 3,
    'amount': 4,
}
_UNRANKED = 10


class ParameterExtractor:
    """
    Extracts optimizable parameters from strategy blocks.

    Every block type with a registered rule contributes its tunable fields;
    unknown block types contribute nothing. The result is stable-sorted by
    importance and capped at ``max_parameters``.
    """

    def __init__(self, max_parameters: int = MAX_PARAMETERS):
        self.max_parameters = max_parameters

    def extract(self, blocks: Sequence[Any]) -> List[ParameterDefinition]:
        parameters: List[ParameterDefinition] = []
        for block in coerce_blocks(blocks):
            rule = get_rule(block.type)
            if rule is None:
                logger.debug(f"No parameter rule for block type '{block.type}' ({block.id})")
                continue
            parameters.extend(rule(block))

        ranked = sorted(parameters, key=lambda p: PARAMETER_PRIORITY.get(p.param_name, _UNRANKED))
        if len(ranked) > self.max_parameters:
            dropped = [p.label for p in ranked[self.max_parameters:]]
            logger.info(f"Dropping {len(dropped)} low-priority parameters: {dropped}")

        selected = ranked[:self.max_parameters]
        logger.info(f"Extracted {len(selected)} parameters from {len(blocks)} blocks")
        return selected
