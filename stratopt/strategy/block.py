import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence
from pydantic import BaseModel, ConfigDict, Field


class StrategyBlock(BaseModel):
    """
    One block of a user strategy as the engine sees it.

    Attributes:
        id (str): Unique id of the block inside its strategy.
        type (str): Block type, e.g. ``uniswap_swap`` or ``STOP_LOSS``.
        params (dict): Free-form block settings; numeric fields may be tuned.
        label (str, optional): Display name, carried through untouched.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None


def coerce_blocks(blocks: Sequence[Any]) -> List[StrategyBlock]:
    """Accept StrategyBlock instances or plain dicts (e.g. decoded JSON)."""
    return [block if isinstance(block, StrategyBlock) else StrategyBlock.model_validate(block) for block in blocks]


def apply_parameters(blocks: Sequence[StrategyBlock], parameters: Mapping[str, Mapping[str, float]]) -> List[StrategyBlock]:
    """
    Copy of the blocks with the candidate values written into their params.

    The input blocks are never mutated; blocks without overrides are deep
    copied as well so a backtest can never leak state back into them.
    """
    updated = []
    for block in blocks:
        overrides = parameters.get(block.id)
        new_params = copy.deepcopy(block.params)
        if overrides:
            new_params.update(overrides)
        updated.append(block.model_copy(update={'params': new_params}, deep=True))
    return updated
