from typing import Callable, Dict, List

# block type (lower-cased) -> rule producing the block's tunable parameters
PARAMETER_RULE_REGISTRY: Dict[str, Callable] = {}


def parameter_rule(*block_types: str) -> Callable:
    """Decorator factory to register a parameter rule for one or more block types.

    A rule receives a ``StrategyBlock`` and returns the list of
    ``ParameterDefinition`` objects that block exposes to the optimizer.
    Block types are matched case-insensitively, so ``uniswap_swap`` and
    ``UNISWAP_SWAP`` share one rule.

    Args:
        *block_types (str): Block type names handled by the rule.

    Returns:
        Callable: A decorator that registers the input function in `PARAMETER_RULE_REGISTRY`.

    Example:
        >>> @parameter_rule("curve_swap")
        >>> def curve_swap_rule(block):
        ...     return [relative_parameter(block, "amount", 0.5)]
    """
    if not block_types:
        raise ValueError("parameter_rule needs at least one block type")

    def decorator(func):
        for block_type in block_types:
            PARAMETER_RULE_REGISTRY[block_type.lower()] = func
        return func
    return decorator


def get_rule(block_type: str):
    return PARAMETER_RULE_REGISTRY.get(block_type.lower())


def registered_block_types() -> List[str]:
    return sorted(PARAMETER_RULE_REGISTRY)
