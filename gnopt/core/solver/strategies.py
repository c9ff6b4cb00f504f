"""Registry of optimization strategies and the single step entry point."""

from typing import Callable, Dict, List

from .state import OptimizerState

StepFunction = Callable[[OptimizerState], OptimizerState]

_STRATEGIES: Dict[str, StepFunction] = {}


def register_strategy(kind: str) -> Callable[[StepFunction], StepFunction]:
    """Decorator registering ``fn`` as the step function for policies of ``kind``."""
    def decorator(fn: StepFunction) -> StepFunction:
        if kind in _STRATEGIES and _STRATEGIES[kind] is not fn:
            raise ValueError(f"Strategy {kind!r} is already registered")
        _STRATEGIES[kind] = fn
        return fn
    return decorator


def registered_strategies() -> List[str]:
    return sorted(_STRATEGIES)


def step(state: OptimizerState) -> OptimizerState:
    """Take one optimization step with the strategy selected by ``state.config``.

    Never modifies ``state``; returns a new state.

    Raises:
        ValueError: If no strategy is registered for the configured kind
    """
    kind = state.config.policy.kind
    if kind not in _STRATEGIES:
        raise ValueError(f"No optimization strategy registered for kind {kind!r}")
    return _STRATEGIES[kind](state)
