"""Gauss-Newton iteration."""

import logging
from typing import Dict

import numpy as np

from ..linear.elimination import eliminate
from ..linear.ordering import resolve_ordering
from ..models.config import GaussNewtonPolicy, Verbosity
from .state import OptimizerState
from .strategies import register_strategy

logger = logging.getLogger(__name__)


def _format_delta(delta: Dict[str, np.ndarray]) -> str:
    return ", ".join(f"{key}: {np.array2string(d, precision=6)}" for key, d in delta.items())


@register_strategy("gauss_newton")
def gauss_newton_step(state: OptimizerState) -> OptimizerState:
    """Perform a single Gauss-Newton iteration.

    Linearizes the graph at the current values, solves the linear system by
    elimination with the configured ordering, strategy and factorization,
    retracts the correction and evaluates the new error. There is no step
    damping: a step that increases the error is still returned.

    Args:
        state: Current optimizer state (not modified)

    Returns:
        New state with updated values and error and one more iteration

    Raises:
        LinearizationFailure: If a factor is undefined at the current values
        ConfigurationMismatch: If the configured ordering does not match the graph
        SingularSystem: If an eliminated block cannot be factored
        RetractionFailure: If the correction cannot be applied
    """
    policy = state.config.policy
    if not isinstance(policy, GaussNewtonPolicy):
        raise TypeError(f"Gauss-Newton step requires a GaussNewtonPolicy, got {type(policy).__name__}")
    verbosity = state.config.criteria.verbosity

    linear = state.graph.linearize(state.values)
    if verbosity >= Verbosity.LINEAR:
        logger.info(f"Linear system: {linear.summary()}")

    ordering = resolve_ordering(linear, policy.ordering)
    delta, _ = eliminate(linear, ordering, policy.elimination, policy.factorization)
    if verbosity >= Verbosity.DELTA:
        logger.info(f"Delta: {_format_delta(delta)}")

    new_values = state.values.retract(delta)
    new_error = state.graph.error(new_values)

    return OptimizerState(state.graph, new_values, state.config, new_error, state.iterations + 1)
