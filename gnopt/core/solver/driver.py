"""Iterate-until-converged optimization driver."""

import logging
import time
from dataclasses import dataclass, field
from typing import List

from ..models.config import Verbosity
from ..optimization.values import Values
from .state import OptimizerState
from .strategies import step

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptimizationResult:
    """Outcome of a full optimization run."""

    state: OptimizerState
    converged: bool
    termination_reason: str
    error_history: List[float] = field(default_factory=list)
    computation_time: float = 0.0

    @property
    def values(self) -> Values:
        return self.state.values

    @property
    def error(self) -> float:
        return self.state.error

    @property
    def iterations(self) -> int:
        return self.state.iterations


def check_convergence(
    relative_error_tol: float,
    absolute_error_tol: float,
    error_tol: float,
    current_error: float,
    new_error: float
) -> bool:
    """Decide whether the error trend has converged.

    Converged when the new error is below ``error_tol``, or the relative
    decrease is at most ``relative_error_tol`` (0 disables this test), or
    the absolute decrease is at most ``absolute_error_tol``. An error
    increase therefore also stops the iteration.
    """
    if new_error <= error_tol:
        return True

    absolute_decrease = current_error - new_error
    relative_decrease = absolute_decrease / current_error if current_error > 0 else 0.0

    converged = (
        (relative_error_tol > 0 and relative_decrease <= relative_error_tol)
        or absolute_decrease <= absolute_error_tol
    )

    if converged and absolute_decrease < 0:
        logger.warning(
            f"Stopping nonlinear iterations because error increased: {current_error:g} -> {new_error:g}"
        )

    return converged


def optimize(state: OptimizerState) -> OptimizationResult:
    """Step from ``state`` until convergence or the iteration limit.

    Failures raised by a step propagate unchanged; no step is retried.

    Args:
        state: Initial optimizer state

    Returns:
        Optimization result holding the final state
    """
    criteria = state.config.criteria
    verbosity = criteria.verbosity
    start_time = time.time()
    history = [state.error]

    if verbosity >= Verbosity.ERROR:
        logger.info(f"Initial error: {state.error:g}")
    if verbosity >= Verbosity.VALUES:
        logger.info(f"Initial values: {state.values}")

    if criteria.max_iterations == 0:
        return OptimizationResult(state, False, "Maximum iterations is zero", history, time.time() - start_time)

    if state.error <= criteria.error_tol:
        return OptimizationResult(
            state, True, "Initial error below threshold", history, time.time() - start_time
        )

    current = state
    while True:
        new = step(current)
        history.append(new.error)

        if verbosity >= Verbosity.ERROR:
            logger.info(f"Iteration {new.iterations}: error {new.error:g}")
        if verbosity >= Verbosity.VALUES:
            logger.info(f"Iteration {new.iterations}: values {new.values}")

        converged = check_convergence(
            criteria.relative_error_tol,
            criteria.absolute_error_tol,
            criteria.error_tol,
            current.error,
            new.error,
        )
        error_increased = new.error > current.error
        current = new

        if converged:
            if current.error <= criteria.error_tol:
                reason = "Converged: error below threshold"
            elif error_increased:
                reason = "Stopped: error increased"
            else:
                reason = "Converged: error decrease below threshold"
            break

        if current.iterations >= criteria.max_iterations:
            reason = "Reached maximum iterations"
            break

    if verbosity >= Verbosity.ERROR:
        logger.info(f"{reason} after {current.iterations} iterations, final error {current.error:g}")

    return OptimizationResult(
        current,
        converged and not error_increased,
        reason,
        history,
        time.time() - start_time,
    )
