"""Optimizer state, strategies and driver."""

from .state import OptimizerState
from .strategies import register_strategy, registered_strategies, step
from .gauss_newton import gauss_newton_step
from .driver import OptimizationResult, check_convergence, optimize

__all__ = [
    "OptimizerState",
    "register_strategy",
    "registered_strategies",
    "step",
    "gauss_newton_step",
    "OptimizationResult",
    "check_convergence",
    "optimize",
]
