"""Nonlinear factor graphs and variable assignments."""

from .values import Values, Variable, VariableType
from .factor_graph import Factor, NonlinearFactorGraph
from .residuals import PriorFactor, BetweenFactor, FunctionFactor

__all__ = [
    "Values",
    "Variable",
    "VariableType",
    "Factor",
    "NonlinearFactorGraph",
    "PriorFactor",
    "BetweenFactor",
    "FunctionFactor",
]
