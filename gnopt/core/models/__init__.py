"""Configuration models for gnopt."""

from .config import (
    Verbosity,
    ConvergenceCriteria,
    StrategyPolicy,
    GaussNewtonPolicy,
    OptimizerConfig,
)

__all__ = [
    "Verbosity",
    "ConvergenceCriteria",
    "StrategyPolicy",
    "GaussNewtonPolicy",
    "OptimizerConfig",
]
