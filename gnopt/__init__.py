"""gnopt - Gauss-Newton optimization over factor graphs

Iterative nonlinear least squares: linearize, eliminate, retract.
"""

__version__ = "0.1.0"

# Errors
from .core.errors import (
    OptimizerError,
    ConfigurationMismatch,
    LinearizationFailure,
    SingularSystem,
    RetractionFailure,
)

# Configuration
from .core.models.config import (
    Verbosity,
    ConvergenceCriteria,
    GaussNewtonPolicy,
    OptimizerConfig,
)
from .core.linear.elimination import Elimination, Factorization

# Problem definition
from .core.optimization.values import Values, Variable, VariableType
from .core.optimization.factor_graph import Factor, NonlinearFactorGraph
from .core.optimization.residuals import PriorFactor, BetweenFactor, FunctionFactor

# Optimization
from .core.solver.state import OptimizerState
from .core.solver.strategies import step
from .core.solver.driver import OptimizationResult, optimize

__all__ = [
    # Version
    "__version__",
    # Errors
    "OptimizerError",
    "ConfigurationMismatch",
    "LinearizationFailure",
    "SingularSystem",
    "RetractionFailure",
    # Configuration
    "Verbosity",
    "ConvergenceCriteria",
    "GaussNewtonPolicy",
    "OptimizerConfig",
    "Elimination",
    "Factorization",
    # Problem definition
    "Values",
    "Variable",
    "VariableType",
    "Factor",
    "NonlinearFactorGraph",
    "PriorFactor",
    "BetweenFactor",
    "FunctionFactor",
    # Optimization
    "OptimizerState",
    "step",
    "OptimizationResult",
    "optimize",
]
