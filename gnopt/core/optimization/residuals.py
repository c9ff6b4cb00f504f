"""Generic residual factors."""

from typing import Callable, Dict, List, Optional, Union

import numpy as np

from .factor_graph import Factor
from .values import Values, VariableType, between, local_coordinates, tangent_dim


class PriorFactor(Factor):
    """Prior on a single variable: ``r = local(prior, x)``."""

    def __init__(
        self,
        factor_id: str,
        variable_id: str,
        prior: np.ndarray,
        variable_type: VariableType = VariableType.VECTOR,
        sigma: Union[float, np.ndarray] = 1.0
    ):
        """Initialize prior factor.

        Args:
            factor_id: Unique factor identifier
            variable_id: Constrained variable ID
            prior: Prior value, on the same manifold as the variable
            variable_type: Manifold of the variable
            sigma: Prior standard deviation
        """
        super().__init__(factor_id, [variable_id], sigma)
        self.variable_id = variable_id
        self.variable_type = variable_type
        self.prior = np.atleast_1d(np.asarray(prior, dtype=float))
        self._dim = tangent_dim(variable_type, self.prior)

    def compute_residual(self, variables: Dict[str, np.ndarray]) -> np.ndarray:
        return np.atleast_1d(local_coordinates(self.variable_type, self.prior, variables[self.variable_id]))

    def compute_jacobian(self, values: Values) -> Dict[str, np.ndarray]:
        if self.variable_type in (VariableType.VECTOR, VariableType.ROT2):
            return {self.variable_id: np.eye(self._dim)}
        return super().compute_jacobian(values)

    def residual_dimension(self) -> int:
        return self._dim


class BetweenFactor(Factor):
    """Relative measurement between two variables: ``r = local(measured, x1^-1 * x2)``."""

    def __init__(
        self,
        factor_id: str,
        variable_id1: str,
        variable_id2: str,
        measured: np.ndarray,
        variable_type: VariableType = VariableType.VECTOR,
        sigma: Union[float, np.ndarray] = 1.0
    ):
        """Initialize between factor.

        Args:
            factor_id: Unique factor identifier
            variable_id1: First variable ID
            variable_id2: Second variable ID
            measured: Measured relative value
            variable_type: Manifold shared by both variables
            sigma: Measurement standard deviation
        """
        super().__init__(factor_id, [variable_id1, variable_id2], sigma)
        self.variable_id1 = variable_id1
        self.variable_id2 = variable_id2
        self.variable_type = variable_type
        self.measured = np.atleast_1d(np.asarray(measured, dtype=float))
        self._dim = tangent_dim(variable_type, self.measured)

    def compute_residual(self, variables: Dict[str, np.ndarray]) -> np.ndarray:
        relative = between(self.variable_type, variables[self.variable_id1], variables[self.variable_id2])
        return np.atleast_1d(local_coordinates(self.variable_type, self.measured, relative))

    def compute_jacobian(self, values: Values) -> Dict[str, np.ndarray]:
        if self.variable_type in (VariableType.VECTOR, VariableType.ROT2):
            identity = np.eye(self._dim)
            return {self.variable_id1: -identity, self.variable_id2: identity}
        return super().compute_jacobian(values)

    def residual_dimension(self) -> int:
        return self._dim


class FunctionFactor(Factor):
    """Factor defined by a residual callable.

    Example:
        >>> FunctionFactor("range_a", ["p"], lambda v: [np.linalg.norm(v["p"]) - 5.0], 1)
    """

    def __init__(
        self,
        factor_id: str,
        variable_ids: List[str],
        residual_fn: Callable[[Dict[str, np.ndarray]], np.ndarray],
        residual_dim: int,
        sigma: Union[float, np.ndarray] = 1.0,
        jacobian_fn: Optional[Callable[[Dict[str, np.ndarray]], Dict[str, np.ndarray]]] = None
    ):
        """Initialize function factor.

        Args:
            factor_id: Unique factor identifier
            variable_ids: Variable IDs passed to ``residual_fn``
            residual_fn: Maps variable values to the residual vector
            residual_dim: Length of the residual vector
            sigma: Measurement standard deviation
            jacobian_fn: Optional analytic Jacobian over tangent perturbations;
                finite differences are used when omitted
        """
        super().__init__(factor_id, variable_ids, sigma)
        self.residual_fn = residual_fn
        self.jacobian_fn = jacobian_fn
        self._dim = int(residual_dim)

    def compute_residual(self, variables: Dict[str, np.ndarray]) -> np.ndarray:
        return np.atleast_1d(np.asarray(self.residual_fn(variables), dtype=float))

    def compute_jacobian(self, values: Values) -> Dict[str, np.ndarray]:
        if self.jacobian_fn is None:
            return super().compute_jacobian(values)
        return self.jacobian_fn({var_id: values[var_id] for var_id in self.variable_ids})

    def residual_dimension(self) -> int:
        return self._dim
