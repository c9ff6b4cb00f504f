"""Nonlinear factor graph representation for optimization problems."""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Union

import numpy as np

from ..errors import LinearizationFailure
from ..linear.factors import JacobianFactor, LinearFactorGraph
from ..math.jacobians import finite_difference_jacobian
from .values import Values, retract


class Factor(ABC):
    """Abstract base class for factors in the factor graph.

    A factor contributes ``0.5 * ||r(x) / sigma||^2`` to the objective.
    """

    def __init__(self, factor_id: str, variable_ids: List[str], sigma: Union[float, np.ndarray] = 1.0):
        """Initialize factor.

        Args:
            factor_id: Unique identifier for this factor
            variable_ids: List of variable IDs this factor depends on
            sigma: Measurement standard deviation (scalar or per residual component)
        """
        if not variable_ids:
            raise ValueError(f"Factor {factor_id} must depend on at least one variable")
        if len(set(variable_ids)) != len(variable_ids):
            raise ValueError(f"Factor {factor_id} lists a variable more than once")

        sigma = np.asarray(sigma, dtype=float)
        if np.any(sigma <= 0):
            raise ValueError(f"Factor {factor_id}: sigma must be positive")

        self.factor_id = factor_id
        self.variable_ids = list(variable_ids)
        self.sigma = sigma

    @abstractmethod
    def compute_residual(self, variables: Dict[str, np.ndarray]) -> np.ndarray:
        """Compute the unwhitened residual given variable values.

        Args:
            variables: Dictionary mapping variable IDs to their values

        Returns:
            Residual vector
        """
        pass

    @abstractmethod
    def residual_dimension(self) -> int:
        """Get dimension of residual vector."""
        pass

    def compute_jacobian(self, values: Values) -> Dict[str, np.ndarray]:
        """Jacobian of the unwhitened residual with respect to tangent perturbations.

        The default differentiates numerically through each variable's
        retraction. Subclasses with analytic Jacobians override this.

        Args:
            values: Current variable assignment

        Returns:
            Dictionary mapping variable IDs to Jacobian blocks
        """
        variables = {var_id: values[var_id] for var_id in self.variable_ids}
        jacobians = {}

        for var_id in self.variable_ids:
            variable = values.variable(var_id)

            def perturbed_residual(delta, var_id=var_id, variable=variable):
                perturbed = dict(variables)
                perturbed[var_id] = retract(variable.type, variable.value, delta)
                return self.compute_residual(perturbed)

            jacobians[var_id] = finite_difference_jacobian(perturbed_residual, np.zeros(variable.dim))

        return jacobians

    def _check_values(self, values: Values) -> None:
        for var_id in self.variable_ids:
            if var_id not in values:
                raise LinearizationFailure(f"variable {var_id} has no value", self.factor_id, var_id)

    def whitened_residual(self, values: Values) -> np.ndarray:
        """Residual divided by sigma.

        Raises:
            LinearizationFailure: If the residual is undefined at ``values``
        """
        self._check_values(values)
        variables = {var_id: values[var_id] for var_id in self.variable_ids}

        try:
            residual = np.atleast_1d(np.asarray(self.compute_residual(variables), dtype=float))
        except (ArithmeticError, LookupError, TypeError, ValueError) as e:
            raise LinearizationFailure(f"residual evaluation failed: {e}", self.factor_id) from e

        if residual.shape != (self.residual_dimension(),):
            raise LinearizationFailure(
                f"residual has shape {residual.shape}, expected ({self.residual_dimension()},)",
                self.factor_id,
            )
        if not np.all(np.isfinite(residual)):
            raise LinearizationFailure("residual is not finite", self.factor_id)

        return residual / self.sigma

    def error(self, values: Values) -> float:
        """Factor contribution to the total objective."""
        r = self.whitened_residual(values)
        return 0.5 * float(r @ r)

    def linearize(self, values: Values) -> JacobianFactor:
        """First-order approximation around ``values``.

        Returns:
            Whitened Jacobian factor ``0.5 * ||A delta - b||^2`` with ``b = -r``

        Raises:
            LinearizationFailure: If the residual or Jacobian is undefined
        """
        r = self.whitened_residual(values)

        try:
            jacobians = self.compute_jacobian(values)
        except (ArithmeticError, LookupError, TypeError, ValueError) as e:
            raise LinearizationFailure(f"Jacobian evaluation failed: {e}", self.factor_id) from e

        sigma = np.broadcast_to(self.sigma, r.shape)[:, None]
        blocks = {}
        for var_id in self.variable_ids:
            block = np.atleast_2d(np.asarray(jacobians[var_id], dtype=float))
            expected = (r.size, values.variable(var_id).dim)
            if block.shape != expected:
                raise LinearizationFailure(
                    f"Jacobian block has shape {block.shape}, expected {expected}",
                    self.factor_id,
                    var_id,
                )
            if not np.all(np.isfinite(block)):
                raise LinearizationFailure("Jacobian is not finite", self.factor_id, var_id)
            blocks[var_id] = block / sigma

        return JacobianFactor(self.variable_ids, blocks, -r, factor_id=self.factor_id)


class NonlinearFactorGraph:
    """Nonlinear objective as an ordered collection of factors.

    A graph becomes read-only once it is frozen, which happens when an
    optimizer state wraps it. Use ``copy()`` to extend a frozen graph.
    """

    def __init__(self):
        """Initialize empty factor graph."""
        self.factors: Mapping[str, Factor] = {}
        self._factor_ordering: List[str] = []
        self._frozen = False

    def add_factor(self, factor: Factor) -> None:
        """Add a factor to the graph.

        Args:
            factor: Factor to add
        """
        if self._frozen:
            raise ValueError(
                f"Cannot add factor {factor.factor_id}: graph is frozen; add factors to a copy() instead"
            )
        if factor.factor_id in self.factors:
            raise ValueError(f"Factor {factor.factor_id} already exists")

        self.factors[factor.factor_id] = factor
        self._factor_ordering.append(factor.factor_id)

    def freeze(self) -> None:
        """Make the graph read-only."""
        if not self._frozen:
            self.factors = MappingProxyType(dict(self.factors))
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def copy(self) -> "NonlinearFactorGraph":
        """Modifiable graph holding the same factors."""
        graph = NonlinearFactorGraph()
        for factor in self:
            graph.add_factor(factor)
        return graph

    def get_factor(self, factor_id: str) -> Factor:
        """Get factor by ID."""
        if factor_id not in self.factors:
            raise ValueError(f"Factor {factor_id} not found")
        return self.factors[factor_id]

    def get_factor_ids(self) -> List[str]:
        """Get list of all factor IDs in order."""
        return self._factor_ordering.copy()

    def keys(self) -> List[str]:
        """Variable IDs referenced by any factor, in order of first appearance."""
        seen: Dict[str, None] = {}
        for factor in self:
            for var_id in factor.variable_ids:
                seen.setdefault(var_id, None)
        return list(seen)

    def __iter__(self) -> Iterator[Factor]:
        return (self.factors[factor_id] for factor_id in self._factor_ordering)

    def __len__(self) -> int:
        return len(self._factor_ordering)

    def error(self, values: Values) -> float:
        """Total objective ``sum_f 0.5 * ||r_f / sigma_f||^2`` at ``values``."""
        return float(sum(factor.error(values) for factor in self))

    def linearize(self, values: Values) -> LinearFactorGraph:
        """Linearize every factor around ``values``.

        Raises:
            LinearizationFailure: If any factor is undefined at ``values``
        """
        return LinearFactorGraph([factor.linearize(values) for factor in self])

    def summary(self) -> Dict[str, Any]:
        """Get summary information about the factor graph.

        Returns:
            Dictionary with graph statistics
        """
        factor_type_counts: Dict[str, int] = {}
        total_residual_size = 0

        for factor in self:
            factor_type = type(factor).__name__
            factor_type_counts[factor_type] = factor_type_counts.get(factor_type, 0) + 1
            total_residual_size += factor.residual_dimension()

        return {
            "variables": len(self.keys()),
            "factors": {
                "total": len(self),
                "total_residuals": total_residual_size,
                "by_type": factor_type_counts,
            },
        }
