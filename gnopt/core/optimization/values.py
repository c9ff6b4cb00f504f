"""Immutable variable assignments with manifold retraction."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple

import numpy as np

from ..errors import RetractionFailure
from ..math.rotations import so3_exp, so3_log, wrap_angle


class VariableType(Enum):
    """Manifolds a variable can live on."""
    VECTOR = "vector"
    ROT2 = "rot2"
    ROT3 = "rot3"


def _frozen_array(value) -> np.ndarray:
    array = np.array(value, dtype=float)
    array.setflags(write=False)
    return array


def tangent_dim(var_type: VariableType, value: np.ndarray) -> int:
    """Dimension of the tangent space at ``value``."""
    if var_type is VariableType.VECTOR:
        return value.size
    if var_type is VariableType.ROT2:
        return 1
    return 3


def retract(var_type: VariableType, value: np.ndarray, delta: np.ndarray) -> np.ndarray:
    """Apply a tangent-space correction to a single value."""
    if var_type is VariableType.VECTOR:
        return value + delta
    if var_type is VariableType.ROT2:
        return wrap_angle(value + delta)
    return value @ so3_exp(delta)


def between(var_type: VariableType, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    """Relative value taking ``x1`` to ``x2`` (x1^-1 * x2 on groups)."""
    if var_type is VariableType.VECTOR:
        return x2 - x1
    if var_type is VariableType.ROT2:
        return wrap_angle(x2 - x1)
    return x1.T @ x2


def local_coordinates(var_type: VariableType, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Tangent vector at ``x`` that retracts to ``y``."""
    if var_type is VariableType.VECTOR:
        return y - x
    if var_type is VariableType.ROT2:
        return wrap_angle(y - x)
    return so3_log(x.T @ y)


@dataclass(frozen=True, eq=False)
class Variable:
    """A named variable value on its manifold."""

    id: str
    type: VariableType
    value: np.ndarray

    def __post_init__(self):
        """Validate shape and store a read-only copy of the value."""
        value = np.array(self.value, dtype=float)

        if self.type is VariableType.VECTOR:
            value = np.atleast_1d(value)
            if value.ndim != 1:
                raise ValueError(f"Variable {self.id}: vector value must be 1-D, got shape {value.shape}")
        elif self.type is VariableType.ROT2:
            value = wrap_angle(np.atleast_1d(value))
            if value.shape != (1,):
                raise ValueError(f"Variable {self.id}: rot2 value must be a single angle")
        elif value.shape != (3, 3):
            raise ValueError(f"Variable {self.id}: rot3 value must be 3x3, got shape {value.shape}")

        object.__setattr__(self, "value", _frozen_array(value))

    @property
    def dim(self) -> int:
        """Tangent-space dimension."""
        return tangent_dim(self.type, self.value)

    def retract(self, delta: np.ndarray) -> "Variable":
        """Return a new variable moved by ``delta`` in its tangent space."""
        delta = np.atleast_1d(np.asarray(delta, dtype=float))
        if delta.shape != (self.dim,):
            raise RetractionFailure(
                f"Variable {self.id}: correction size {delta.size} != tangent dimension {self.dim}",
                self.id,
            )
        if not np.all(np.isfinite(delta)):
            raise RetractionFailure(f"Variable {self.id}: correction is not finite", self.id)

        return Variable(self.id, self.type, retract(self.type, self.value, delta))


class Values:
    """Immutable assignment of values to variable identifiers.

    Every operation that would change the assignment returns a new
    ``Values``; unchanged ``Variable`` entries are shared between instances.
    """

    def __init__(self, variables: Optional[Mapping[str, Variable]] = None):
        self._variables: Dict[str, Variable] = dict(variables or {})

    @classmethod
    def from_dict(
        cls,
        values: Mapping[str, np.ndarray],
        var_type: VariableType = VariableType.VECTOR
    ) -> "Values":
        """Build from plain arrays that all share one variable type."""
        return cls({key: Variable(key, var_type, value) for key, value in values.items()})

    def insert(self, key: str, value, var_type: VariableType = VariableType.VECTOR) -> "Values":
        """Return a copy with a new variable added."""
        if key in self._variables:
            raise ValueError(f"Variable {key} already exists")

        variables = dict(self._variables)
        variables[key] = Variable(key, var_type, value)
        return Values(variables)

    def variable(self, key: str) -> Variable:
        """Get variable by ID."""
        if key not in self._variables:
            raise KeyError(f"Variable {key} not found")
        return self._variables[key]

    def __getitem__(self, key: str) -> np.ndarray:
        return self.variable(key).value

    def __contains__(self, key: object) -> bool:
        return key in self._variables

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def keys(self):
        return self._variables.keys()

    def items(self) -> Iterator[Tuple[str, np.ndarray]]:
        for key, variable in self._variables.items():
            yield key, variable.value

    def dims(self) -> Dict[str, int]:
        """Tangent dimension of every variable."""
        return {key: variable.dim for key, variable in self._variables.items()}

    def retract(self, delta: Mapping[str, np.ndarray]) -> "Values":
        """Apply per-variable corrections through each variable's manifold.

        Variables without an entry in ``delta`` are shared unchanged.

        Raises:
            RetractionFailure: If a correction names an unknown variable or
                has the wrong size.
        """
        variables = dict(self._variables)
        for key, d in delta.items():
            if key not in variables:
                raise RetractionFailure(f"Correction for unknown variable {key}", key)
            variables[key] = variables[key].retract(d)
        return Values(variables)

    def local_coordinates(self, other: "Values") -> Dict[str, np.ndarray]:
        """Tangent vectors taking each variable of ``self`` to ``other``."""
        result = {}
        for key, variable in self._variables.items():
            result[key] = np.atleast_1d(
                local_coordinates(variable.type, variable.value, other[key])
            )
        return result

    def __repr__(self) -> str:
        entries = ", ".join(
            f"{key}: {np.array2string(variable.value.ravel(), precision=6)}"
            for key, variable in self._variables.items()
        )
        return f"Values({{{entries}}})"
