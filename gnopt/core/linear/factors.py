"""Linear (Gaussian) factors and the linear factor graph."""

from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np


def _scatter_indices(keys: Sequence[str], offsets: Mapping[str, int], dims: Mapping[str, int]) -> np.ndarray:
    """Column indices of ``keys`` inside a scattered system."""
    if not keys:
        return np.zeros(0, dtype=int)
    return np.concatenate([np.arange(offsets[k], offsets[k] + dims[k]) for k in keys])


class JacobianFactor:
    """Linear factor ``0.5 * ||sum_k A_k x_k - b||^2``.

    Args:
        keys: Variable IDs in the factor, in block order
        blocks: Mapping from variable ID to its Jacobian block
        b: Right-hand side vector
        factor_id: ID of the nonlinear factor this was linearized from
    """

    def __init__(
        self,
        keys: Sequence[str],
        blocks: Mapping[str, np.ndarray],
        b: np.ndarray,
        factor_id: Optional[str] = None
    ):
        self.keys: List[str] = list(keys)
        self.b = np.atleast_1d(np.asarray(b, dtype=float))
        self.blocks: Dict[str, np.ndarray] = {}
        self.factor_id = factor_id

        for key in self.keys:
            block = np.atleast_2d(np.asarray(blocks[key], dtype=float))
            if block.shape[0] != self.b.size:
                raise ValueError(
                    f"Jacobian block for {key} has {block.shape[0]} rows, expected {self.b.size}"
                )
            self.blocks[key] = block

    @property
    def rows(self) -> int:
        return self.b.size

    def dims(self) -> Dict[str, int]:
        return {key: block.shape[1] for key, block in self.blocks.items()}

    def error(self, delta: Mapping[str, np.ndarray]) -> float:
        residual = self.whitened_error_vector(delta)
        return 0.5 * float(residual @ residual)

    def whitened_error_vector(self, delta: Mapping[str, np.ndarray]) -> np.ndarray:
        residual = -self.b.copy()
        for key in self.keys:
            residual += self.blocks[key] @ delta[key]
        return residual

    def augmented(self, offsets: Mapping[str, int], dims: Mapping[str, int], n: int) -> np.ndarray:
        """Scatter ``[A | b]`` into a ``rows x (n + 1)`` matrix."""
        M = np.zeros((self.rows, n + 1))
        for key in self.keys:
            M[:, offsets[key]:offsets[key] + dims[key]] = self.blocks[key]
        M[:, n] = self.b
        return M

    def information(self, offsets: Mapping[str, int], dims: Mapping[str, int], n: int) -> np.ndarray:
        """Augmented information matrix ``[A | b]^T [A | b]`` scattered to size ``n + 1``."""
        M = self.augmented(offsets, dims, n)
        return M.T @ M

    def __repr__(self) -> str:
        return f"JacobianFactor(keys={self.keys}, rows={self.rows})"


class HessianFactor:
    """Linear factor in information form.

    ``info`` is the augmented matrix ``[[G, g], [g^T, c]]`` over ``keys``
    (block order), so the factor's error is ``0.5 * (x^T G x - 2 x^T g + c)``.
    """

    def __init__(self, keys: Sequence[str], dims: Mapping[str, int], info: np.ndarray):
        self.keys: List[str] = list(keys)
        self._dims: Dict[str, int] = {key: int(dims[key]) for key in self.keys}
        self.info = np.asarray(info, dtype=float)

        n = sum(self._dims.values())
        if self.info.shape != (n + 1, n + 1):
            raise ValueError(f"Information matrix must be {n + 1}x{n + 1}, got {self.info.shape}")

    def dims(self) -> Dict[str, int]:
        return dict(self._dims)

    def error(self, delta: Mapping[str, np.ndarray]) -> float:
        x = np.concatenate([np.atleast_1d(delta[key]) for key in self.keys] + [[-1.0]])
        return 0.5 * float(x @ self.info @ x)

    def information(self, offsets: Mapping[str, int], dims: Mapping[str, int], n: int) -> np.ndarray:
        """Scatter the augmented information matrix to size ``n + 1``."""
        idx = np.concatenate([_scatter_indices(self.keys, offsets, dims), [n]])
        full = np.zeros((n + 1, n + 1))
        full[np.ix_(idx, idx)] = self.info
        return full

    def __repr__(self) -> str:
        return f"HessianFactor(keys={self.keys})"


class LinearFactorGraph:
    """Collection of linear factors over tangent-space deltas."""

    def __init__(self, factors: Optional[Sequence] = None):
        self.factors: List = list(factors or [])

    def add(self, factor) -> None:
        self.factors.append(factor)

    def __iter__(self) -> Iterator:
        return iter(self.factors)

    def __len__(self) -> int:
        return len(self.factors)

    def keys(self) -> List[str]:
        """Variable IDs in order of first appearance."""
        seen: Dict[str, None] = {}
        for factor in self.factors:
            for key in factor.keys:
                seen.setdefault(key, None)
        return list(seen)

    def dims(self) -> Dict[str, int]:
        """Tangent dimension of every variable, checked for consistency."""
        dims: Dict[str, int] = {}
        for factor in self.factors:
            for key, dim in factor.dims().items():
                if dims.setdefault(key, dim) != dim:
                    raise ValueError(f"Variable {key} has inconsistent dimensions {dims[key]} and {dim}")
        return dims

    def error(self, delta: Mapping[str, np.ndarray]) -> float:
        return sum(factor.error(delta) for factor in self.factors)

    def jacobian(self, ordering: Optional[Sequence[str]] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Dense ``(A, b)`` of all Jacobian factors with columns in ``ordering``."""
        ordering = list(ordering) if ordering is not None else self.keys()
        dims = self.dims()

        offsets = {}
        n = 0
        for key in ordering:
            offsets[key] = n
            n += dims[key]

        rows = [f.augmented(offsets, dims, n) for f in self.factors if isinstance(f, JacobianFactor)]
        if not rows:
            return np.zeros((0, n)), np.zeros(0)

        M = np.vstack(rows)
        return M[:, :n], M[:, n]

    def summary(self) -> Dict[str, int]:
        """Size statistics used in diagnostics."""
        dims = self.dims()
        return {
            "factors": len(self.factors),
            "variables": len(dims),
            "total_dimension": sum(dims.values()),
            "total_rows": sum(f.rows for f in self.factors if isinstance(f, JacobianFactor)),
        }
