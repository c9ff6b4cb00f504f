"""Jacobian computation utilities."""

import numpy as np
from typing import Callable


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences.

    For manifold variables ``func`` is usually a residual evaluated at
    ``retract(value, x)`` and ``x`` is the zero tangent vector.

    Args:
        func: Function that takes x and returns residual vector
        x: Input parameters
        h: Step size for finite differences
        method: Finite difference method ("forward", "backward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    m, n = len(f0), len(x)
    J = np.zeros((m, n))

    for j in range(n):
        step = np.zeros(n)
        step[j] = h

        if method == "forward":
            J[:, j] = (np.atleast_1d(func(x + step)) - f0) / h
        elif method == "backward":
            J[:, j] = (f0 - np.atleast_1d(func(x - step))) / h
        elif method == "central":
            J[:, j] = (np.atleast_1d(func(x + step)) - np.atleast_1d(func(x - step))) / (2 * h)
        else:
            raise ValueError(f"Unknown finite difference method: {method}")

    return J


def check_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    jacobian_func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    atol: float = 1e-6,
    rtol: float = 1e-6
) -> tuple[bool, float, np.ndarray]:
    """Check analytic Jacobian against finite differences.

    Returns:
        Tuple of (is_correct, max_error, error_matrix)
    """
    J_analytic = jacobian_func(x)
    J_numeric = finite_difference_jacobian(func, x, h)

    error = np.abs(J_analytic - J_numeric)
    is_correct = np.allclose(J_analytic, J_numeric, atol=atol, rtol=rtol)

    return bool(is_correct), float(np.max(error)) if error.size else 0.0, error
