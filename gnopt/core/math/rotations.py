"""Rotation group operations used by manifold variables."""

import numpy as np


def skew_symmetric(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix from 3D vector."""
    if v.shape != (3,):
        raise ValueError(f"v must be 3-element vector, got shape {v.shape}")

    return np.array([
        [0, -v[2], v[1]],
        [v[2], 0, -v[0]],
        [-v[1], v[0], 0]
    ])


def quat_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """Create quaternion from axis-angle representation.

    Args:
        axis: 3D rotation axis (normalized internally)
        angle: Rotation angle in radians

    Returns:
        Unit quaternion [w, x, y, z]
    """
    if axis.shape != (3,):
        raise ValueError(f"Axis must be 3-element vector, got shape {axis.shape}")

    axis_norm = np.linalg.norm(axis)
    if axis_norm < 1e-12:
        return np.array([1.0, 0.0, 0.0, 0.0])

    axis = axis / axis_norm
    sin_half = np.sin(angle / 2)

    return np.array([np.cos(angle / 2), *(sin_half * axis)])


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert unit quaternion [w, x, y, z] to rotation matrix."""
    if q.shape != (4,):
        raise ValueError(f"Quaternion must be 4-element vector, got shape {q.shape}")

    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Cannot normalize zero quaternion")
    w, x, y, z = q / norm

    return np.array([
        [1 - 2*(y**2 + z**2), 2*(x*y - w*z), 2*(x*z + w*y)],
        [2*(x*y + w*z), 1 - 2*(x**2 + z**2), 2*(y*z - w*x)],
        [2*(x*z - w*y), 2*(y*z + w*x), 1 - 2*(x**2 + y**2)]
    ])


def so3_exp(phi: np.ndarray) -> np.ndarray:
    """Map a rotation vector in so(3) to a rotation matrix.

    Args:
        phi: 3-element rotation vector (axis * angle)

    Returns:
        3x3 rotation matrix
    """
    phi = np.asarray(phi, dtype=float)
    if phi.shape != (3,):
        raise ValueError(f"phi must be 3-element vector, got shape {phi.shape}")

    theta = np.linalg.norm(phi)
    if theta < 1e-8:
        # Small angle approximation
        return np.eye(3) + skew_symmetric(phi)

    return quat_to_matrix(quat_from_axis_angle(phi / theta, theta))


def so3_log(R: np.ndarray) -> np.ndarray:
    """Map a rotation matrix to its rotation vector in so(3).

    Args:
        R: 3x3 rotation matrix

    Returns:
        3-element rotation vector with angle in [0, pi]
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")

    cos_theta = np.clip((np.trace(R) - 1) / 2, -1.0, 1.0)
    theta = np.arccos(cos_theta)
    vee = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])

    if theta < 1e-6:
        return 0.5 * vee

    if np.pi - theta < 1e-6:
        # R + I = 2 a a^T at theta = pi; use the best-conditioned column
        B = 0.5 * (R + np.eye(3))
        i = int(np.argmax(np.diag(B)))
        axis = B[:, i] / np.sqrt(B[i, i])
        return theta * axis / np.linalg.norm(axis)

    return theta / (2 * np.sin(theta)) * vee


def wrap_angle(theta):
    """Wrap an angle (or array of angles) to [-pi, pi)."""
    return (np.asarray(theta, dtype=float) + np.pi) % (2 * np.pi) - np.pi
