"""Math primitives for gnopt."""

from .rotations import skew_symmetric, so3_exp, so3_log, wrap_angle
from .jacobians import finite_difference_jacobian, check_jacobian

__all__ = [
    "skew_symmetric",
    "so3_exp",
    "so3_log",
    "wrap_angle",
    "finite_difference_jacobian",
    "check_jacobian",
]
