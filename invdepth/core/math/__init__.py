"""Math primitives: SE(3) chart, projection, inverse depth and Jacobians."""

from .se3 import se3_exp, se3_log, compose, invert, skew_symmetric
from .camera import Projection, project, project_points, point_depth
from .inverse_depth import (
    InvalidInverseDepthError,
    inverse_depth_to_cartesian,
    cartesian_to_inverse_depth,
)
from .robust import huber_loss, cauchy_loss, apply_robust_loss
from .jacobians import numerical_derivative, manifold_derivative, finite_difference_jacobian, check_jacobian

__all__ = [
    "se3_exp",
    "se3_log",
    "compose",
    "invert",
    "skew_symmetric",
    "Projection",
    "project",
    "project_points",
    "point_depth",
    "InvalidInverseDepthError",
    "inverse_depth_to_cartesian",
    "cartesian_to_inverse_depth",
    "huber_loss",
    "cauchy_loss",
    "apply_robust_loss",
    "numerical_derivative",
    "manifold_derivative",
    "finite_difference_jacobian",
    "check_jacobian",
]
