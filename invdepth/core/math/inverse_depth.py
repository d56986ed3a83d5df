"""Inverse-depth landmark parameterization.

A landmark is stored as (theta, phi, rho) relative to an anchor frame: theta is
the azimuth about the anchor's y axis, phi the elevation out of the x-z plane
and rho the inverse of the distance along that bearing. The bearing
(theta=0, phi=0) is the anchor's principal (z) axis.
"""

import numpy as np
from typing import Tuple


class InvalidInverseDepthError(ValueError):
    """Raised for a landmark with zero or non-finite components."""


def validate_inverse_depth(theta: float, phi: float, rho: float) -> None:
    """Check the (theta, phi, rho) preconditions.

    Negative rho is accepted: it places the point on the opposite side of the
    anchor along the bearing direction.
    """
    if not np.all(np.isfinite([theta, phi, rho])):
        raise InvalidInverseDepthError(
            f"Inverse depth landmark must be finite, got ({theta}, {phi}, {rho})"
        )
    if rho == 0.0:
        raise InvalidInverseDepthError("Inverse depth rho must be nonzero")


def inverse_depth_to_cartesian(theta: float, phi: float, rho: float) -> np.ndarray:
    """Convert an inverse-depth triple into a point in the anchor frame.

    Args:
        theta: Azimuth angle in radians
        phi: Elevation angle in radians
        rho: Inverse depth along the bearing

    Returns:
        3-element point [x, y, z] in the anchor frame
    """
    validate_inverse_depth(theta, phi, rho)

    cos_phi = np.cos(phi)
    return np.array([
        cos_phi * np.sin(theta) / rho,
        np.sin(phi) / rho,
        cos_phi * np.cos(theta) / rho
    ])


def cartesian_to_inverse_depth(point: np.ndarray) -> Tuple[float, float, float]:
    """Convert a point in the anchor frame to (theta, phi, rho).

    The returned rho is always positive; used to initialize landmarks from
    triangulated points.
    """
    point = np.asarray(point, dtype=float)
    if point.shape != (3,):
        raise ValueError(f"point must be 3-element vector, got shape {point.shape}")

    x, y, z = point
    distance = np.linalg.norm(point)
    if distance < 1e-12:
        raise InvalidInverseDepthError("Cannot parameterize a point at the anchor origin")

    theta = float(np.arctan2(x, z))
    phi = float(np.arctan2(y, np.hypot(x, z)))
    return theta, phi, float(1.0 / distance)
