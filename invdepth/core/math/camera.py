"""Pinhole camera projection with explicit cheirality reporting."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple
import numpy as np

if TYPE_CHECKING:
    from ..models.geometry import Calibration, Pose3


@dataclass(frozen=True)
class Projection:
    """Result of projecting a single world point.

    `pixel` is None when the point is not in front of the camera.
    """

    pixel: Optional[np.ndarray]
    depth: float

    @property
    def in_front(self) -> bool:
        return self.pixel is not None

    @property
    def ok(self) -> bool:
        return self.in_front


def project(calibration: "Calibration", pose: "Pose3", X: np.ndarray) -> Projection:
    """Project one world point through a posed, calibrated camera.

    Args:
        calibration: Camera intrinsics
        pose: Camera-to-world pose of the projecting camera
        X: 3-element point in world coordinates

    Returns:
        Projection carrying the pixel, or no pixel if depth <= 0
    """
    X = np.asarray(X, dtype=float)
    if X.shape != (3,):
        raise ValueError(f"X must be 3-element vector, got shape {X.shape}")

    X_cam = pose.transform_to(X)
    depth = float(X_cam[2])
    if depth <= 0.0:
        return Projection(pixel=None, depth=depth)

    normalized = X_cam[:2] / depth
    return Projection(pixel=calibration.uncalibrate(normalized), depth=depth)


def project_points(calibration: "Calibration", pose: "Pose3", X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Project Nx3 world points.

    Returns:
        Tuple of (Nx2 pixel array, N-element validity mask). Rows for points
        behind the camera are NaN.
    """
    X = np.atleast_2d(np.asarray(X, dtype=float))
    if X.shape[1] != 3:
        raise ValueError(f"X must be Nx3 array, got shape {X.shape}")

    X_cam = (X - pose.t) @ pose.R
    valid = X_cam[:, 2] > 0.0

    uv = np.full((len(X), 2), np.nan)
    for i in np.flatnonzero(valid):
        uv[i] = calibration.uncalibrate(X_cam[i, :2] / X_cam[i, 2])

    return uv, valid


def camera_center(pose: "Pose3") -> np.ndarray:
    """Camera center in world coordinates."""
    return np.array(pose.t)


def point_depth(pose: "Pose3", X: np.ndarray) -> np.ndarray:
    """Depth of Nx3 world points along the camera's principal axis (positive = in front)."""
    X = np.atleast_2d(np.asarray(X, dtype=float))
    return ((X - pose.t) @ pose.R)[:, 2]
