"""Reprojection factors for landmarks in inverse-depth parameterization.

Landmarks are (theta, phi, rho) triples anchored to a pose. The binary factor
observes the landmark from its own anchor; the ternary factor re-observes it
from a second pose. Jacobians are central differences through each variable's
local chart.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from .factor_graph import (
    Key,
    KeyFormatter,
    JacobianSlots,
    NoiseModel,
    NonlinearFactor,
    Values,
    default_key_formatter,
)
from ..math.camera import project
from ..math.jacobians import manifold_derivative
from ..models.geometry import Calibration, InverseDepthLandmark, Pose3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorOptions:
    """Evaluation settings shared by the inverse-depth factors."""

    jacobian_delta: float = 1e-5
    log_cheirality: bool = True

    def __post_init__(self):
        if not self.jacobian_delta > 0:
            raise ValueError(f"jacobian_delta must be positive, got {self.jacobian_delta}")


def cheirality_penalty(calibration: Calibration) -> np.ndarray:
    """Residual returned when the landmark lands behind the projecting camera."""
    return np.full(2, 2.0 * calibration.fx)


def _as_measurement(measured: Sequence[float]) -> np.ndarray:
    measured = np.array(measured, dtype=float)
    if measured.shape != (2,):
        raise ValueError(f"measured must be a 2D image point, got shape {measured.shape}")
    if not np.all(np.isfinite(measured)):
        raise ValueError("measured must be finite")
    measured.setflags(write=False)
    return measured


class _InvDepthFactor(NonlinearFactor):
    """Shared storage for the measurement, calibration and options."""

    def __init__(
        self,
        keys: Sequence[Key],
        measured: Sequence[float],
        calibration: Calibration,
        noise_model: Optional[NoiseModel] = None,
        options: Optional[FactorOptions] = None
    ):
        if not isinstance(calibration, Calibration):
            raise ValueError(f"calibration must be a Calibration, got {type(calibration).__name__}")
        super().__init__(keys, noise_model)
        self._measured = _as_measurement(measured)
        self._calibration = calibration
        self.options = options or FactorOptions()

    @property
    def measured(self) -> np.ndarray:
        """The fixed 2D image measurement."""
        return self._measured

    @property
    def calibration(self) -> Calibration:
        """The shared calibration (not copied)."""
        return self._calibration

    def dim(self) -> int:
        return 2

    def describe(self, label: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        z = self._measured
        return super().describe(label, key_formatter) + f"\n{label}.z = ({z[0]}, {z[1]})"

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        return self._base_equals(other, tol) and \
            np.allclose(self._measured, other._measured, rtol=0.0, atol=tol) and \
            self._calibration.equals(other._calibration, tol)

    def _reproject(
        self,
        anchor: Pose3,
        camera: Pose3,
        landmark: InverseDepthLandmark,
        landmark_keys: Sequence[Key],
        camera_key: Key
    ) -> np.ndarray:
        world_point = anchor.transform_from(landmark.to_cartesian())
        projection = project(self._calibration, camera, world_point)
        if projection.ok:
            return projection.pixel - self._measured

        if self.options.log_cheirality:
            landmark_label = ",".join(default_key_formatter(key) for key in landmark_keys)
            logger.warning(
                f"Inverse depth landmark [{landmark_label}] moved behind camera "
                f"{default_key_formatter(camera_key)} (depth {projection.depth:.3g})"
            )
        return cheirality_penalty(self._calibration)

    def _value(self, values: Values, key: Key, kind: type):
        value = values.at(key)
        if not isinstance(value, kind):
            raise ValueError(f"Variable {key} must be {kind.__name__}, got {type(value).__name__}")
        return value

    def _fill(self, jacobians: Optional[JacobianSlots], key: Key, func, value) -> None:
        if jacobians is not None and key in jacobians:
            jacobians[key] = manifold_derivative(func, value, self.options.jacobian_delta)


class InvDepthFactor3a(_InvDepthFactor):
    """Binary factor: the first observation of a landmark from its anchor pose."""

    def __init__(
        self,
        pose_key: Key,
        landmark_key: Key,
        measured: Sequence[float],
        calibration: Calibration,
        noise_model: Optional[NoiseModel] = None,
        options: Optional[FactorOptions] = None
    ):
        """Initialize binary inverse-depth factor.

        Args:
            pose_key: Key of the camera pose, also the landmark's anchor
            landmark_key: Key of the inverse-depth landmark
            measured: Observed pixel [u, v]
            calibration: Shared camera calibration
            noise_model: Pixel noise
            options: Evaluation settings
        """
        super().__init__([pose_key, landmark_key], measured, calibration, noise_model, options)

    @property
    def pose_key(self) -> Key:
        return self._keys[0]

    @property
    def landmark_key(self) -> Key:
        return self._keys[1]

    def inverse_depth_error(self, pose: Pose3, landmark: InverseDepthLandmark) -> np.ndarray:
        """Reprojection error of the landmark into its own anchor camera."""
        return self._reproject(pose, pose, landmark, self._keys, self.pose_key)

    def evaluate(self, values: Values, jacobians: Optional[JacobianSlots] = None) -> np.ndarray:
        self._check_slots(jacobians)
        pose = self._value(values, self.pose_key, Pose3)
        landmark = self._value(values, self.landmark_key, InverseDepthLandmark)

        self._fill(jacobians, self.pose_key,
                   lambda p: self.inverse_depth_error(p, landmark), pose)
        self._fill(jacobians, self.landmark_key,
                   lambda lm: self.inverse_depth_error(pose, lm), landmark)

        return self.inverse_depth_error(pose, landmark)

    def describe(self, label: str = "InvDepthFactor3a", key_formatter: KeyFormatter = default_key_formatter) -> str:
        return super().describe(label, key_formatter)

    def print(self, label: str = "InvDepthFactor3a", key_formatter: KeyFormatter = default_key_formatter) -> None:
        super().print(label, key_formatter)


class InvDepthFactor3b(_InvDepthFactor):
    """Ternary factor: a landmark anchored in pose1 observed from pose2."""

    def __init__(
        self,
        pose1_key: Key,
        pose2_key: Key,
        landmark_key: Key,
        measured: Sequence[float],
        calibration: Calibration,
        noise_model: Optional[NoiseModel] = None,
        options: Optional[FactorOptions] = None
    ):
        """Initialize ternary inverse-depth factor.

        Args:
            pose1_key: Key of the anchor pose
            pose2_key: Key of the pose that made this observation
            landmark_key: Key of the inverse-depth landmark
            measured: Observed pixel [u, v] in the pose2 image
            calibration: Shared camera calibration
            noise_model: Pixel noise
            options: Evaluation settings
        """
        super().__init__([pose1_key, pose2_key, landmark_key], measured, calibration, noise_model, options)

    @property
    def anchor_key(self) -> Key:
        return self._keys[0]

    @property
    def camera_key(self) -> Key:
        return self._keys[1]

    @property
    def landmark_key(self) -> Key:
        return self._keys[2]

    def inverse_depth_error(self, pose1: Pose3, pose2: Pose3, landmark: InverseDepthLandmark) -> np.ndarray:
        """Reprojection error of the pose1-anchored landmark into pose2."""
        return self._reproject(
            pose1, pose2, landmark, [self.anchor_key, self.landmark_key], self.camera_key
        )

    def evaluate(self, values: Values, jacobians: Optional[JacobianSlots] = None) -> np.ndarray:
        self._check_slots(jacobians)
        pose1 = self._value(values, self.anchor_key, Pose3)
        pose2 = self._value(values, self.camera_key, Pose3)
        landmark = self._value(values, self.landmark_key, InverseDepthLandmark)

        self._fill(jacobians, self.anchor_key,
                   lambda p: self.inverse_depth_error(p, pose2, landmark), pose1)
        self._fill(jacobians, self.camera_key,
                   lambda p: self.inverse_depth_error(pose1, p, landmark), pose2)
        self._fill(jacobians, self.landmark_key,
                   lambda lm: self.inverse_depth_error(pose1, pose2, lm), landmark)

        return self.inverse_depth_error(pose1, pose2, landmark)

    def describe(self, label: str = "InvDepthFactor3b", key_formatter: KeyFormatter = default_key_formatter) -> str:
        return super().describe(label, key_formatter)

    def print(self, label: str = "InvDepthFactor3b", key_formatter: KeyFormatter = default_key_formatter) -> None:
        super().print(label, key_formatter)
