"""Value types for poses, inverse-depth landmarks and calibrations."""

import math
from typing import List, Optional
import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..math.se3 import se3_exp, se3_log, compose, invert
from ..math.inverse_depth import inverse_depth_to_cartesian, validate_inverse_depth


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


class Pose3:
    """Rigid transform mapping camera-local coordinates to world coordinates."""

    dim = 6

    def __init__(self, R: Optional[np.ndarray] = None, t: Optional[np.ndarray] = None):
        R = np.eye(3) if R is None else np.asarray(R, dtype=float)
        t = np.zeros(3) if t is None else np.asarray(t, dtype=float)
        if R.shape != (3, 3):
            raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")
        if t.shape != (3,):
            raise ValueError(f"t must be 3-element vector, got shape {t.shape}")
        self._R = _frozen(R)
        self._t = _frozen(t)

    @classmethod
    def identity(cls) -> "Pose3":
        return cls()

    @classmethod
    def from_xi(cls, xi: np.ndarray) -> "Pose3":
        """Pose from an se(3) vector [rho, phi]."""
        return cls(*se3_exp(np.asarray(xi, dtype=float)))

    @property
    def R(self) -> np.ndarray:
        return self._R

    @property
    def t(self) -> np.ndarray:
        return self._t

    def transform_from(self, point: np.ndarray) -> np.ndarray:
        """Map a point from this pose's local frame to the world frame."""
        return self._R @ np.asarray(point, dtype=float) + self._t

    def transform_to(self, point: np.ndarray) -> np.ndarray:
        """Map a world point into this pose's local frame."""
        return self._R.T @ (np.asarray(point, dtype=float) - self._t)

    def compose(self, other: "Pose3") -> "Pose3":
        return Pose3(*compose(self._R, self._t, other._R, other._t))

    def inverse(self) -> "Pose3":
        return Pose3(*invert(self._R, self._t))

    def between(self, other: "Pose3") -> "Pose3":
        """Relative pose self^-1 * other."""
        return self.inverse().compose(other)

    def retract(self, xi: np.ndarray) -> "Pose3":
        """Perturb on the right: self * exp(xi)."""
        return self.compose(Pose3.from_xi(xi))

    def local_coordinates(self, other: "Pose3") -> np.ndarray:
        """Inverse of retract: log(self^-1 * other)."""
        delta = self.between(other)
        return se3_log(np.array(delta.R), np.array(delta.t))

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, Pose3):
            return False
        return np.allclose(self._R, other._R, rtol=0.0, atol=tol) and \
            np.allclose(self._t, other._t, rtol=0.0, atol=tol)

    def __repr__(self) -> str:
        return f"Pose3(R={self._R.tolist()}, t={self._t.tolist()})"


class InverseDepthLandmark:
    """Landmark (theta, phi, rho) expressed relative to an anchor pose."""

    dim = 3

    def __init__(self, theta: float, phi: float, rho: float):
        self._vector = _frozen([theta, phi, rho])

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "InverseDepthLandmark":
        v = np.asarray(v, dtype=float)
        if v.shape != (3,):
            raise ValueError(f"Landmark vector must have 3 elements, got shape {v.shape}")
        return cls(*v)

    @property
    def theta(self) -> float:
        return float(self._vector[0])

    @property
    def phi(self) -> float:
        return float(self._vector[1])

    @property
    def rho(self) -> float:
        return float(self._vector[2])

    def vector(self) -> np.ndarray:
        return self._vector

    def validate(self) -> None:
        validate_inverse_depth(self.theta, self.phi, self.rho)

    def to_cartesian(self) -> np.ndarray:
        """Point in the anchor frame."""
        return inverse_depth_to_cartesian(self.theta, self.phi, self.rho)

    def retract(self, delta: np.ndarray) -> "InverseDepthLandmark":
        return InverseDepthLandmark.from_vector(self._vector + np.asarray(delta, dtype=float))

    def local_coordinates(self, other: "InverseDepthLandmark") -> np.ndarray:
        return other._vector - self._vector

    def chart_steps(self, delta: float) -> np.ndarray:
        """Per-coordinate difference steps; rho +/- step never reaches zero."""
        return np.array([delta, delta, min(delta, abs(self.rho) / 2.0)])

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, InverseDepthLandmark):
            return False
        return np.allclose(self._vector, other._vector, rtol=0.0, atol=tol)

    def __repr__(self) -> str:
        return f"InverseDepthLandmark(theta={self.theta}, phi={self.phi}, rho={self.rho})"


class Calibration(BaseModel):
    """Pinhole intrinsics with skew. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    fx: float = Field(description="Focal length in x (pixels)")
    fy: float = Field(description="Focal length in y (pixels)")
    s: float = Field(default=0.0, description="Skew")
    u0: float = Field(default=0.0, description="Principal point u")
    v0: float = Field(default=0.0, description="Principal point v")

    @field_validator('fx', 'fy')
    @classmethod
    def validate_focal_length(cls, v):
        if not math.isfinite(v) or v == 0.0:
            raise ValueError("focal length must be finite and nonzero")
        return v

    @field_validator('s', 'u0', 'v0')
    @classmethod
    def validate_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("calibration parameters must be finite")
        return v

    @classmethod
    def from_vector(cls, v: List[float]) -> "Calibration":
        fx, fy, s, u0, v0 = v
        return cls(fx=fx, fy=fy, s=s, u0=u0, v0=v0)

    def vector(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.s, self.u0, self.v0])

    def K(self) -> np.ndarray:
        return np.array([
            [self.fx, self.s, self.u0],
            [0.0, self.fy, self.v0],
            [0.0, 0.0, 1.0]
        ])

    def uncalibrate(self, p: np.ndarray) -> np.ndarray:
        """Normalized image coordinates to pixels."""
        x, y = p
        return np.array([self.fx * x + self.s * y + self.u0, self.fy * y + self.v0])

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        """Pixels to normalized image coordinates."""
        u, v = uv
        y = (v - self.v0) / self.fy
        x = (u - self.u0 - self.s * y) / self.fx
        return np.array([x, y])

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, Calibration):
            return False
        return np.allclose(self.vector(), other.vector(), rtol=0.0, atol=tol)
