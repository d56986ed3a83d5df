"""Value types for poses, landmarks and calibrations."""

from .geometry import Pose3, InverseDepthLandmark, Calibration

__all__ = [
    "Pose3",
    "InverseDepthLandmark",
    "Calibration",
]
