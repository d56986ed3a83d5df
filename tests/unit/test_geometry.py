"""Tests for pose, landmark and calibration value types."""

import numpy as np
import pytest
from pydantic import ValidationError

from invdepth.core.math.inverse_depth import InvalidInverseDepthError
from invdepth.core.models.geometry import Calibration, InverseDepthLandmark, Pose3


class TestPose3:

    def setup_method(self):
        self.pose = Pose3.from_xi(np.array([1.0, -2.0, 0.5, 0.3, -0.1, 0.2]))

    def test_transform_round_trip(self):
        p = np.array([0.3, 0.4, 5.0])

        np.testing.assert_allclose(self.pose.transform_to(self.pose.transform_from(p)), p, atol=1e-12)

    def test_transform_from_identity(self):
        p = np.array([1.0, 2.0, 3.0])

        np.testing.assert_allclose(Pose3.identity().transform_from(p), p)

    def test_retract_zero(self):
        assert self.pose.retract(np.zeros(6)).equals(self.pose, 1e-12)

    def test_retract_local_coordinates_inverse(self):
        xi = np.array([0.01, -0.02, 0.03, 0.002, 0.001, -0.003])

        other = self.pose.retract(xi)

        np.testing.assert_allclose(self.pose.local_coordinates(other), xi, atol=1e-10)

    def test_retract_translates_in_local_frame(self):
        """Right perturbation moves the pose along its own axes."""
        moved = self.pose.retract(np.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0]))

        np.testing.assert_allclose(moved.t, self.pose.t + self.pose.R[:, 2], atol=1e-12)

    def test_between(self):
        other = Pose3.from_xi(np.array([0.2, 0.1, 0.0, 0.0, 0.4, 0.0]))

        assert self.pose.compose(self.pose.between(other)).equals(other, 1e-10)

    def test_immutable(self):
        with pytest.raises(ValueError):
            self.pose.t[0] = 3.0

    def test_equals(self):
        assert self.pose.equals(Pose3(self.pose.R, self.pose.t))
        assert not self.pose.equals(Pose3(self.pose.R, self.pose.t + 1e-3))
        assert not self.pose.equals("not a pose")

    def test_invalid_shapes(self):
        with pytest.raises(ValueError):
            Pose3(np.eye(2))

        with pytest.raises(ValueError):
            Pose3(np.eye(3), np.zeros(2))


class TestInverseDepthLandmark:

    def test_accessors(self):
        landmark = InverseDepthLandmark(0.1, 0.2, 0.3)

        assert (landmark.theta, landmark.phi, landmark.rho) == (0.1, 0.2, 0.3)
        np.testing.assert_allclose(landmark.vector(), [0.1, 0.2, 0.3])

    def test_retract_is_vector_addition(self):
        landmark = InverseDepthLandmark(0.1, 0.2, 0.3)

        moved = landmark.retract(np.array([0.01, -0.02, 0.5]))

        np.testing.assert_allclose(moved.vector(), [0.11, 0.18, 0.8])
        np.testing.assert_allclose(landmark.local_coordinates(moved), [0.01, -0.02, 0.5])

    def test_chart_steps_stay_clear_of_zero(self):
        np.testing.assert_allclose(InverseDepthLandmark(0.1, 0.2, 0.3).chart_steps(1e-5), [1e-5, 1e-5, 1e-5])
        np.testing.assert_allclose(InverseDepthLandmark(0.1, 0.2, -1e-5).chart_steps(1e-5), [1e-5, 1e-5, 5e-6])

    def test_to_cartesian(self):
        np.testing.assert_allclose(InverseDepthLandmark(0.0, 0.0, 0.5).to_cartesian(), [0.0, 0.0, 2.0])

    def test_zero_rho_fails_on_use(self):
        landmark = InverseDepthLandmark(0.0, 0.0, 0.0)

        with pytest.raises(InvalidInverseDepthError):
            landmark.validate()

        with pytest.raises(InvalidInverseDepthError):
            landmark.to_cartesian()

    def test_from_vector_shape(self):
        with pytest.raises(ValueError):
            InverseDepthLandmark.from_vector(np.zeros(4))


class TestCalibration:

    def setup_method(self):
        self.K = Calibration(fx=500.0, fy=400.0, s=2.0, u0=320.0, v0=240.0)

    def test_matrix(self):
        np.testing.assert_allclose(self.K.K(), [
            [500.0, 2.0, 320.0],
            [0.0, 400.0, 240.0],
            [0.0, 0.0, 1.0],
        ])

    def test_calibrate_inverts_uncalibrate(self):
        p = np.array([0.1, -0.2])

        np.testing.assert_allclose(self.K.calibrate(self.K.uncalibrate(p)), p)

    def test_frozen(self):
        with pytest.raises(ValidationError):
            self.K.fx = 1.0

    def test_zero_focal_length_rejected(self):
        with pytest.raises(ValidationError):
            Calibration(fx=0.0, fy=1.0)

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            Calibration(fx=1.0, fy=1.0, u0=float("nan"))

    def test_equals(self):
        assert self.K.equals(Calibration.from_vector([500.0, 400.0, 2.0, 320.0, 240.0]))
        assert self.K.equals(Calibration(fx=500.0 + 1e-12, fy=400.0, s=2.0, u0=320.0, v0=240.0))
        assert not self.K.equals(Calibration(fx=501.0, fy=400.0, s=2.0, u0=320.0, v0=240.0))
        assert not self.K.equals(np.array([500.0, 400.0, 2.0, 320.0, 240.0]))
