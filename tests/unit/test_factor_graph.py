"""Tests for factor graph functionality."""

import numpy as np
import pytest

from invdepth.core.models.geometry import InverseDepthLandmark, Pose3
from invdepth.core.optimization.factor_graph import (
    FactorGraph,
    NoiseModel,
    NonlinearFactor,
    Values,
    default_key_formatter,
    symbol,
)


class LandmarkPriorFactor(NonlinearFactor):
    """Residual = landmark vector - target, for exercising the base class."""

    def __init__(self, key, target, noise_model=None):
        super().__init__([key], noise_model)
        self.target = np.asarray(target, dtype=float)

    def dim(self):
        return 3

    def evaluate(self, values, jacobians=None):
        self._check_slots(jacobians)
        if jacobians is not None and self._keys[0] in jacobians:
            jacobians[self._keys[0]] = np.eye(3)
        return values.at(self._keys[0]).vector() - self.target

    def equals(self, other, tol=1e-9):
        return self._base_equals(other, tol) and np.allclose(self.target, other.target, atol=tol)


class TestSymbol:

    def test_symbol(self):
        assert symbol("x", 1) == "x1"
        assert symbol("l", 42) == "l42"
        assert default_key_formatter(7) == "7"

    def test_invalid_symbol(self):
        with pytest.raises(ValueError):
            symbol("xy", 1)


class TestValues:

    def setup_method(self):
        self.values = Values({"x1": Pose3.identity(), "l1": InverseDepthLandmark(0.0, 0.0, 1.0)})

    def test_access(self):
        assert len(self.values) == 2
        assert "x1" in self.values
        assert self.values.exists("l1")
        assert not self.values.exists("l2")
        assert self.values.keys() == ["x1", "l1"]
        assert isinstance(self.values["x1"], Pose3)

    def test_missing_key(self):
        with pytest.raises(KeyError):
            self.values.at("x9")

        with pytest.raises(KeyError):
            self.values.update("x9", Pose3.identity())

    def test_duplicate_insert(self):
        with pytest.raises(ValueError):
            self.values.insert("x1", Pose3.identity())

    def test_dim(self):
        assert self.values.dim() == 9
        assert self.values.dim(["l1"]) == 3

    def test_retract(self):
        moved = self.values.retract({"l1": np.array([0.1, 0.0, 0.0])})

        np.testing.assert_allclose(moved.at("l1").vector(), [0.1, 0.0, 1.0])
        assert moved.at("x1") is self.values.at("x1")
        np.testing.assert_allclose(self.values.at("l1").vector(), [0.0, 0.0, 1.0])


class TestNoiseModel:

    def test_whiten(self):
        np.testing.assert_allclose(NoiseModel(sigma=2.0).whiten(np.array([2.0, -4.0])), [1.0, -2.0])

    def test_loss(self):
        assert NoiseModel(sigma=2.0).loss(np.array([2.0, -4.0])) == pytest.approx(2.5)

    def test_robust_loss(self):
        noise = NoiseModel(sigma=1.0, loss_type="huber", loss_params={"delta": 1.0})

        assert noise.loss(np.array([3.0])) == pytest.approx(2.5)
        np.testing.assert_allclose(noise.robust_weights(np.array([4.0])), [0.5])

    def test_invalid(self):
        with pytest.raises(ValueError):
            NoiseModel(sigma=0.0)

        with pytest.raises(ValueError):
            NoiseModel(loss_type="tukey")

    def test_equals(self):
        assert NoiseModel(1.0).equals(NoiseModel(1.0 + 1e-12))
        assert not NoiseModel(1.0).equals(NoiseModel(2.0))
        assert not NoiseModel(1.0).equals(NoiseModel(1.0, "cauchy"))
        assert not NoiseModel(1.0).equals(1.0)

    def test_equals_compares_loss_params_within_tolerance(self):
        huber = NoiseModel(1.0, "huber", {"delta": 1.5})

        assert huber.equals(NoiseModel(1.0, "huber", {"delta": 1.5 + 1e-12}))
        assert not huber.equals(NoiseModel(1.0, "huber", {"delta": 1.6}))
        assert huber.equals(NoiseModel(1.0, "huber", {"delta": 1.6}), tol=0.2)
        assert not huber.equals(NoiseModel(1.0, "huber"))


class TestNonlinearFactor:

    def setup_method(self):
        self.values = Values({"l1": InverseDepthLandmark(1.0, 2.0, 3.0)})
        self.factor = LandmarkPriorFactor("l1", [0.0, 0.0, 1.0], NoiseModel(sigma=0.5))

    def test_keys_and_size(self):
        assert self.factor.keys() == ("l1",)
        assert self.factor.size() == 1

    def test_error(self):
        # whitened residual (2, 4, 4)
        assert self.factor.error(self.values) == pytest.approx(18.0)
        np.testing.assert_allclose(self.factor.whitened_error(self.values), [2.0, 4.0, 4.0])
        np.testing.assert_allclose(self.factor.unwhitened_error(self.values), [1.0, 2.0, 2.0])

    def test_linearize(self):
        blocks, b = self.factor.linearize(self.values)

        np.testing.assert_allclose(blocks["l1"], 2.0 * np.eye(3))
        np.testing.assert_allclose(b, [-2.0, -4.0, -4.0])

    def test_unknown_jacobian_slot(self):
        with pytest.raises(KeyError):
            self.factor.evaluate(self.values, {"x5": None})

    def test_describe(self):
        text = self.factor.describe("prior", lambda key: f"<{key}>")

        assert "prior" in text
        assert "keys = { <l1> }" in text
        assert "sigma = 0.5" in text


class TestFactorGraph:

    def setup_method(self):
        self.values = Values({
            "l1": InverseDepthLandmark(1.0, 2.0, 3.0),
            "l2": InverseDepthLandmark(0.0, 0.0, 1.0),
        })
        self.graph = FactorGraph([
            LandmarkPriorFactor("l1", [0.0, 0.0, 1.0]),
            LandmarkPriorFactor("l2", [0.0, 0.0, 0.0]),
        ])

    def test_keys(self):
        assert self.graph.keys() == ["l1", "l2"]
        assert len(self.graph) == 2

    def test_error_and_residuals(self):
        assert self.graph.error(self.values) == pytest.approx(0.5 * (1 + 4 + 4) + 0.5)
        np.testing.assert_allclose(self.graph.residuals(self.values), [1.0, 2.0, 2.0, 0.0, 0.0, 1.0])

    def test_linearize(self):
        A, b, ordering = self.graph.linearize(self.values)

        assert ordering == ["l1", "l2"]
        np.testing.assert_allclose(A, np.eye(6))
        np.testing.assert_allclose(b, [-1.0, -2.0, -2.0, 0.0, 0.0, -1.0])

    def test_linearize_with_fixed_keys(self):
        A, _, ordering = self.graph.linearize(self.values, ["l2"])

        assert ordering == ["l2"]
        assert A.shape == (6, 3)
        np.testing.assert_allclose(A[:3], np.zeros((3, 3)))

    def test_rejects_non_factor(self):
        with pytest.raises(ValueError):
            self.graph.add("not a factor")

    def test_equals(self):
        other = FactorGraph([
            LandmarkPriorFactor("l1", [0.0, 0.0, 1.0]),
            LandmarkPriorFactor("l2", [0.0, 0.0, 0.0]),
        ])

        assert self.graph.equals(other)
        assert not self.graph.equals(FactorGraph([other[0]]))
        assert not self.graph.equals(None)

    def test_summary(self):
        summary = self.graph.summary()

        assert summary["variables"]["total"] == 2
        assert summary["factors"]["total"] == 2
        assert summary["factors"]["total_residuals"] == 6
        assert summary["factors"]["by_type"] == {"LandmarkPriorFactor": 2}

    def test_empty_graph(self):
        assert FactorGraph().residuals(self.values).shape == (0,)
        assert FactorGraph().error(self.values) == 0.0
