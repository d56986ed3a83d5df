"""Robust kernels applied to whitened residuals."""

import numpy as np
from typing import Tuple


def huber_loss(residual: np.ndarray, delta: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Huber robust loss.

    Returns:
        Tuple of (rho, weights): per-component cost and the square-root-free
        weight used to reweight residuals and Jacobian rows
    """
    if delta <= 0:
        raise ValueError("Huber delta must be positive")

    abs_residual = np.abs(residual)
    is_inlier = abs_residual <= delta

    rho = np.where(is_inlier, 0.5 * residual**2, delta * (abs_residual - 0.5 * delta))
    weights = np.where(is_inlier, 1.0, delta / np.maximum(abs_residual, 1e-12))

    return rho, weights


def cauchy_loss(residual: np.ndarray, sigma: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Cauchy robust loss."""
    if sigma <= 0:
        raise ValueError("Cauchy sigma must be positive")

    sigma2 = sigma**2
    r2_over_sigma2 = residual**2 / sigma2

    rho = 0.5 * sigma2 * np.log1p(r2_over_sigma2)
    weights = 1.0 / (1 + r2_over_sigma2)

    return rho, weights


def no_loss(residual: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Plain least squares."""
    return 0.5 * residual**2, np.ones_like(residual)


def apply_robust_loss(residual: np.ndarray, loss_type: str = "none", **kwargs) -> Tuple[np.ndarray, np.ndarray]:
    """Apply a robust kernel by name ("none", "huber", "cauchy")."""
    residual = np.asarray(residual, dtype=float)
    if loss_type == "none":
        return no_loss(residual)
    elif loss_type == "huber":
        return huber_loss(residual, kwargs.get("delta", 1.0))
    elif loss_type == "cauchy":
        return cauchy_loss(residual, kwargs.get("sigma", 1.0))
    else:
        raise ValueError(f"Unknown loss type: {loss_type}")
