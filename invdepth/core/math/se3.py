"""SE(3) Lie group operations used as the local chart for poses."""

import numpy as np
from typing import Tuple


def skew_symmetric(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix from 3D vector."""
    if v.shape != (3,):
        raise ValueError(f"v must be 3-element vector, got shape {v.shape}")

    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0]
    ])


def rotation_exp(phi: np.ndarray) -> np.ndarray:
    """Rodrigues formula: so(3) vector to rotation matrix."""
    if phi.shape != (3,):
        raise ValueError(f"phi must be 3-element vector, got shape {phi.shape}")

    theta = np.linalg.norm(phi)
    W = skew_symmetric(phi)
    if theta < 1e-6:
        return np.eye(3) + W + 0.5 * W @ W

    return np.eye(3) + (np.sin(theta) / theta) * W + \
        ((1 - np.cos(theta)) / theta**2) * W @ W


def se3_exp(xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Convert se(3) algebra element to SE(3) group (R, t).

    Args:
        xi: 6-element vector [rho, phi] where rho is translation, phi is rotation

    Returns:
        Tuple of (R, t) where R is 3x3 rotation matrix, t is 3-element translation
    """
    xi = np.asarray(xi, dtype=float)
    if xi.shape != (6,):
        raise ValueError(f"xi must be 6-element vector, got shape {xi.shape}")

    rho = xi[:3]
    phi = xi[3:]

    theta = np.linalg.norm(phi)
    W = skew_symmetric(phi)
    R = rotation_exp(phi)

    if theta < 1e-6:
        V = np.eye(3) + 0.5 * W + W @ W / 6.0
    else:
        V = np.eye(3) + ((1 - np.cos(theta)) / theta**2) * W + \
            ((theta - np.sin(theta)) / theta**3) * W @ W

    return R, V @ rho


def se3_log(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Convert SE(3) group element (R, t) to se(3) algebra.

    Args:
        R: 3x3 rotation matrix
        t: 3-element translation vector

    Returns:
        6-element se(3) vector [rho, phi]
    """
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")
    if t.shape != (3,):
        raise ValueError(f"t must be 3-element vector, got shape {t.shape}")

    theta = np.arccos(np.clip((np.trace(R) - 1) / 2, -1, 1))
    vee = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])

    if theta < 1e-6:
        phi = 0.5 * vee
        W = skew_symmetric(phi)
        V_inv = np.eye(3) - 0.5 * W + W @ W / 12.0
    else:
        # Near pi the vee map loses precision; not reached by small perturbations
        phi = theta / (2 * np.sin(theta)) * vee
        W = skew_symmetric(phi)
        half = theta / 2
        V_inv = np.eye(3) - 0.5 * W + \
            (1 - half * np.cos(half) / np.sin(half)) / theta**2 * W @ W

    return np.concatenate([V_inv @ t, phi])


def compose(R1: np.ndarray, t1: np.ndarray, R2: np.ndarray, t2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Compose two SE(3) transformations: T1 * T2."""
    return R1 @ R2, R1 @ t2 + t1


def invert(R: np.ndarray, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Invert SE(3) transformation."""
    R_inv = R.T
    return R_inv, -R_inv @ t
