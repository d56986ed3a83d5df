"""Numerical Jacobian estimation for vector and manifold-valued arguments."""

import numpy as np
from typing import Any, Callable, Sequence, Tuple, Union


def numerical_derivative(
    func: Callable[[np.ndarray], np.ndarray],
    dim: int,
    delta: Union[float, Sequence[float]] = 1e-5
) -> np.ndarray:
    """Central-difference Jacobian of a function of a tangent-space perturbation.

    Args:
        func: Maps a `dim`-element local perturbation to a residual vector
        dim: Local dimension of the argument being differentiated
        delta: Perturbation step, either shared or one per local coordinate

    Returns:
        Jacobian matrix J where J[i,j] = df_i/d(delta_j), evaluated at zero
    """
    if dim <= 0:
        raise ValueError(f"dim must be positive, got {dim}")
    steps = np.broadcast_to(np.asarray(delta, dtype=float), (dim,))
    if not np.all(steps > 0):
        raise ValueError(f"delta must be positive, got {delta}")

    columns = []
    for j in range(dim):
        d = np.zeros(dim)
        d[j] = steps[j]
        f_plus = np.atleast_1d(func(d))
        f_minus = np.atleast_1d(func(-d))
        columns.append((f_plus - f_minus) / (2 * steps[j]))

    return np.column_stack(columns)


def manifold_derivative(
    func: Callable[[Any], np.ndarray],
    value: Any,
    delta: float = 1e-5
) -> np.ndarray:
    """Jacobian of `func` with respect to `value` through its local chart.

    `value` must expose `dim` and `retract(xi)`. Values with a restricted
    domain may also expose `chart_steps(delta)` to shrink the step per
    coordinate so that both perturbations stay inside it.
    """
    chart_steps = getattr(value, "chart_steps", None)
    steps = chart_steps(delta) if chart_steps is not None else delta
    return numerical_derivative(lambda xi: func(value.retract(xi)), value.dim, steps)


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-8,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences in raw coordinates.

    Args:
        func: Function that takes x and returns residual vector
        x: Input parameters
        h: Step size for finite differences
        method: Finite difference method ("forward", "backward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    J = np.zeros((len(f0), len(x)))
    for j in range(len(x)):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[j] += h
        x_minus[j] -= h

        if method == "forward":
            J[:, j] = (func(x_plus) - f0) / h
        elif method == "backward":
            J[:, j] = (f0 - func(x_minus)) / h
        elif method == "central":
            J[:, j] = (func(x_plus) - func(x_minus)) / (2 * h)
        else:
            raise ValueError(f"Unknown finite difference method: {method}")

    return J


def check_jacobian(
    J: np.ndarray,
    J_reference: np.ndarray,
    atol: float = 1e-5,
    rtol: float = 1e-5
) -> Tuple[bool, float, np.ndarray]:
    """Compare a Jacobian against a reference estimate.

    Returns:
        Tuple of (is_correct, max_abs_error, error_matrix)
    """
    if J.shape != J_reference.shape:
        raise ValueError(f"Jacobian shapes differ: {J.shape} vs {J_reference.shape}")

    error = np.abs(J - J_reference)
    is_correct = np.allclose(J, J_reference, atol=atol, rtol=rtol)
    return is_correct, float(np.max(error)), error
