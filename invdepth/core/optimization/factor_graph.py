"""Factor graph representation for optimization problems."""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ..math.robust import apply_robust_loss

Key = Union[int, str]
KeyFormatter = Callable[[Key], str]
JacobianSlots = Dict[Key, Optional[np.ndarray]]


def symbol(char: str, index: int) -> str:
    """Readable key such as "x1" for pose 1 or "l7" for landmark 7."""
    if len(char) != 1:
        raise ValueError(f"Symbol character must be a single character, got {char!r}")
    return f"{char}{index}"


def default_key_formatter(key: Key) -> str:
    return str(key)


class Values:
    """Current estimates of the variables, keyed by variable identifier."""

    def __init__(self, initial: Optional[Dict[Key, Any]] = None):
        self._values: Dict[Key, Any] = {}
        for key, value in (initial or {}).items():
            self.insert(key, value)

    def insert(self, key: Key, value: Any) -> None:
        if key in self._values:
            raise ValueError(f"Variable {key} already exists")
        self._values[key] = value

    def update(self, key: Key, value: Any) -> None:
        if key not in self._values:
            raise KeyError(f"Variable {key} not found")
        self._values[key] = value

    def at(self, key: Key) -> Any:
        if key not in self._values:
            raise KeyError(f"Variable {key} not found")
        return self._values[key]

    def exists(self, key: Key) -> bool:
        return key in self._values

    def keys(self) -> List[Key]:
        return list(self._values)

    def dim(self, keys: Optional[Sequence[Key]] = None) -> int:
        """Total local dimension of the given (or all) variables."""
        keys = self.keys() if keys is None else keys
        return sum(self.at(key).dim for key in keys)

    def retract(self, deltas: Dict[Key, np.ndarray]) -> "Values":
        """New Values with each variable in `deltas` moved along its chart."""
        result = Values()
        for key, value in self._values.items():
            result.insert(key, value.retract(deltas[key]) if key in deltas else value)
        return result

    def __contains__(self, key: Key) -> bool:
        return key in self._values

    def __getitem__(self, key: Key) -> Any:
        return self.at(key)

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class NoiseModel:
    """Isotropic Gaussian noise with an optional robust kernel."""

    sigma: float = 1.0
    loss_type: str = "none"
    loss_params: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not self.sigma > 0:
            raise ValueError(f"sigma must be positive, got {self.sigma}")
        # Fail early on unknown kernels
        apply_robust_loss(np.zeros(1), self.loss_type, **self.loss_params)

    def whiten(self, residual: np.ndarray) -> np.ndarray:
        return residual / self.sigma

    def robust_weights(self, residual: np.ndarray) -> np.ndarray:
        _, weights = apply_robust_loss(self.whiten(residual), self.loss_type, **self.loss_params)
        return np.sqrt(weights)

    def loss(self, residual: np.ndarray) -> float:
        rho, _ = apply_robust_loss(self.whiten(residual), self.loss_type, **self.loss_params)
        return float(np.sum(rho))

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, NoiseModel):
            return False
        if abs(self.sigma - other.sigma) > tol or self.loss_type != other.loss_type:
            return False
        if self.loss_params.keys() != other.loss_params.keys():
            return False
        return all(abs(self.loss_params[name] - other.loss_params[name]) <= tol for name in self.loss_params)

    def describe(self) -> str:
        if self.loss_type == "none":
            return f"isotropic sigma = {self.sigma}"
        return f"isotropic sigma = {self.sigma}, robust = {self.loss_type} {self.loss_params}"


class NonlinearFactor(ABC):
    """Contract every factor exposes to the optimizer."""

    def __init__(self, keys: Sequence[Key], noise_model: Optional[NoiseModel] = None):
        """Initialize factor.

        Args:
            keys: Variable identifiers this factor depends on, in order
            noise_model: Measurement noise; unit isotropic if omitted
        """
        self._keys: Tuple[Key, ...] = tuple(keys)
        self.noise_model = noise_model or NoiseModel()

    def keys(self) -> Tuple[Key, ...]:
        return self._keys

    def size(self) -> int:
        """Number of variables referenced."""
        return len(self._keys)

    @abstractmethod
    def dim(self) -> int:
        """Dimension of the residual vector."""

    @abstractmethod
    def evaluate(self, values: Values, jacobians: Optional[JacobianSlots] = None) -> np.ndarray:
        """Compute the residual h(x) - z.

        Args:
            values: Current variable estimates
            jacobians: Optional slots keyed by variable; every key present is
                filled with d(residual)/d(local perturbation of that variable)

        Returns:
            Residual vector
        """

    @abstractmethod
    def equals(self, other: object, tol: float = 1e-9) -> bool:
        """Same kind, same keys and noise, fixed data within tolerance."""

    def describe(self, label: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        keys = " ".join(key_formatter(key) for key in self._keys)
        return f"{label}  keys = {{ {keys} }}\n  noise model: {self.noise_model.describe()}"

    def print(self, label: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(self.describe(label, key_formatter))

    def _base_equals(self, other: object, tol: float) -> bool:
        return type(self) is type(other) and \
            self._keys == other._keys and \
            self.noise_model.equals(other.noise_model, tol)

    def _check_slots(self, jacobians: Optional[JacobianSlots]) -> None:
        if jacobians is None:
            return
        unknown = [key for key in jacobians if key not in self._keys]
        if unknown:
            raise KeyError(f"Jacobian requested for keys {unknown} not in factor keys {list(self._keys)}")

    def unwhitened_error(self, values: Values) -> np.ndarray:
        return self.evaluate(values)

    def whitened_error(self, values: Values) -> np.ndarray:
        residual = self.evaluate(values)
        return self.noise_model.whiten(residual) * self.noise_model.robust_weights(residual)

    def error(self, values: Values) -> float:
        """Scalar cost contributed by this factor."""
        return self.noise_model.loss(self.evaluate(values))

    def linearize(self, values: Values) -> Tuple[Dict[Key, np.ndarray], np.ndarray]:
        """Whitened Jacobian blocks per key and right-hand side b = -r."""
        jacobians: JacobianSlots = {key: None for key in self._keys}
        residual = self.evaluate(values, jacobians)

        scale = self.noise_model.robust_weights(residual) / self.noise_model.sigma
        blocks = {key: scale[:, None] * J for key, J in jacobians.items()}
        return blocks, -scale * residual


class FactorGraph:
    """Ordered collection of factors over shared variables."""

    def __init__(self, factors: Optional[Sequence[NonlinearFactor]] = None):
        self.factors: List[NonlinearFactor] = []
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: NonlinearFactor) -> None:
        if not isinstance(factor, NonlinearFactor):
            raise ValueError(f"Expected a NonlinearFactor, got {type(factor).__name__}")
        self.factors.append(factor)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[NonlinearFactor]:
        return iter(self.factors)

    def __getitem__(self, index: int) -> NonlinearFactor:
        return self.factors[index]

    def keys(self) -> List[Key]:
        """Variable keys in order of first appearance."""
        seen: Dict[Key, None] = {}
        for factor in self.factors:
            for key in factor.keys():
                seen.setdefault(key, None)
        return list(seen)

    def error(self, values: Values) -> float:
        return sum(factor.error(values) for factor in self.factors)

    def residuals(self, values: Values) -> np.ndarray:
        """Concatenated whitened residuals."""
        if not self.factors:
            return np.array([])
        return np.concatenate([factor.whitened_error(values) for factor in self.factors])

    def linearize(
        self,
        values: Values,
        ordering: Optional[Sequence[Key]] = None
    ) -> Tuple[np.ndarray, np.ndarray, List[Key]]:
        """Dense whitened system A dx = b.

        Keys missing from `ordering` are held fixed and get no columns.

        Returns:
            Tuple of (A, b, ordering)
        """
        ordering = self.keys() if ordering is None else list(ordering)

        offsets: Dict[Key, int] = {}
        n_cols = 0
        for key in ordering:
            offsets[key] = n_cols
            n_cols += values.at(key).dim

        n_rows = sum(factor.dim() for factor in self.factors)
        A = np.zeros((n_rows, n_cols))
        b = np.zeros(n_rows)

        row = 0
        for factor in self.factors:
            blocks, rhs = factor.linearize(values)
            rows = slice(row, row + factor.dim())
            b[rows] = rhs
            for key, block in blocks.items():
                if key in offsets:
                    A[rows, offsets[key]:offsets[key] + block.shape[1]] = block
            row += factor.dim()

        return A, b, ordering

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, FactorGraph) or len(self) != len(other):
            return False
        return all(f.equals(g, tol) for f, g in zip(self.factors, other.factors))

    def summary(self) -> Dict[str, Any]:
        """Summary information about the graph."""
        factor_type_counts: Dict[str, int] = {}
        for factor in self.factors:
            name = type(factor).__name__
            factor_type_counts[name] = factor_type_counts.get(name, 0) + 1

        return {
            "variables": {"total": len(self.keys())},
            "factors": {
                "total": len(self.factors),
                "total_residuals": sum(factor.dim() for factor in self.factors),
                "by_type": factor_type_counts
            }
        }
