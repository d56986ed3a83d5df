"""SciPy-based nonlinear least squares over tangent-space increments."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from scipy.optimize import least_squares

from ..optimization.factor_graph import FactorGraph, Key, Values

logger = logging.getLogger(__name__)


@dataclass
class SolverOptions:
    """Options for the SciPy solver."""

    method: str = "trf"  # "trf", "dogbox", "lm"
    max_iterations: int = 20  # relinearizations
    max_evaluations: int = 100  # per relinearization
    tolerance: float = 1e-10
    gradient_tolerance: float = 1e-10
    parameter_tolerance: float = 1e-10
    step_tolerance: float = 1e-9
    verbose: int = 0


class SolveResult(BaseModel):
    """Results from an optimization solve."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = Field(description="Whether solve succeeded")
    iterations: int = Field(description="Number of relinearizations performed")
    initial_cost: float = Field(description="Cost before optimizing")
    final_cost: float = Field(description="Cost after optimizing")
    convergence_reason: str = Field(description="Reason for convergence/termination")
    computation_time: Optional[float] = Field(default=None, description="Solve time in seconds")
    values: Optional[Values] = Field(default=None, exclude=True, description="Optimized estimates")

    @field_validator('initial_cost', 'final_cost')
    @classmethod
    def validate_cost(cls, v):
        """Keep costs JSON serializable."""
        if math.isinf(v) or math.isnan(v):
            return 1e10
        return v


class SciPySolver:
    """Relinearizing solver driving scipy.optimize.least_squares."""

    def __init__(self, options: Optional[SolverOptions] = None):
        self.options = options or SolverOptions()
        self.cost_history: List[float] = []

    def solve(
        self,
        graph: FactorGraph,
        values: Values,
        fixed_keys: Iterable[Key] = ()
    ) -> SolveResult:
        """Optimize the free variables of `graph` starting from `values`.

        Args:
            graph: Factor graph to optimize
            values: Initial estimates for every key in the graph
            fixed_keys: Variables held constant (e.g. to fix the gauge)

        Returns:
            Solve result carrying the optimized Values
        """
        start_time = time.time()
        fixed = set(fixed_keys)
        free_keys = [key for key in graph.keys() if key not in fixed]
        initial_cost = graph.error(values)
        self.cost_history = [initial_cost]

        if not free_keys:
            return SolveResult(
                success=True,
                iterations=0,
                initial_cost=initial_cost,
                final_cost=initial_cost,
                convergence_reason="No free variables",
                computation_time=time.time() - start_time,
                values=values
            )

        current = values
        reason = "Maximum iterations reached"
        iteration = 0
        try:
            for iteration in range(1, self.options.max_iterations + 1):
                dx = self._solve_increment(graph, current, free_keys)
                current = current.retract(self._unpack(dx, current, free_keys))

                cost = graph.error(current)
                self.cost_history.append(cost)
                logger.debug(f"Iteration {iteration}: cost {cost:.6g}, |dx| {np.linalg.norm(dx):.3g}")

                if np.linalg.norm(dx) < self.options.step_tolerance:
                    reason = "Increment below tolerance"
                    break
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.error(f"Solve failed at iteration {iteration}: {e}")
            return SolveResult(
                success=False,
                iterations=iteration,
                initial_cost=initial_cost,
                final_cost=float("inf"),
                convergence_reason=f"Solver error: {e}",
                computation_time=time.time() - start_time,
                values=current
            )

        final_cost = graph.error(current)
        logger.info(f"Solved in {iteration} iterations: cost {initial_cost:.6g} -> {final_cost:.6g}")

        return SolveResult(
            success=True,
            iterations=iteration,
            initial_cost=initial_cost,
            final_cost=final_cost,
            convergence_reason=reason,
            computation_time=time.time() - start_time,
            values=current
        )

    def _solve_increment(self, graph: FactorGraph, linearization_point: Values, free_keys: List[Key]) -> np.ndarray:
        """Minimize over a tangent-space increment around the linearization point.

        The Jacobian handed to least_squares is the factors' right-perturbation
        Jacobian at retract(linearization_point, dx). Away from dx = 0 it is only
        an approximation of d(residual)/d(dx), off by the right Jacobian of the
        SE(3) exponential, so the outer loop relinearizes at each accepted point.
        """

        def residual_function(dx: np.ndarray) -> np.ndarray:
            return graph.residuals(linearization_point.retract(self._unpack(dx, linearization_point, free_keys)))

        def jacobian_function(dx: np.ndarray) -> np.ndarray:
            point = linearization_point.retract(self._unpack(dx, linearization_point, free_keys))
            A, _, _ = graph.linearize(point, free_keys)
            return A

        result = least_squares(
            fun=residual_function,
            x0=np.zeros(linearization_point.dim(free_keys)),
            jac=jacobian_function,
            method=self.options.method,
            ftol=self.options.tolerance,
            xtol=self.options.parameter_tolerance,
            gtol=self.options.gradient_tolerance,
            max_nfev=self.options.max_evaluations,
            verbose=self.options.verbose
        )
        return result.x

    @staticmethod
    def _unpack(dx: np.ndarray, values: Values, keys: List[Key]) -> Dict[Key, np.ndarray]:
        deltas = {}
        offset = 0
        for key in keys:
            dim = values.at(key).dim
            deltas[key] = dx[offset:offset + dim]
            offset += dim
        if offset != len(dx):
            raise ValueError(f"Increment size mismatch: {offset} vs {len(dx)}")
        return deltas
