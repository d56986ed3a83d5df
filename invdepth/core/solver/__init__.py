"""Solver modules."""

from .scipy_solver import SciPySolver, SolverOptions, SolveResult

__all__ = ["SciPySolver", "SolverOptions", "SolveResult"]
