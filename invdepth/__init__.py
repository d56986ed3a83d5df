"""invdepth - inverse-depth reprojection factors for factor-graph optimization.

Landmarks parameterized as (theta, phi, rho) relative to an anchor pose,
observed by calibrated pinhole cameras.
"""

__version__ = "0.1.0"

# Geometry
from .core.models.geometry import Pose3, InverseDepthLandmark, Calibration
from .core.math.inverse_depth import (
    InvalidInverseDepthError,
    inverse_depth_to_cartesian,
    cartesian_to_inverse_depth,
)

# Optimization
from .core.optimization.factor_graph import FactorGraph, NoiseModel, Values, symbol
from .core.optimization.inv_depth_factors import InvDepthFactor3a, InvDepthFactor3b, FactorOptions
from .core.solver.scipy_solver import SciPySolver, SolverOptions, SolveResult

# Persistence
from .core.export.records import graph_to_json, graph_from_json

__all__ = [
    # Version
    "__version__",
    # Geometry
    "Pose3",
    "InverseDepthLandmark",
    "Calibration",
    "InvalidInverseDepthError",
    "inverse_depth_to_cartesian",
    "cartesian_to_inverse_depth",
    # Optimization
    "FactorGraph",
    "NoiseModel",
    "Values",
    "symbol",
    "InvDepthFactor3a",
    "InvDepthFactor3b",
    "FactorOptions",
    "SciPySolver",
    "SolverOptions",
    "SolveResult",
    # Persistence
    "graph_to_json",
    "graph_from_json",
]
