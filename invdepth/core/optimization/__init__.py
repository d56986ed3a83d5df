"""Factor graph and inverse-depth factors."""

from .factor_graph import FactorGraph, NonlinearFactor, NoiseModel, Values, symbol
from .inv_depth_factors import InvDepthFactor3a, InvDepthFactor3b, FactorOptions

__all__ = [
    "FactorGraph",
    "NonlinearFactor",
    "NoiseModel",
    "Values",
    "symbol",
    "InvDepthFactor3a",
    "InvDepthFactor3b",
    "FactorOptions",
]
