"""Serializable records for saving and restoring factor graphs."""

from typing import Dict, List, Literal, Union
from pydantic import BaseModel, Field, model_validator

from ..models.geometry import Calibration
from ..optimization.factor_graph import FactorGraph, NoiseModel
from ..optimization.inv_depth_factors import FactorOptions, InvDepthFactor3a, InvDepthFactor3b

FACTOR_KEY_COUNTS = {
    "inv_depth_3a": 2,
    "inv_depth_3b": 3,
}


class NoiseModelRecord(BaseModel):
    """Stored noise model."""

    sigma: float = Field(default=1.0, gt=0, description="Isotropic pixel sigma")
    loss_type: Literal["none", "huber", "cauchy"] = Field(default="none", description="Robust kernel")
    loss_params: Dict[str, float] = Field(default_factory=dict)


class FactorRecord(BaseModel):
    """Stored inverse-depth factor."""

    kind: Literal["inv_depth_3a", "inv_depth_3b"]
    keys: List[Union[int, str]] = Field(description="Variable keys in construction order")
    measured: List[float] = Field(min_length=2, max_length=2, description="Pixel [u, v]")
    calibration: int = Field(ge=0, description="Index into the graph's calibration table")
    noise: NoiseModelRecord = Field(default_factory=NoiseModelRecord)
    jacobian_delta: float = Field(default=1e-5, gt=0)
    log_cheirality: bool = Field(default=True, description="Log landmarks that fall behind the camera")

    @model_validator(mode="after")
    def validate_key_count(self):
        expected = FACTOR_KEY_COUNTS[self.kind]
        if len(self.keys) != expected:
            raise ValueError(f"{self.kind} requires {expected} keys, got {len(self.keys)}")
        return self


class GraphRecord(BaseModel):
    """Stored graph: calibrations are listed once and shared by index."""

    version: Literal[1] = 1
    calibrations: List[Calibration] = Field(default_factory=list)
    factors: List[FactorRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_calibration_indices(self):
        for i, factor in enumerate(self.factors):
            if factor.calibration >= len(self.calibrations):
                raise ValueError(f"Factor {i} references unknown calibration {factor.calibration}")
        return self


def graph_to_record(graph: FactorGraph) -> GraphRecord:
    """Convert a graph of inverse-depth factors into a record.

    Factors sharing one Calibration instance share one table entry.
    """
    calibrations: List[Calibration] = []
    index_by_id: Dict[int, int] = {}
    factors = []

    for factor in graph:
        if isinstance(factor, InvDepthFactor3a):
            kind = "inv_depth_3a"
        elif isinstance(factor, InvDepthFactor3b):
            kind = "inv_depth_3b"
        else:
            raise ValueError(f"Cannot serialize factor of type {type(factor).__name__}")

        calibration = factor.calibration
        if id(calibration) not in index_by_id:
            index_by_id[id(calibration)] = len(calibrations)
            calibrations.append(calibration)

        noise = factor.noise_model
        factors.append(FactorRecord(
            kind=kind,
            keys=list(factor.keys()),
            measured=factor.measured.tolist(),
            calibration=index_by_id[id(calibration)],
            noise=NoiseModelRecord(
                sigma=noise.sigma,
                loss_type=noise.loss_type,
                loss_params=dict(noise.loss_params)
            ),
            jacobian_delta=factor.options.jacobian_delta,
            log_cheirality=factor.options.log_cheirality
        ))

    return GraphRecord(calibrations=calibrations, factors=factors)


def graph_from_record(record: GraphRecord) -> FactorGraph:
    """Rebuild a graph; each calibration table entry becomes one shared instance."""
    graph = FactorGraph()

    for factor_record in record.factors:
        calibration = record.calibrations[factor_record.calibration]
        noise_model = NoiseModel(
            sigma=factor_record.noise.sigma,
            loss_type=factor_record.noise.loss_type,
            loss_params=dict(factor_record.noise.loss_params)
        )
        options = FactorOptions(
            jacobian_delta=factor_record.jacobian_delta,
            log_cheirality=factor_record.log_cheirality
        )

        if factor_record.kind == "inv_depth_3a":
            factor = InvDepthFactor3a(
                *factor_record.keys, factor_record.measured, calibration, noise_model, options
            )
        else:
            factor = InvDepthFactor3b(
                *factor_record.keys, factor_record.measured, calibration, noise_model, options
            )
        graph.add(factor)

    return graph


def graph_to_json(graph: FactorGraph, indent: int = 2) -> str:
    return graph_to_record(graph).model_dump_json(indent=indent)


def graph_from_json(data: str) -> FactorGraph:
    return graph_from_record(GraphRecord.model_validate_json(data))
