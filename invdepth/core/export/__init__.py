"""Persistence of factor graphs."""

from .records import GraphRecord, FactorRecord, graph_to_record, graph_from_record, graph_to_json, graph_from_json

__all__ = [
    "GraphRecord",
    "FactorRecord",
    "graph_to_record",
    "graph_from_record",
    "graph_to_json",
    "graph_from_json",
]
