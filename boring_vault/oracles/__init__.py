"""Oracle cranker registry."""

from __future__ import annotations

import importlib
from typing import Dict, Type

from ..accounts import OracleSource
from .base import CrankResult, OracleCranker


def _load_cranker(module_name: str, class_name: str) -> Type[OracleCranker]:
    module = importlib.import_module(f".{module_name}", __name__)
    cls = getattr(module, class_name)
    if not issubclass(cls, OracleCranker):
        raise TypeError(f"{class_name} must extend OracleCranker")
    return cls


CRANKER_TYPES: Dict[str, Type[OracleCranker]] = {
    "static": _load_cranker("static", "StaticCranker"),
    "gateway": _load_cranker("gateway", "GatewayCranker"),
    "pyth": _load_cranker("pyth", "PythCranker"),
}

# Cranker kind serving each on-chain oracle source
ORACLE_SOURCE_CRANKERS: Dict[OracleSource, str] = {
    OracleSource.SWITCHBOARD_V2: "gateway",
    OracleSource.PYTH: "pyth",
    OracleSource.PYTH_V2: "pyth",
}


def get_cranker(kind: str, **options) -> OracleCranker:
    """Instantiate a registered cranker by kind name."""
    cls = CRANKER_TYPES.get(str(kind).strip().lower())
    if cls is None:
        raise ValueError(f"unknown cranker type: {kind or 'unset'}")
    return cls(**options)


def cranker_for_source(source: OracleSource, **options) -> OracleCranker:
    """Instantiate the cranker kind registered for an asset's oracle source."""
    kind = ORACLE_SOURCE_CRANKERS.get(OracleSource(source))
    if kind is None:
        raise ValueError(f"no cranker registered for oracle source {source!r}")
    return get_cranker(kind, **options)


__all__ = [
    "CRANKER_TYPES",
    "ORACLE_SOURCE_CRANKERS",
    "CrankResult",
    "OracleCranker",
    "cranker_for_source",
    "get_cranker",
]
