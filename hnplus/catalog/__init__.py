"""Pedigree sale catalog generation."""

from hnplus.catalog.generator import CatalogDocument, CatalogGenerator
from hnplus.catalog.run_state import CatalogRunLock, CatalogTelemetry, RunStateStore

__all__ = [
    "CatalogDocument",
    "CatalogGenerator",
    "CatalogRunLock",
    "CatalogTelemetry",
    "RunStateStore",
]
