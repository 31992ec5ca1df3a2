"""
FIT Market data core - cached entity tables with semantic JSON extraction.

Agency, OEM and Vendor tables share one wide row layout in which most cells
hold JSON payloads written by independent aggregation jobs. This package
loads those tables into a time-invalidated in-memory cache and turns the
payloads into comparable numbers: a single ranking value per field, and
fiscal-year series that can be summed across entities.

The service layer is imported lazily so that the pure extraction helpers can
be used without pulling in the cache and its source providers:

    # Pure helpers, no cache machinery:
    from fitmarket import extract_ranking_value, aggregate_fiscal_years

    # Loaded on first access:
    from fitmarket import MarketDataService, build_service
"""

from typing import TYPE_CHECKING

from fitmarket.entity import EntityKind, EntityRecord
from fitmarket.extraction import EXTRACTION_RULES, extract_ranking_value
from fitmarket.fiscal import aggregate_fiscal_years, detect_fiscal_years
from fitmarket.parser import RowParser
from fitmarket.schema import SchemaRegistry, default_registry

if TYPE_CHECKING:
    from fitmarket.cache import CacheConfig, CacheStatus, EntityCache
    from fitmarket.service import MarketDataService, build_service

__all__ = [
    "EntityKind",
    "EntityRecord",
    "EXTRACTION_RULES",
    "extract_ranking_value",
    "aggregate_fiscal_years",
    "detect_fiscal_years",
    "RowParser",
    "SchemaRegistry",
    "default_registry",
    "CacheConfig",
    "CacheStatus",
    "EntityCache",
    "MarketDataService",
    "build_service",
]

__version__ = "0.1.0"

_LAZY = {
    "CacheConfig": "fitmarket.cache",
    "CacheStatus": "fitmarket.cache",
    "EntityCache": "fitmarket.cache",
    "MarketDataService": "fitmarket.service",
    "build_service": "fitmarket.service",
}


def __getattr__(name: str):
    """Lazy import for the cache and service layers."""
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
