"""Fiscal-year series extraction and aggregation.

Most payloads carry their yearly amounts in one of a few top-level mappings
(``fiscal_year_obligations``, ``fiscal_years``, ``yearly_totals``,
``fiscal_year_breakdown``). Three fields instead hold a collection of
per-sub-entity summaries (top resellers, top OEMs, top funding agencies), each
with its own ``fiscal_years`` mapping; their series is the key-wise sum over
the collection.

Year keys stay strings throughout. Upstream jobs occasionally emit labels
such as ``"FY2024"`` or ``"2024-Q1"`` and those must survive aggregation.
"""

import re
from typing import Any, Iterable, Mapping

from fitmarket.entity import EntityRecord
from fitmarket.extraction import first_fiscal_mapping, to_number

DEFAULT_FISCAL_YEARS: tuple[str, ...] = ("2022", "2023", "2024", "2025")
"""Placeholder window returned when a payload carries no year data at all."""

SUMMARY_COLLECTIONS: Mapping[str, str] = {
    "reseller": "top_15_reseller_summaries",
    "fas_oem": "top_10_oem_summaries",
    "funding_agency": "top_10_agency_summaries",
}

DIRECT_SERIES_KEYS: Mapping[str, str] = {
    "bic_oem": "yearly_totals",
}

_YEAR_KEY = re.compile(r"^\d{4}$")


def _summaries(collection: Any) -> Iterable[Any]:
    if isinstance(collection, Mapping):
        return collection.values()
    if isinstance(collection, list):
        return collection
    return ()


def merge_series(target: dict[str, float], series: Mapping[str, Any]) -> dict[str, float]:
    """Add a year -> amount mapping into `target` key-wise, coercing amounts."""
    for year, amount in series.items():
        key = str(year)
        target[key] = target.get(key, 0.0) + to_number(amount)
    return target


def fiscal_series_for(payload: Any, field_name: str) -> dict[str, float] | None:
    """Return one entity's year -> amount series for a field, or None.

    Args:
        payload: The decoded JSON payload of the field.
        field_name: Semantic field name; selects the traversal.
    """
    if not isinstance(payload, Mapping) or not payload:
        return None

    collection_key = SUMMARY_COLLECTIONS.get(field_name)
    if collection_key is not None:
        collection = payload.get(collection_key)
        if not collection:
            return None
        series: dict[str, float] = {}
        for summary in _summaries(collection):
            if isinstance(summary, Mapping) and isinstance(summary.get("fiscal_years"), Mapping):
                merge_series(series, summary["fiscal_years"])
        return series

    direct_key = DIRECT_SERIES_KEYS.get(field_name)
    if direct_key is not None:
        direct = payload.get(direct_key)
        return merge_series({}, direct) if isinstance(direct, Mapping) else None

    found = first_fiscal_mapping(payload)
    return merge_series({}, found) if found is not None else None


def aggregate_fiscal_years(
    entities: Iterable[EntityRecord],
    field_name: str,
    selected_names: Iterable[str] | None = None,
) -> dict[str, float]:
    """Sum a field's fiscal-year series across entities.

    Args:
        entities: Records to aggregate.
        field_name: JSON-bearing field whose series is read.
        selected_names: Optional entity names; when non-empty only those
            entities contribute.

    Returns:
        Year label -> summed amount. Entities without a series contribute nothing.
    """
    selected = set(selected_names) if selected_names else None
    totals: dict[str, float] = {}
    for entity in entities:
        if selected is not None and entity.name not in selected:
            continue
        series = fiscal_series_for(entity.get(field_name), field_name)
        if series:
            merge_series(totals, series)
    return totals


def _year_keys(mapping: Mapping[Any, Any]) -> set[str]:
    return {str(key) for key in mapping if _YEAR_KEY.match(str(key))}


def detect_fiscal_years(payload: Any) -> list[str]:
    """List the four-digit year labels present anywhere near the top of a payload.

    Scans every top-level property whose value is a mapping, and one level
    further into nested values, collecting keys that look like years. Returns
    the sorted distinct labels, or DEFAULT_FISCAL_YEARS when none are found.
    """
    years: set[str] = set()
    if isinstance(payload, Mapping):
        for value in payload.values():
            if not isinstance(value, Mapping):
                continue
            years |= _year_keys(value)
            for nested in value.values():
                if isinstance(nested, Mapping):
                    years |= _year_keys(nested)
    return sorted(years) if years else list(DEFAULT_FISCAL_YEARS)


def extract_fiscal_year_data(payload: Any) -> Mapping[str, Any] | None:
    """Return the raw fiscal-year mapping of a payload without aggregating it.

    Checks the known top-level keys first, then the ``fiscal_years`` of any
    nested summary object.
    """
    found = first_fiscal_mapping(payload)
    if found is not None:
        return found
    if isinstance(payload, Mapping):
        for value in payload.values():
            if isinstance(value, Mapping) and isinstance(value.get("fiscal_years"), Mapping):
                return value["fiscal_years"]
    return None
