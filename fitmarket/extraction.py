"""Semantic extraction of a single ranking value from a JSON payload.

The JSON-bearing columns are written by independent upstream aggregation jobs,
and each job shapes its payload differently. Some nest a ``summary`` object
whose rollup names depend on the column ("total_top_10_departments" versus
"total_all_departments"), others expose a flat total.

Rather than one generic rule, every field has an extraction rule: an ordered
tuple of dotted property paths. The first path that resolves to a present,
truthy, numeric value wins. When a field has no rule, or none of its paths
match, a generic fallback chain is tried instead. Absent payloads and payloads
that match nothing yield 0.0, so "no data" and "zero" are indistinguishable
here; ranking drops non-positive values downstream.

Example:
    ```python
    extract_ranking_value({"summary": {"total_top_10_departments": 42}}, "funding_department")
    # 42.0
    extract_ranking_value({"total": 7}, "some_unruled_field")
    # 7.0
    ```
"""

import math
import re
from typing import Any, Mapping

FISCAL_YEAR_KEYS: tuple[str, ...] = (
    "fiscal_year_obligations",
    "fiscal_years",
    "yearly_totals",
    "fiscal_year_breakdown",
)

EXTRACTION_RULES: Mapping[str, tuple[str, ...]] = {
    "obligations": ("total_obligated",),
    "small_business": ("summary.total_all_obligations",),
    "sum_tier": ("summary.total_all_obligations",),
    "sum_type": ("summary.total_all_obligations",),
    "contract_vehicle": ("summary.total_all_obligations",),
    "funding_department": ("summary.total_all_departments", "summary.total_top_10_departments"),
    "discount": ("summary.total_obligations_with_discounts",),
    "top_ref_piid": ("total_obligations",),
    "top_piid": ("total_obligations",),
    "active_contracts": ("summary.total_obligations",),
    "discount_offerings": ("summary.grand_total_all_obligations",),
    "ai_product": ("summary.grand_total_obligations",),
    "ai_category": ("summary.grand_total_obligations",),
    "top_bic_products": ("summary.total_all_products", "summary.total_top_25_products"),
    "reseller": ("summary.total_top_15_resellers", "summary.total_all_resellers"),
    "bic_reseller": ("summary.total_top_15_resellers", "summary.total_all_resellers"),
    "bic_oem": ("summary.total_top_15_manufacturers", "summary.total_all_manufacturers"),
    "fas_oem": ("summary.total_top_10_oems", "summary.total_all_oems"),
    "funding_agency": ("summary.total_top_10_agencies", "summary.total_all_agencies"),
    "bic_top_products_per_agency": ("summary.grand_total_all_products",),
    "one_gov_tier": ("average_obligations_per_year",),
}

GENERIC_FALLBACK_PATHS: tuple[str, ...] = (
    "total_obligated",
    "total_obligations",
    "summary.total_all_obligations",
    "summary.grand_total_obligations",
    "total",
    "sum",
)

# Leading numeric prefix, the way lenient spreadsheet number parsing reads "12.5M".
_NUMBER_PREFIX = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def to_number(value: Any) -> float:
    """Coerce a cell or payload value to a float, defaulting to 0.0.

    Numbers pass through (NaN, infinities and integers too large for a float
    become 0.0). Strings are read by their leading numeric prefix, so
    ``"12.5"`` and ``"12.5 USD"`` both give 12.5. Booleans, None, containers
    and unparsable strings give 0.0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return 0.0
        number = float(match.group(0))
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def resolve_path(payload: Any, path: str) -> Any:
    """Follow a dotted property path through nested mappings.

    Returns None as soon as a step is missing or the current value is not a
    mapping.
    """
    current = payload
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def sum_numeric_values(mapping: Any) -> float:
    """Sum the values of a mapping, counting non-numeric entries as 0."""
    if not isinstance(mapping, Mapping):
        return 0.0
    return sum(to_number(value) for value in mapping.values())


def first_fiscal_mapping(payload: Any) -> Mapping[str, Any] | None:
    """Return the first present fiscal-year mapping among the known keys."""
    if not isinstance(payload, Mapping):
        return None
    for key in FISCAL_YEAR_KEYS:
        candidate = payload.get(key)
        if isinstance(candidate, Mapping):
            return candidate
    return None


def _first_match(payload: Any, paths: tuple[str, ...]) -> float | None:
    for path in paths:
        value = resolve_path(payload, path)
        if not value:
            continue
        number = to_number(value)
        if number:
            return number
    return None


def generic_ranking_value(payload: Any) -> float:
    """Apply the generic fallback chain to a payload."""
    matched = _first_match(payload, GENERIC_FALLBACK_PATHS)
    if matched is not None:
        return matched
    fiscal = first_fiscal_mapping(payload)
    if fiscal is not None:
        return sum_numeric_values(fiscal)
    return 0.0


def extract_ranking_value(payload: Any, field_name: str) -> float:
    """Return the representative number for a field's payload.

    Args:
        payload: Decoded JSON payload (mapping), a bare number, or None.
        field_name: Semantic name of the field that produced the payload;
            selects the extraction rule.

    Returns:
        The first matching candidate of the field's rule, else the generic
        fallback result, else 0.0.
    """
    if payload is None or isinstance(payload, bool):
        return 0.0
    if isinstance(payload, (int, float)):
        return to_number(payload)
    if not isinstance(payload, Mapping) or not payload:
        return 0.0

    rule = EXTRACTION_RULES.get(field_name)
    if rule:
        matched = _first_match(payload, rule)
        if matched is not None:
            return matched
    return generic_ranking_value(payload)
