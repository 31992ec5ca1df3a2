"""View projections over cached entity records.

These are pure functions: they take records that are already loaded and
return the shapes report builders, tables and dashboards consume. None of
them cache anything or perform I/O.
"""

from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, Field

from fitmarket.entity import KIND_ORDER, EntityKind, EntityRecord
from fitmarket.extraction import extract_ranking_value, resolve_path, to_number
from fitmarket.fiscal import detect_fiscal_years, fiscal_series_for

NOT_AVAILABLE = "N/A"
TOP_PERFORMER_COUNT = 5


class ViewType(str, Enum):
    DASHBOARD = "dashboard"
    REPORT_BUILDER = "report_builder"
    ENTITY_DETAIL = "entity_detail"
    REPORT_TABLE = "report_table"


class ViewOptions(BaseModel, frozen=True):
    """Filters and parameters for `MarketDataService.get_entities_for_view`.

    Attributes:
        kind: Entity kind to draw from; None means all kinds.
        field: JSON-bearing field to rank by (report builder only).
        top_n: Number of ranked entries to keep.
        selected_names: If non-empty, only entities with these names.
        parent_filter: If set, only entities whose parent company matches.
    """

    kind: EntityKind | None = None
    field: str | None = None
    top_n: int = Field(10, ge=1)
    selected_names: tuple[str, ...] = ()
    parent_filter: str | None = None


class RankedEntry(BaseModel, frozen=True):
    """One row of a ranked top-N list."""

    id: str
    name: str
    value: float
    payload: Any = None


class TableRow(BaseModel, frozen=True):
    """Flattened record for tabular reports; missing values read "N/A"."""

    id: str
    name: str
    type: str
    category: str
    total: float
    fy24: float
    fy25: float
    tier: str
    small_business: Any


def filter_records(
    records: Iterable[EntityRecord],
    selected_names: Sequence[str] = (),
    parent_filter: str | None = None,
) -> list[EntityRecord]:
    selected = set(selected_names)
    result = []
    for record in records:
        if selected and record.name not in selected:
            continue
        if parent_filter and record.parent_company != parent_filter:
            continue
        result.append(record)
    return result


def rank_and_slice(records: Iterable[EntityRecord], field_name: str, top_n: int = 10) -> list[RankedEntry]:
    """Rank records by a field's extracted value and keep the top N.

    Records whose payload is missing or whose value is zero or negative are
    dropped before sorting. Ties keep their input order.
    """
    ranked = []
    for record in records:
        payload = record.get(field_name)
        if payload is None:
            continue
        value = extract_ranking_value(payload, field_name)
        if value > 0:
            ranked.append(RankedEntry(id=record.id, name=record.name, value=value, payload=payload))
    ranked.sort(key=lambda entry: entry.value, reverse=True)
    return ranked[:top_n]


def _fiscal_amount(record: EntityRecord, year: str) -> float:
    return to_number(resolve_path(record.get("obligations"), f"fiscal_year_obligations.{year}"))


def flatten_for_table(records: Iterable[EntityRecord]) -> list[TableRow]:
    rows = []
    for record in records:
        small_business = resolve_path(record.get("small_business"), "is_small_business")
        rows.append(
            TableRow(
                id=record.id,
                name=record.name,
                type=record.kind.label,
                category=record.kind.label.upper(),
                total=record.total_obligations,
                fy24=_fiscal_amount(record, "2024"),
                fy25=_fiscal_amount(record, "2025"),
                tier=record.tier or NOT_AVAILABLE,
                small_business=NOT_AVAILABLE if small_business in (None, "") else small_business,
            )
        )
    return rows


def transform_for_dashboard(records: Iterable[EntityRecord]) -> list[dict[str, Any]]:
    """Every record field plus the derived values dashboard cards read."""
    result = []
    for record in records:
        profile = record.get("usai_profile", {})
        profile = profile if isinstance(profile, Mapping) else {}
        active_contracts = record.get("active_contracts")
        fiscal = resolve_path(record.get("obligations"), "fiscal_year_obligations")
        result.append(
            {
                **record.fields,
                "id": record.id,
                "name": record.name,
                "type": record.kind.label,
                "kind": record.kind.value,
                "total_obligations": record.total_obligations,
                "tier": record.tier,
                "has_ai_products": record.has_ai_products,
                "contract_count": len(active_contracts) if isinstance(active_contracts, Mapping) else 0,
                "fas_table_url": record.fas_table_url,
                "bic_table_url": record.bic_table_url,
                "website": record.get("website") or profile.get("website") or "",
                "linkedin": record.get("linkedin") or profile.get("linkedin") or "",
                "fiscal_year_obligations": fiscal if isinstance(fiscal, Mapping) else None,
            }
        )
    return result


def entity_names(records: Iterable[EntityRecord]) -> list[str]:
    return sorted({record.name for record in records})


def report_filters(records: Iterable[EntityRecord]) -> dict[str, list[str]]:
    """Distinct entity names and parent companies for filter dropdowns."""
    names: set[str] = set()
    parents: set[str] = set()
    for record in records:
        names.add(record.name)
        parent = record.parent_company
        if isinstance(parent, str) and parent.strip():
            parents.add(parent.strip())
    return {"entities": sorted(names), "parents": sorted(parents)}


def rankable_fields(records: Sequence[EntityRecord], json_fields: Sequence[str]) -> list[str]:
    """JSON-bearing fields with at least one positive ranking value.

    `obligations` is always listed first, even when no record has a value.
    """
    found = [
        field_name
        for field_name in json_fields
        if any(extract_ranking_value(record.get(field_name), field_name) > 0 for record in records)
    ]
    if "obligations" in found:
        found.remove("obligations")
    return ["obligations"] + found


def format_currency(value: float) -> str:
    """Abbreviate a dollar amount: $1.2B, $3.4M, $5.6K, $789."""
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.1f}B"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"${value / 1_000:.1f}K"
    return f"${value:.0f}"


def summarize_dashboard(collections: Mapping[EntityKind, Sequence[EntityRecord]]) -> dict[str, Any]:
    """Cross-kind summary: counts, obligations, tiers, AI adoption, leaders, trends.

    AI adoption percentages are rounded to one decimal and are 0.0 for a kind
    with no records. Fiscal-year trends cover the years detected in the
    obligations payloads.
    """
    overview: dict[str, int] = {"total_entities": 0}
    obligations: dict[str, float] = {}
    tiers: dict[str, dict[str, int]] = {}
    ai_adoption: dict[str, dict[str, float]] = {}
    top_performers: dict[str, list[dict[str, Any]]] = {}
    years: set[str] = set()

    for kind in KIND_ORDER:
        records = list(collections.get(kind, ()))
        overview[kind.value] = len(records)
        overview["total_entities"] += len(records)
        obligations[kind.value] = sum(record.total_obligations for record in records)

        tier_counts: dict[str, int] = {}
        for record in records:
            if record.tier:
                tier_counts[record.tier] = tier_counts.get(record.tier, 0) + 1
            years.update(detect_fiscal_years(record.get("obligations")))
        tiers[kind.value] = tier_counts

        ai_count = sum(1 for record in records if record.has_ai_products)
        ai_adoption[kind.value] = {
            "count": ai_count,
            "percent": round(ai_count / len(records) * 100, 1) if records else 0.0,
        }

        leaders = sorted(
            (record for record in records if record.total_obligations),
            key=lambda record: record.total_obligations,
            reverse=True,
        )[:TOP_PERFORMER_COUNT]
        top_performers[kind.value] = [
            {"name": record.name, "obligations": record.total_obligations, "tier": record.tier} for record in leaders
        ]

    trends: dict[str, dict[str, float]] = {year: {kind.value: 0.0 for kind in KIND_ORDER} for year in sorted(years)}
    for kind in KIND_ORDER:
        for record in collections.get(kind, ()):
            series = fiscal_series_for(record.get("obligations"), "obligations") or {}
            for year, amount in series.items():
                if year in trends:
                    trends[year][kind.value] += amount

    obligations["grand_total"] = sum(obligations[kind.value] for kind in KIND_ORDER)
    return {
        "overview": overview,
        "obligations": obligations,
        "tiers": tiers,
        "ai_adoption": ai_adoption,
        "top_performers": top_performers,
        "fiscal_year_trends": trends,
    }
