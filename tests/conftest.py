"""Test fixtures and fake collaborators for the fitmarket core.

This module provides:
- Row and grid builders that place semantic fields at their registered
  column positions, JSON-encoding payload fields the way the backing tables
  store them
- CountingTabularSource, an in-memory source that counts fetches per kind
  and can be held mid-fetch or made to fail
- Pytest fixtures for the registry, parser, manual clock, cache and service
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import pytest

from fitmarket.access import InMemoryAccessLogger
from fitmarket.cache import CacheConfig, EntityCache
from fitmarket.clock import ManualClock
from fitmarket.entity import KIND_ORDER, EntityKind, EntityRecord
from fitmarket.parser import RowParser
from fitmarket.schema import SchemaRegistry, default_registry
from fitmarket.service import MarketDataService
from fitmarket.sources.interfaces import Grid
from fitmarket.sources.memory import InMemoryTabularSource

REGISTRY = default_registry()

# Cells that decode to values the parser must absorb rather than raise on.
DEEPLY_NESTED_CELL = "[" * 100_000 + "]" * 100_000
OVERSIZED_TOTAL_CELL = '{"total_obligated": 1' + "0" * 400 + "}"


def header_row(kind: EntityKind) -> list[str]:
    """Header cells named after the semantic fields, in column order."""
    columns = REGISTRY.fields_for(kind)
    row = [""] * max(columns.values())
    for field_name, position in columns.items():
        row[position - 1] = field_name
    return row


def make_row(kind: EntityKind, name: Any, **fields: Any) -> list[Any]:
    """Build a raw row with `fields` at their registered positions.

    Dict and list values for JSON-bearing fields are encoded to JSON text;
    every other value is stored as given. Unspecified cells are blank.
    """
    columns = REGISTRY.fields_for(kind)
    row: list[Any] = [""] * max(columns.values())
    row[columns["name"] - 1] = name
    for field_name, value in fields.items():
        if REGISTRY.is_json_field(field_name) and isinstance(value, (dict, list)):
            value = json.dumps(value)
        row[columns[field_name] - 1] = value
    return row


def make_grid(kind: EntityKind, *rows: list[Any]) -> Grid:
    return [header_row(kind), *[list(row) for row in rows]]


def obligations(total: float | None = None, **years: float) -> dict[str, Any]:
    """Obligations payload; keyword names like fy2024=5 become year "2024"."""
    payload: dict[str, Any] = {}
    if total is not None:
        payload["total_obligated"] = total
    if years:
        payload["fiscal_year_obligations"] = {key.removeprefix("fy"): value for key, value in years.items()}
    return payload


def sample_tables() -> dict[str, Grid]:
    """Small but representative tables for all three kinds."""
    return {
        EntityKind.AGENCY.table_name: make_grid(
            EntityKind.AGENCY,
            make_row(
                EntityKind.AGENCY,
                "Department of Examples",
                agency_code="A100",
                parent_company="Executive Branch",
                obligations=obligations(500.0, fy2024=200.0, fy2025=300.0),
                sum_tier={"tier": "Tier 2", "summary": {"total_all_obligations": 450.0}},
            ),
            make_row(EntityKind.AGENCY, "   "),
            make_row(
                EntityKind.AGENCY,
                "Bureau of Samples",
                agency_code="A200",
                parent_company="Executive Branch",
                obligations=obligations(fy2023=40.0, fy2024=60.0),
            ),
        ),
        EntityKind.OEM.table_name: make_grid(
            EntityKind.OEM,
            make_row(
                EntityKind.OEM,
                "Acme Devices",
                manufacturer_id="D-1",
                parent_company="Acme Holdings",
                obligations=obligations(900.0, fy2024=900.0),
                ai_product={"Vision Kit": {"total": 12.0}},
                one_gov_tier={"mode_tier": "BIC", "average_obligations_per_year": 300.0},
                reseller={
                    "summary": {"total_top_15_resellers": 700.0},
                    "top_15_reseller_summaries": {
                        "Reseller One": {"fiscal_years": {"2024": 400.0}},
                        "Reseller Two": {"fiscal_years": {"2024": 300.0, "2025": 50.0}},
                    },
                },
                fas_data_table=" https://tables.example/acme ",
                bic_data_table="None",
            ),
            make_row(
                EntityKind.OEM,
                "Globex Hardware",
                manufacturer_id="D-2",
                parent_company="Globex",
                obligations=obligations(100.0),
                reseller={"summary": {"total_all_resellers": 80.0}},
            ),
        ),
        EntityKind.VENDOR.table_name: make_grid(
            EntityKind.VENDOR,
            make_row(
                EntityKind.VENDOR,
                "Initech Solutions",
                uei="UEI123",
                obligations=obligations(250.0),
                small_business={"is_small_business": "Yes", "summary": {"total_all_obligations": 250.0}},
            ),
        ),
    }


class CountingTabularSource(InMemoryTabularSource):
    """In-memory source that records fetches and can stall or fail on demand.

    Attributes:
        fetch_counts: Number of fetch_table calls per kind.
        gate: When set to an asyncio.Event, every fetch waits on it first.
        fail_with: When set, every fetch raises this exception.
    """

    def __init__(self, tables: dict[str, Grid] | None = None) -> None:
        super().__init__(tables)
        self.fetch_counts: dict[EntityKind, int] = {kind: 0 for kind in KIND_ORDER}
        self.gate: asyncio.Event | None = None
        self.fail_with: Exception | None = None
        self.fetch_started = asyncio.Event()

    async def fetch_table(self, kind: EntityKind) -> Grid:
        self.fetch_counts[kind] += 1
        self.fetch_started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return await super().fetch_table(kind)

    @property
    def total_fetches(self) -> int:
        return sum(self.fetch_counts.values())


def make_record(name: str, kind: EntityKind = EntityKind.OEM, row_index: int = 1, **fields: Any) -> EntityRecord:
    """Parse a single row built from `fields` into a record."""
    record = RowParser(REGISTRY).parse_row(kind, make_row(kind, name, **fields), row_index)
    assert record is not None
    return record


@pytest.fixture
def registry() -> SchemaRegistry:
    return REGISTRY


@pytest.fixture
def parser(registry: SchemaRegistry) -> RowParser:
    return RowParser(registry)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def source() -> CountingTabularSource:
    return CountingTabularSource(sample_tables())


@pytest.fixture
def cache(source: CountingTabularSource, parser: RowParser, clock: ManualClock) -> EntityCache:
    return EntityCache(source=source, parser=parser, config=CacheConfig(ttl_ms=120_000), clock=clock)


@pytest.fixture
def access_logger() -> InMemoryAccessLogger:
    return InMemoryAccessLogger()


@pytest.fixture
def service(
    cache: EntityCache,
    registry: SchemaRegistry,
    access_logger: InMemoryAccessLogger,
    clock: ManualClock,
) -> MarketDataService:
    return MarketDataService(cache=cache, registry=registry, access_logger=access_logger, clock=clock)
