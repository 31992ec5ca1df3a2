"""Programmatic surface over the entity cache and the extraction layer.

`MarketDataService` is what report generators, dashboards and exporters talk
to. It delegates loading to an `EntityCache`, extraction and aggregation to
the pure modules, and tells the access logger about entity lookups.

Example usage:
    ```python
    service = build_service(load_market_config())

    top = await service.get_entities_for_view(
        ViewType.REPORT_BUILDER,
        ViewOptions(kind=EntityKind.OEM, field="reseller", top_n=10),
    )
    trends = await service.get_fiscal_year_trends(EntityKind.AGENCY, "obligations")
    service.get_cache_status().stale
    ```
"""

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from fitmarket.access import AccessEvent, AccessLoggerInterface, notify_access
from fitmarket.cache import CacheStatus, EntityCache, coerce_kind
from fitmarket.clock import Clock, SystemClock
from fitmarket.config import MarketConfig
from fitmarket.entity import KIND_ORDER, EntityKind, EntityRecord
from fitmarket.extraction import extract_ranking_value
from fitmarket.fiscal import aggregate_fiscal_years
from fitmarket.logging import setup_logging
from fitmarket.parser import RowParser
from fitmarket.schema import SchemaRegistry, default_registry
from fitmarket.sources.interfaces import TabularSourceInterface
from fitmarket.sources.json_file import JsonFileTabularSource
from fitmarket.views import (
    ViewOptions,
    ViewType,
    entity_names,
    filter_records,
    flatten_for_table,
    rank_and_slice,
    rankable_fields,
    report_filters,
    summarize_dashboard,
    transform_for_dashboard,
)


class MarketDataService(BaseModel):
    """Entry point for consumers of the cached entity data.

    Attributes:
        cache: The process-wide entity cache.
        registry: Schema registry the cache's parser was built with.
        access_logger: Optional sink notified of entity lookups.
        clock: Time source for access events.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cache: EntityCache
    registry: SchemaRegistry
    access_logger: AccessLoggerInterface | None = None
    clock: Clock = Field(default_factory=SystemClock)

    async def get_entities(
        self, kind: EntityKind | str | None = None, force_refresh: bool = False
    ) -> list[EntityRecord]:
        """Records of one kind, or of all kinds in Agency, OEM, Vendor order."""
        return await self.cache.get(kind, force_refresh=force_refresh)

    async def get_agencies(self, force_refresh: bool = False) -> list[EntityRecord]:
        return await self.cache.get(EntityKind.AGENCY, force_refresh=force_refresh)

    async def get_oems(self, force_refresh: bool = False) -> list[EntityRecord]:
        return await self.cache.get(EntityKind.OEM, force_refresh=force_refresh)

    async def get_vendors(self, force_refresh: bool = False) -> list[EntityRecord]:
        return await self.cache.get(EntityKind.VENDOR, force_refresh=force_refresh)

    async def get_entity(
        self, name: str, kind: EntityKind | str | None = None, accessed_by: str | None = None
    ) -> EntityRecord | None:
        """Look up one entity by display name and record the access.

        The access event is sent whether or not the entity exists; a failing
        access logger never affects the result.
        """
        wanted = name.strip()
        match = next((record for record in await self.get_entities(kind) if record.name == wanted), None)
        view = match.kind.label if match is not None else (coerce_kind(kind).label if kind is not None else "All")
        await notify_access(
            self.access_logger,
            AccessEvent.for_subject(wanted, view=view, timestamp=self.clock.now(), accessed_by=accessed_by),
        )
        return match

    async def log_view_access(self, view: str, accessed_by: str | None = None) -> bool:
        """Record that a view was opened. Returns whether the event was stored."""
        event = AccessEvent.for_subject(view, view=view, timestamp=self.clock.now(), accessed_by=accessed_by)
        return await notify_access(self.access_logger, event)

    async def get_entities_for_view(self, view_type: ViewType | str, options: ViewOptions | None = None) -> list[Any]:
        """Filter cached entities and project them for a consumer view.

        Args:
            view_type: Which projection to apply.
            options: Kind, selection and ranking parameters.

        Returns:
            Dashboard dicts, ranked entries, table rows, or the records
            themselves for the detail view.
        """
        options = options or ViewOptions()
        view_type = ViewType(view_type)
        records = filter_records(
            await self.get_entities(options.kind),
            selected_names=options.selected_names,
            parent_filter=options.parent_filter,
        )

        if view_type is ViewType.DASHBOARD:
            return transform_for_dashboard(records)
        if view_type is ViewType.REPORT_BUILDER:
            if not options.field or not records:
                return []
            return rank_and_slice(records, options.field, options.top_n)
        if view_type is ViewType.REPORT_TABLE:
            return flatten_for_table(records)
        return records

    async def refresh_cache(self) -> CacheStatus:
        """Force a load cycle now; on failure the previous snapshot is kept."""
        await self.cache.load(force_refresh=True)
        return self.cache.status()

    def clear_cache(self) -> None:
        self.cache.invalidate()

    def get_cache_status(self) -> CacheStatus:
        return self.cache.status()

    def extract_ranking_value(self, payload: Any, field_name: str) -> float:
        return extract_ranking_value(payload, field_name)

    def aggregate_fiscal_years(
        self,
        entities: Iterable[EntityRecord],
        field_name: str,
        selected_names: Iterable[str] | None = None,
    ) -> dict[str, float]:
        return aggregate_fiscal_years(entities, field_name, selected_names)

    async def get_fiscal_year_trends(
        self,
        kind: EntityKind | str | None,
        field_name: str,
        selected_names: Iterable[str] | None = None,
    ) -> dict[str, float]:
        """Load (through the cache) and aggregate a field's fiscal-year series."""
        return aggregate_fiscal_years(await self.get_entities(kind), field_name, selected_names)

    async def get_summary_dashboard(self) -> dict[str, Any]:
        snapshot = await self.cache.load()
        return summarize_dashboard({kind: snapshot.records(kind) for kind in KIND_ORDER})

    async def get_entity_names(self, kind: EntityKind | str | None = None) -> list[str]:
        return entity_names(await self.get_entities(kind))

    async def get_report_filters(self, kind: EntityKind | str | None = None) -> dict[str, list[str]]:
        return report_filters(await self.get_entities(kind))

    async def get_rankable_fields(self, kind: EntityKind | str = EntityKind.AGENCY) -> list[str]:
        """JSON-bearing fields that can rank at least one entity of `kind`."""
        wanted = coerce_kind(kind)
        return rankable_fields(await self.get_entities(wanted), self.registry.ordered_json_fields(wanted))


def build_service(
    config: MarketConfig | None = None,
    source: TabularSourceInterface | None = None,
    access_logger: AccessLoggerInterface | None = None,
    clock: Clock | None = None,
    registry: SchemaRegistry | None = None,
) -> MarketDataService:
    """Wire a MarketDataService from configuration.

    Args:
        config: Loaded configuration; defaults are used if omitted.
        source: Tabular source; a JsonFileTabularSource over
            `config.source_file` is created if omitted.
        access_logger: Optional access event sink.
        clock: Time source shared by the cache and access events.
        registry: Schema registry; the standard layout if omitted.

    Raises:
        ValueError: If no source is given and the config names no source file.
    """
    config = config or MarketConfig()
    if source is None:
        if config.source_file is None:
            raise ValueError("no tabular source given and no [source] file configured")
        source = JsonFileTabularSource(config.source_file)
    registry = registry or default_registry()
    clock = clock or SystemClock()
    cache = EntityCache(
        source=source,
        parser=RowParser(registry, logger=setup_logging("fitmarket.parser", config.log_level)),
        config=config.cache,
        clock=clock,
        logger=setup_logging("fitmarket.cache", config.log_level),
    )
    return MarketDataService(cache=cache, registry=registry, access_logger=access_logger, clock=clock)
