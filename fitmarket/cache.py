"""Time-invalidated, memory-resident cache of all entity collections.

`EntityCache` owns the three entity collections and decides when the backing
tables are fetched again:

- **Fresh**: a populated snapshot younger than the TTL is served with no I/O.
- **Stale or empty**: the next request runs a load cycle that fetches and
  parses every kind in turn, then swaps in a new snapshot in a single
  assignment. Consumers never see one kind refreshed and another left over
  from the previous cycle.
- **Loading**: while a cycle is in flight, other callers get the current
  (possibly stale or empty) snapshot immediately. They neither wait nor start
  a second fetch.
- **Failed**: if any fetch or parse raises, the previous snapshot stays in
  place and the error propagates to the caller that triggered the load.

The cache runs on asyncio. The in-flight guard is an `asyncio.Lock` that is
only ever tested, never waited on by readers, which keeps "at most one load in
flight" without turning the lock into a queue.

Typical usage:
    ```python
    cache = EntityCache(source=InMemoryTabularSource(tables), parser=RowParser(default_registry()))
    oems = await cache.get(EntityKind.OEM)
    cache.status().stale   # False until the TTL elapses
    ```
"""

import asyncio
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from fitmarket.clock import Clock, SystemClock
from fitmarket.entity import KIND_ORDER, EntityKind, EntityRecord
from fitmarket.logging import PprintLogger, setup_logging
from fitmarket.parser import RowParser
from fitmarket.sources.interfaces import Grid, SourceUnavailableError, TabularSourceInterface

DEFAULT_TTL_MS = 2 * 60 * 1000


class CacheConfig(BaseModel):
    """Configuration for the entity cache.

    Attributes:
        ttl_ms: Age in milliseconds after which a snapshot is stale.
        fetch_timeout_s: Optional per-table fetch timeout in seconds; a timeout
            fails the load cycle like any other unavailable source.
    """

    model_config = {"frozen": True}

    ttl_ms: int = Field(DEFAULT_TTL_MS, gt=0, description="Snapshot time-to-live in milliseconds")
    fetch_timeout_s: float | None = Field(None, gt=0, description="Per-table fetch timeout in seconds")

    @property
    def ttl(self) -> timedelta:
        return timedelta(milliseconds=self.ttl_ms)


class CacheSnapshot(BaseModel):
    """The three entity collections from one load cycle, plus when it finished.

    An empty snapshot (refreshed_at is None) is what the cache holds at start
    and after `EntityCache.invalidate()`.
    """

    model_config = {"frozen": True}

    collections: dict[EntityKind, tuple[EntityRecord, ...]] = Field(default_factory=dict)
    refreshed_at: datetime | None = None

    @property
    def populated(self) -> bool:
        return self.refreshed_at is not None

    def records(self, kind: EntityKind | None = None) -> list[EntityRecord]:
        """Records of one kind, or of every kind in load order."""
        if kind is not None:
            return list(self.collections.get(kind, ()))
        return [record for k in KIND_ORDER for record in self.collections.get(k, ())]

    def counts(self) -> dict[str, int]:
        return {kind.value: len(self.collections.get(kind, ())) for kind in KIND_ORDER}


class CacheStatus(BaseModel):
    """Read-only view of the cache state, as reported by `EntityCache.status()`."""

    model_config = {"frozen": True}

    populated: bool
    last_refreshed_at: datetime | None
    stale: bool
    loading: bool
    counts: dict[str, int]


def coerce_kind(kind: EntityKind | str) -> EntityKind:
    """Accept an EntityKind or its case-insensitive value.

    Raises:
        ValueError: For anything that is not one of the three kinds.
    """
    if isinstance(kind, EntityKind):
        return kind
    return EntityKind(str(kind).strip().lower())


class EntityCache:
    """Coordinates loading and serving of the entity collections.

    Construct one per process and hand it to the consumers that need it.

    Args:
        source: Provider of the backing tables.
        parser: Row parser used on every fetched grid.
        config: TTL and fetch timeout settings.
        clock: Time source for staleness checks.
        logger: Optional logger; one is created if omitted.
    """

    def __init__(
        self,
        source: TabularSourceInterface,
        parser: RowParser,
        config: CacheConfig | None = None,
        clock: Clock | None = None,
        logger: PprintLogger | None = None,
    ):
        self.source = source
        self.parser = parser
        self.config = config or CacheConfig()
        self.clock = clock or SystemClock()
        self.logger = logger or setup_logging("fitmarket.cache")
        self._snapshot = CacheSnapshot()
        self._load_lock = asyncio.Lock()
        self._hits = 0
        self._loads = 0
        self._load_failures = 0
        self._skipped_loads = 0

    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return self._load_lock.locked()

    def is_stale(self) -> bool:
        """True when the cache is empty or its snapshot has outlived the TTL."""
        refreshed_at = self._snapshot.refreshed_at
        if refreshed_at is None:
            return True
        return self.clock.now() - refreshed_at >= self.config.ttl

    async def get(self, kind: EntityKind | str | None = None, force_refresh: bool = False) -> list[EntityRecord]:
        """Return records of one kind (or all kinds), loading first if needed.

        Args:
            kind: Kind to return; None returns every kind in load order.
            force_refresh: Load even if the snapshot is still fresh.

        Raises:
            SourceUnavailableError: If a triggered load cycle cannot read a table.
            ValueError: If `kind` is not a known entity kind.
        """
        wanted = coerce_kind(kind) if kind is not None else None
        snapshot = await self.load(force_refresh=force_refresh)
        return snapshot.records(wanted)

    async def load(self, force_refresh: bool = False) -> CacheSnapshot:
        """Return the current snapshot, running a load cycle when one is due."""
        if not force_refresh and not self.loading and not self.is_stale():
            self._hits += 1
            self.logger.debug({"message": "Serving cached entities", "counts": self._snapshot.counts()})
            return self._snapshot

        if self._load_lock.locked():
            self._skipped_loads += 1
            self.logger.info(
                {
                    "message": "Load already in progress; serving current snapshot",
                    "populated": self._snapshot.populated,
                    "counts": self._snapshot.counts(),
                }
            )
            return self._snapshot

        async with self._load_lock:
            return await self._run_load_cycle()

    async def _fetch(self, kind: EntityKind) -> Grid:
        if self.config.fetch_timeout_s is None:
            return await self.source.fetch_table(kind)
        try:
            return await asyncio.wait_for(self.source.fetch_table(kind), timeout=self.config.fetch_timeout_s)
        except asyncio.TimeoutError as exc:
            raise SourceUnavailableError(
                f"timed out after {self.config.fetch_timeout_s}s fetching {kind.table_name}", kind=kind
            ) from exc

    async def _run_load_cycle(self) -> CacheSnapshot:
        self.logger.info({"message": "Loading entity tables", "tables": [k.table_name for k in KIND_ORDER]})
        collections: dict[EntityKind, tuple[EntityRecord, ...]] = {}
        try:
            for kind in KIND_ORDER:
                grid = await self._fetch(kind)
                collections[kind] = tuple(self.parser.parse_table(kind, grid))
        except Exception as exc:
            self._load_failures += 1
            self.logger.error(
                {
                    "message": "Load cycle failed; keeping previous snapshot",
                    "error": f"{type(exc).__name__}: {exc}",
                    "kept_counts": self._snapshot.counts(),
                }
            )
            raise

        self._snapshot = CacheSnapshot(collections=collections, refreshed_at=self.clock.now())
        self._loads += 1
        self.logger.info({"message": "Loaded entity tables", "counts": self._snapshot.counts()})
        return self._snapshot

    def invalidate(self) -> None:
        """Drop the snapshot. The next `get` performs a load cycle."""
        self.logger.info({"message": "Clearing entity cache", "counts": self._snapshot.counts()})
        self._snapshot = CacheSnapshot()

    def status(self) -> CacheStatus:
        """Report cache state without ever triggering a load."""
        return CacheStatus(
            populated=self._snapshot.populated,
            last_refreshed_at=self._snapshot.refreshed_at,
            stale=self.is_stale(),
            loading=self.loading,
            counts=self._snapshot.counts(),
        )

    def get_stats(self) -> dict[str, int]:
        """Counters since construction.

        Returns:
            Dictionary with:
                - "hits": requests served from a fresh snapshot
                - "loads": completed load cycles
                - "load_failures": load cycles that raised
                - "skipped_loads": requests that found a load already running
        """
        return {
            "hits": self._hits,
            "loads": self._loads,
            "load_failures": self._load_failures,
            "skipped_loads": self._skipped_loads,
        }
