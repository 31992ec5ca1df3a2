"""In-memory tabular source for tests, demos and embedding callers.

Tables are held as plain lists keyed by table name, so a caller can hand over
grids it already read from somewhere else.
"""

import copy
from typing import Any, Mapping, Sequence

from fitmarket.entity import EntityKind
from fitmarket.sources.interfaces import Grid, SourceUnavailableError, TabularSourceInterface


class InMemoryTabularSource(TabularSourceInterface):
    """Serves grids from a dict keyed by backing-table name.

    Each fetch returns a deep copy, so callers cannot alter the stored tables
    through a fetched grid.

    Example:
        ```python
        source = InMemoryTabularSource({"Agency": agency_grid, "OEM": oem_grid, "Vendor": vendor_grid})
        grid = await source.fetch_table(EntityKind.OEM)
        ```
    """

    def __init__(self, tables: Mapping[str, Sequence[Sequence[Any]]] | None = None) -> None:
        self._tables: dict[str, Grid] = {}
        for table_name, grid in (tables or {}).items():
            self.set_table(table_name, grid)

    def set_table(self, table_name: str, grid: Sequence[Sequence[Any]]) -> None:
        """Add or replace a table."""
        self._tables[table_name] = [list(row) for row in grid]

    def remove_table(self, table_name: str) -> bool:
        """Drop a table. Returns True if it existed."""
        return self._tables.pop(table_name, None) is not None

    async def fetch_table(self, kind: EntityKind) -> Grid:
        grid = self._tables.get(kind.table_name)
        if grid is None:
            raise SourceUnavailableError(f"table not found: {kind.table_name}", kind=kind)
        return copy.deepcopy(grid)
