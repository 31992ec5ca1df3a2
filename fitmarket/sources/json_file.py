"""JSON file-backed tabular source.

The file holds one grid per backing table:

    {
        "Agency": [["Agency Code", "Name", ...], ["A1", "Dept of X", ...], ...],
        "OEM": [...],
        "Vendor": [...]
    }

The decoded file is kept until its modification time or size changes, so a
load cycle fetching all three tables reads the file once, and an export
dropped in place is picked up by the next cycle without restarting the
process.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from fitmarket.entity import EntityKind
from fitmarket.logging import setup_logging
from fitmarket.sources.interfaces import Grid, SourceUnavailableError, TabularSourceInterface


class JsonFileTabularSource(TabularSourceInterface):
    """Reads entity tables from a JSON export on disk.

    Attributes:
        path: Location of the JSON export.
        reads: Number of times the file was actually read and decoded.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.logger = setup_logging("fitmarket.sources.json_file")
        self.reads = 0
        self._cached: tuple[tuple[int, int], dict[str, Any]] | None = None

    def _read(self) -> dict[str, Any]:
        try:
            stat = self.path.stat()
        except OSError as exc:
            raise SourceUnavailableError(f"source file does not exist: {self.path}") from exc
        version = (stat.st_mtime_ns, stat.st_size)
        if self._cached is not None and self._cached[0] == version:
            return self._cached[1]

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, RecursionError) as exc:
            raise SourceUnavailableError(f"cannot read source file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SourceUnavailableError(f"source file {self.path} must hold an object of tables")
        self.reads += 1
        self._cached = (version, data)
        return data

    async def fetch_table(self, kind: EntityKind) -> Grid:
        data = await asyncio.to_thread(self._read)
        grid = data.get(kind.table_name)
        if not isinstance(grid, list):
            raise SourceUnavailableError(f"table not found in {self.path}: {kind.table_name}", kind=kind)
        rows = [list(row) if isinstance(row, list) else [] for row in grid]
        self.logger.debug(
            {"message": "Read table", "path": str(self.path), "table": kind.table_name, "rows": len(rows)}
        )
        return rows
