"""Tabular source interface: the I/O provider behind the entity cache."""

from abc import ABC, abstractmethod
from typing import Any

from fitmarket.entity import EntityKind

Grid = list[list[Any]]


class SourceUnavailableError(RuntimeError):
    """The backing table or its provider is missing, unreadable or timed out.

    Fatal for the current load cycle. The cache keeps its previous snapshot
    and re-raises to whoever triggered the load.
    """

    def __init__(self, message: str, *, kind: EntityKind | None = None):
        super().__init__(message)
        self.kind = kind


class TabularSourceInterface(ABC):
    """Abstract provider of whole entity tables.

    Implementations return the complete row x column grid of a kind's backing
    table, header row included at index 0. Cells may be strings, numbers,
    None, or already-decoded structures.
    """

    @abstractmethod
    async def fetch_table(self, kind: EntityKind) -> Grid:
        """Return the full grid for `kind`'s backing table.

        Raises:
            SourceUnavailableError: If the table cannot be read.
        """
