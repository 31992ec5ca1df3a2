"""Tabular source interfaces and implementations."""

from fitmarket.sources.interfaces import Grid, SourceUnavailableError, TabularSourceInterface
from fitmarket.sources.json_file import JsonFileTabularSource
from fitmarket.sources.memory import InMemoryTabularSource

__all__ = [
    "Grid",
    "SourceUnavailableError",
    "TabularSourceInterface",
    "InMemoryTabularSource",
    "JsonFileTabularSource",
]
