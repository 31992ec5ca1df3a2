"""Load fitmarket configuration from TOML (e.g. fitmarket.toml).

Config file is looked up in order:
  1. An explicit path passed to load_market_config()
  2. Path in FITMARKET_CONFIG env var (if set)
  3. fitmarket.toml in the package directory
  4. fitmarket.toml in the current working directory

If no readable file is found, built-in defaults are used (TTL of two minutes,
no fetch timeout, no source file, INFO logging).

Example fitmarket.toml:

    [cache]
    ttl_ms = 120000
    fetch_timeout_s = 30

    [source]
    file = "exports/entities.json"

    [logging]
    level = "DEBUG"
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from fitmarket.cache import CacheConfig

CONFIG_ENV = "FITMARKET_CONFIG"
CONFIG_FILENAME = "fitmarket.toml"


class MarketConfig(BaseModel):
    """Settings for building a MarketDataService.

    Attributes:
        cache: TTL and fetch timeout for the entity cache.
        source_file: JSON export read by the file-backed source, if any.
        log_level: Level name for fitmarket loggers.
    """

    model_config = {"frozen": True}

    cache: CacheConfig = Field(default_factory=CacheConfig)
    source_file: Path | None = None
    log_level: str = "INFO"


def _default_config_paths(explicit: Path | None = None) -> list[Path]:
    """Return paths to check for fitmarket.toml (first readable one wins)."""
    paths: list[Path] = []
    if explicit is not None:
        paths.append(explicit)
    if os.environ.get(CONFIG_ENV):
        paths.append(Path(os.environ[CONFIG_ENV]))
    paths.append(Path(__file__).resolve().parent / CONFIG_FILENAME)
    paths.append(Path.cwd() / CONFIG_FILENAME)
    return paths


def _from_toml(data: dict[str, Any], base_dir: Path) -> MarketConfig:
    values: dict[str, Any] = {}
    cache = data.get("cache")
    if isinstance(cache, dict):
        values["cache"] = CacheConfig(**{k: cache[k] for k in ("ttl_ms", "fetch_timeout_s") if k in cache})
    source = data.get("source")
    if isinstance(source, dict) and isinstance(source.get("file"), str):
        source_file = Path(source["file"])
        values["source_file"] = source_file if source_file.is_absolute() else base_dir / source_file
    logging_section = data.get("logging")
    if isinstance(logging_section, dict) and isinstance(logging_section.get("level"), str):
        values["log_level"] = logging_section["level"].upper()
    return MarketConfig(**values)


def load_market_config(path: Path | str | None = None) -> MarketConfig:
    """Load configuration from the first usable TOML file.

    Relative source file paths are resolved against the config file's directory.
    Files that cannot be read, are not valid TOML, or hold invalid values are
    skipped in favor of the next candidate.

    Returns:
        The loaded MarketConfig, or defaults if no usable file exists.
    """
    for candidate in _default_config_paths(Path(path) if path is not None else None):
        if not candidate.is_file():
            continue
        try:
            with open(candidate, "rb") as f:
                data = tomllib.load(f)
            return _from_toml(data, candidate.resolve().parent)
        except (OSError, tomllib.TOMLDecodeError, ValidationError):
            continue
    return MarketConfig()
