"""Service settings: source list and loader tuning.

Settings come from a JSON file (``$TAXCODE_CONFIG``, default
``config/sources.json``)::

    {
      "sources": ["https://example.org/nk-rf/part1", "..."],
      "fetch_timeout": 30,
      "max_workers": 4,
      "min_container_length": 1500,
      "header_anchor": "auto"
    }

``sources`` entries may be plain URL strings or ``{"url": ...}`` objects.
``$TAXCODE_SOURCES`` (comma-separated URLs) replaces the file's source list.
A missing file is not an error: the service starts with no sources.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson

from taxcode.io_utils import load_json
from taxcode.parsing_types import Source

log = logging.getLogger(__name__)

CONFIG_ENV = "TAXCODE_CONFIG"
SOURCES_ENV = "TAXCODE_SOURCES"
DEFAULT_CONFIG_PATH = Path("config") / "sources.json"

MIN_FETCH_TIMEOUT = 15.0
MAX_FETCH_TIMEOUT = 120.0
_ANCHORS = {"line", "loose", "auto"}


class ConfigError(ValueError):
    """Settings file or environment holds an invalid value."""

    error_kind = "bad_config"


@dataclass(frozen=True, slots=True)
class Settings:
    sources: tuple[Source, ...] = ()
    fetch_timeout: float = 30.0
    max_workers: int = 4
    min_container_length: int = 1500
    header_anchor: str = "auto"


def _parse_sources(raw: Any) -> tuple[Source, ...]:
    if not isinstance(raw, list):
        raise ConfigError("'sources' must be a list")
    sources: list[Source] = []
    for i, item in enumerate(raw):
        url = item.get("url") if isinstance(item, dict) else item
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"sources[{i}] has no url")
        sources.append(Source(url=url.strip()))
    return tuple(sources)


def settings_from_dict(raw: dict[str, Any]) -> Settings:
    """Validate a decoded settings mapping.

    Raises:
        ConfigError: on wrong types or out-of-range values.
    """
    if not isinstance(raw, dict):
        raise ConfigError("settings must be a JSON object")
    try:
        timeout = float(raw.get("fetch_timeout", 30.0))
        max_workers = int(raw.get("max_workers", 4))
        min_len = int(raw.get("min_container_length", 1500))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid numeric setting: {exc}") from exc
    if max_workers < 1:
        raise ConfigError("max_workers must be >= 1")
    if min_len < 0:
        raise ConfigError("min_container_length must be >= 0")

    anchor = str(raw.get("header_anchor", "auto"))
    if anchor not in _ANCHORS:
        raise ConfigError(f"header_anchor must be one of {sorted(_ANCHORS)}")

    return Settings(
        sources=_parse_sources(raw.get("sources", [])),
        fetch_timeout=min(MAX_FETCH_TIMEOUT, max(MIN_FETCH_TIMEOUT, timeout)),
        max_workers=max_workers,
        min_container_length=min_len,
        header_anchor=anchor,
    )


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from *path* (or the configured default) plus env.

    Raises:
        ConfigError: if the file exists but is not valid settings JSON.
    """
    if path is None:
        path = Path(os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)

    raw: Any = {}
    if path.exists():
        try:
            raw = load_json(path)
        except orjson.JSONDecodeError as exc:
            raise ConfigError(f"{path}: invalid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{path}: settings must be a JSON object")
    else:
        log.warning("No settings file at %s; starting without sources", path)

    env_sources = os.environ.get(SOURCES_ENV, "").strip()
    if env_sources:
        raw = dict(raw)
        raw["sources"] = [u.strip() for u in env_sources.split(",") if u.strip()]

    settings = settings_from_dict(raw)
    log.info("Loaded settings: %d sources", len(settings.sources))
    return settings
