"""Configuration manager for ImpactGraph CLI using TOML files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import toml

from . import config
from .config import CONFIG_FILE

logger = logging.getLogger(__name__)

SECTIONS = ("analysis", "classifier", "extractor", "salesforce")


@dataclass
class Settings:
    """Effective settings for one run: defaults overlaid with the TOML file."""

    max_depth: int = config.DEFAULT_MAX_DEPTH
    workers: int = 1
    case_insensitive: bool = False
    suffixes: Tuple[str, ...] = config.DEFAULT_TEST_SUFFIXES
    prefixes: Tuple[str, ...] = config.DEFAULT_TEST_PREFIXES
    markers: Tuple[str, ...] = config.DEFAULT_TEST_MARKERS
    marker_window: int = config.DEFAULT_MARKER_WINDOW
    blocklist_extra: Tuple[str, ...] = ()
    instance_url: str = ""
    api_version: str = config.DEFAULT_API_VERSION
    chunk_size: int = config.DEFAULT_CHUNK_SIZE
    access_token: str = field(default="", repr=False)

    @property
    def blocklist(self) -> frozenset:
        return config.DEFAULT_BLOCKLIST | frozenset(self.blocklist_extra)


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except toml.TomlDecodeError as exc:
        logger.warning("Ignoring malformed config file %s: %s", CONFIG_FILE, exc)
        return {}


def load_section(section: str) -> Dict[str, Any]:
    """Return one section of the config file, or an empty dict."""
    return dict(load_full_config().get(section, {}))


def _save_full_config(payload: Dict[str, Any]) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        toml.dump(payload, f)


def save_section(section: str, values: Dict[str, Any]) -> None:
    """Merge *values* into *section*, preserving all other sections.

    Raises:
        KeyError: If *section* is not one of :data:`SECTIONS`.
    """
    if section not in SECTIONS:
        raise KeyError(f"Unknown config section '{section}'. Expected one of: {', '.join(SECTIONS)}")
    payload = load_full_config()
    merged = dict(payload.get(section, {}))
    merged.update(values)
    payload[section] = merged
    _save_full_config(payload)


def coerce_value(raw: str) -> Any:
    """Turn a command-line string into the TOML value it most likely means.

    ``"3"`` becomes ``3``, ``"true"`` becomes ``True`` and a comma-separated
    string becomes a list.
    """
    lowered = raw.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    if "," in raw:
        return [part.strip() for part in raw.split(",") if part.strip()]
    return raw


def validate_value(section: str, key: str, value: Any) -> None:
    """Reject values that :func:`load_settings` could not read back.

    Raises:
        ValueError: If *key* is stored as an integer and *value* is not one.
    """
    if (section, key) in config.INT_SETTINGS and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValueError(f"[{section}] {key} must be an integer, got '{value}'")


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build :class:`Settings` from defaults, the config file and *overrides*.

    ``None`` values in *overrides* are ignored so CLI options that were not
    given keep the configured value.
    """
    full = load_full_config()
    analysis = full.get("analysis", {})
    classifier = full.get("classifier", {})
    extractor = full.get("extractor", {})
    salesforce = full.get("salesforce", {})

    settings = Settings(
        max_depth=int(analysis.get("max_depth", config.DEFAULT_MAX_DEPTH)),
        workers=int(analysis.get("workers", 1)),
        case_insensitive=bool(analysis.get("case_insensitive", False)),
        suffixes=_as_tuple(classifier.get("suffixes", config.DEFAULT_TEST_SUFFIXES)),
        prefixes=_as_tuple(classifier.get("prefixes", config.DEFAULT_TEST_PREFIXES)),
        markers=_as_tuple(classifier.get("markers", config.DEFAULT_TEST_MARKERS)),
        marker_window=int(classifier.get("marker_window", config.DEFAULT_MARKER_WINDOW)),
        blocklist_extra=_as_tuple(extractor.get("blocklist_extra", ())),
        instance_url=str(salesforce.get("instance_url", "")),
        api_version=str(salesforce.get("api_version", config.DEFAULT_API_VERSION)),
        chunk_size=int(salesforce.get("chunk_size", config.DEFAULT_CHUNK_SIZE)),
        access_token=os.environ.get(config.ACCESS_TOKEN_ENV, ""),
    )

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if not hasattr(settings, key):
            raise KeyError(f"Unknown setting '{key}'")
        setattr(settings, key, value)
    return settings
