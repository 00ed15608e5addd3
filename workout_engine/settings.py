"""Session preferences kept between app launches.

The file holds an ordered list of ``{"key", "value", "type"}`` entries.
Only two switches matter to the live session: whether a rest window runs
after each set and whether its end is announced with a sound.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from core import DATA_DIR

SETTINGS_PATH = DATA_DIR / "settings.json"

DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "rest_enabled", "value": True, "type": "bool"},
    {"key": "sound_on", "value": True, "type": "bool"},
]

_COERCERS = {"bool": bool, "int": int, "float": float, "str": str}

# Loaded once per process; tests reset it to ``None``.
_settings_cache: List[Dict[str, Any]] | None = None


def _read_entries() -> List[Dict[str, Any]] | None:
    if not SETTINGS_PATH.exists():
        return None
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logging.warning("Settings file %s unreadable, using defaults", SETTINGS_PATH)
        return None
    if not isinstance(data, list):
        logging.warning("Settings file %s unreadable, using defaults", SETTINGS_PATH)
        return None
    return [entry for entry in data if isinstance(entry, dict) and "key" in entry]


def load_settings() -> List[Dict[str, Any]]:
    """Return stored preferences with any missing defaults filled in.

    The file is rewritten when it is missing, unreadable or lacks one of
    the default switches.
    """

    stored = _read_entries()
    entries = stored or []
    known = {entry["key"] for entry in entries}
    missing = [dict(entry) for entry in DEFAULT_SETTINGS if entry["key"] not in known]
    entries.extend(missing)
    if stored is None or missing:
        save_settings(entries)
    return entries


def save_settings(entries: List[Dict[str, Any]]) -> None:
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(entries), encoding="utf-8")


def get_settings() -> List[Dict[str, Any]]:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def _find(key: str) -> Dict[str, Any] | None:
    return next((entry for entry in get_settings() if entry.get("key") == key), None)


def get_value(key: str, default: Any = None) -> Any:
    entry = _find(key)
    if entry is None or entry.get("value") is None:
        return default
    return entry["value"]


def set_value(key: str, value: Any) -> None:
    """Store ``value`` under ``key``, keeping the entry's declared type."""

    entry = _find(key)
    if entry is None:
        get_settings().append({"key": key, "value": value, "type": type(value).__name__})
    else:
        coerce = _COERCERS.get(entry.get("type"))
        entry["value"] = coerce(value) if coerce and value is not None else value
    save_settings(get_settings())


def rest_enabled() -> bool:
    """Return ``True`` if a rest window should run between sets."""

    return bool(get_value("rest_enabled", True))


def sound_on() -> bool:
    return bool(get_value("sound_on", True))


def set_rest_enabled(enabled: bool) -> None:
    set_value("rest_enabled", bool(enabled))
