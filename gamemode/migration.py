"""Legacy <-> dual game mode progress record conversion.

A legacy record keeps one flat set of progress fields::

    {"level": 10, "gameEdition": 2, "taskCompletions": {...}, ...}

A dual-mode record keeps one bucket per game mode plus account-wide fields::

    {"currentGameMode": "pvp", "gameEdition": 2, "pvp": {...}, "pve": {...}}
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Union

GAME_MODES = ("pvp", "pve")
DEFAULT_GAME_MODE = "pvp"

MODE_SCALARS = ("level", "displayName", "pmcFaction")
MODE_COLLECTIONS = ("taskCompletions", "taskObjectives", "hideoutModules", "hideoutParts")
ACCOUNT_FIELDS = ("gameEdition",)
_DUAL_MODE_KEYS = ("currentGameMode", *GAME_MODES, *ACCOUNT_FIELDS)


def default_mode_state() -> dict[str, Any]:
    return {
        "level": 1,
        "displayName": None,
        "pmcFaction": "USEC",
        "taskCompletions": {},
        "taskObjectives": {},
        "hideoutModules": {},
        "hideoutParts": {},
    }


def default_state(current_game_mode: str = DEFAULT_GAME_MODE) -> dict[str, Any]:
    return {
        "currentGameMode": current_game_mode,
        "gameEdition": 1,
        "pvp": default_mode_state(),
        "pve": default_mode_state(),
    }


def is_game_mode(value: Any) -> bool:
    return isinstance(value, str) and value in GAME_MODES


def needs_migration(raw: dict[str, Any] | None) -> bool:
    """Conservative check for records still (partly) in the legacy shape."""
    if not isinstance(raw, dict):
        return False
    if not is_game_mode(raw.get("currentGameMode")):
        return True
    if not isinstance(raw.get("pvp"), dict) or not isinstance(raw.get("pve"), dict):
        return True
    source = raw[raw["currentGameMode"]]
    pvp = raw["pvp"]
    for key in (*MODE_SCALARS, *MODE_COLLECTIONS):
        # Legacy field with no mode-scoped equivalent
        if raw.get(key) is not None and key not in pvp and key not in source:
            return True
    return False


def _merge_missing(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    """Add keys from ``extra`` that ``base`` lacks; nested maps merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in extra.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _merge_missing(merged[key], value)
    return merged


def migrate_to_game_mode_structure(
    raw: dict[str, Any], source_mode: str = DEFAULT_GAME_MODE
) -> dict[str, Any]:
    """Convert a legacy record into the dual-mode shape.

    Legacy fields go to the ``source_mode`` bucket (or the record's own
    ``currentGameMode`` if it already names one). The other bucket starts
    from the default state. Values already scoped to a mode win over
    legacy ones of the same name. Already-migrated records come back as an
    unchanged copy.
    """
    if not needs_migration(raw):
        return copy.deepcopy(raw)
    if not is_game_mode(source_mode):
        raise ValueError(f"Unknown game mode: {source_mode!r}")

    mode = raw["currentGameMode"] if is_game_mode(raw.get("currentGameMode")) else source_mode
    legacy = {k: v for k, v in raw.items() if k not in _DUAL_MODE_KEYS}

    migrated: dict[str, Any] = {
        "currentGameMode": mode,
        "gameEdition": raw.get("gameEdition", 1),
    }
    for bucket_mode in GAME_MODES:
        existing = raw.get(bucket_mode)
        bucket = copy.deepcopy(existing) if isinstance(existing, dict) else {}
        if bucket_mode == mode:
            bucket = _merge_missing(bucket, legacy)
        migrated[bucket_mode] = _merge_missing(bucket, default_mode_state())
    return migrated


def to_legacy(record: dict[str, Any], mode: str | None = None) -> dict[str, Any]:
    """Flatten one bucket of a dual-mode record back into the legacy shape."""
    if needs_migration(record):
        return copy.deepcopy(record)
    mode = mode or record["currentGameMode"]
    if not is_game_mode(mode):
        raise ValueError(f"Unknown game mode: {mode!r}")
    flat = copy.deepcopy(record[mode])
    for key in ACCOUNT_FIELDS:
        if key in record:
            flat[key] = record[key]
    return flat


# ── Tagged records ──────────────────────────────────────────────


@dataclass
class LegacyRecord:
    data: dict[str, Any]


@dataclass
class DualModeRecord:
    data: dict[str, Any]

    @property
    def current_game_mode(self) -> str:
        return self.data["currentGameMode"]

    @property
    def game_edition(self) -> int:
        edition = self.data.get("gameEdition", 1)
        return edition if isinstance(edition, int) and not isinstance(edition, bool) else 1

    def bucket(self, mode: str | None = None) -> dict[str, Any]:
        return self.data[mode or self.current_game_mode]


ProgressDocument = Union[LegacyRecord, DualModeRecord]


def parse_record(raw: dict[str, Any]) -> ProgressDocument:
    if needs_migration(raw):
        return LegacyRecord(copy.deepcopy(raw))
    return DualModeRecord(copy.deepcopy(raw))


def ensure_dual_mode(record: ProgressDocument, source_mode: str = DEFAULT_GAME_MODE) -> DualModeRecord:
    if isinstance(record, DualModeRecord):
        return record
    return DualModeRecord(migrate_to_game_mode_structure(record.data, source_mode))
