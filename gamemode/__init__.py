"""Game mode handling: dual pvp/pve records and legacy migration."""

from .migration import (
    DEFAULT_GAME_MODE,
    GAME_MODES,
    DualModeRecord,
    LegacyRecord,
    default_mode_state,
    default_state,
    ensure_dual_mode,
    is_game_mode,
    migrate_to_game_mode_structure,
    needs_migration,
    parse_record,
    to_legacy,
)

__all__ = [
    "DEFAULT_GAME_MODE",
    "GAME_MODES",
    "DualModeRecord",
    "LegacyRecord",
    "default_mode_state",
    "default_state",
    "ensure_dual_mode",
    "is_game_mode",
    "migrate_to_game_mode_structure",
    "needs_migration",
    "parse_record",
    "to_legacy",
]
