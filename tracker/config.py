"""Settings from config/settings.yaml, with per-host overrides from config/.env."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from gamemode import GAME_MODES

_ROOT = Path(__file__).resolve().parent.parent

# env var -> key under cfg["_env"]
_ENV_OVERRIDES = {
    "TRACKER_DB_PATH": "db_path",
    "TARKOV_API_URL": "api_url",
}


def load_config(config_dir: str | Path | None = None) -> dict:
    """Read settings.yaml (required) after loading .env (optional)."""
    config_dir = Path(config_dir) if config_dir is not None else _ROOT / "config"

    load_dotenv(config_dir / ".env")

    settings_path = config_dir / "settings.yaml"
    if not settings_path.exists():
        raise FileNotFoundError(f"Config not found: {settings_path}")
    with open(settings_path, encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    mode = cfg.get("tracker", {}).get("default_game_mode", "pvp")
    if mode not in GAME_MODES:
        raise ValueError(f"tracker.default_game_mode must be one of {GAME_MODES}, got {mode!r}")

    cfg["_env"] = {key: os.getenv(name, "") for name, key in _ENV_OVERRIDES.items()}
    return cfg


def progress_db_path(cfg: dict, root: Path | None = None) -> Path:
    """``TRACKER_DB_PATH`` if set, else ``storage.progress_db`` relative to the repo root."""
    override = cfg.get("_env", {}).get("db_path")
    if override:
        return Path(override)
    return (root or _ROOT) / cfg.get("storage", {}).get("progress_db", "data/progress.db")
