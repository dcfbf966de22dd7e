# src/problem_tree/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Everything has a default; a bare checkout runs without any env vars.
- Data lives under a local, gitignored directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PROBLEMS"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connectors ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    state_path: Path

    # ---- Focus timer ----
    tick_seconds: float

    # ---- Debug ----
    debug_unique_ids: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "problem-tree") or "problem-tree"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/problem-tree"))
        state_path = _env_path(_k("STATE_PATH"), data_dir / "state.json")

        tick_seconds = max(0.05, _env_float(_k("TICK_SECONDS"), 1.0))
        debug_unique_ids = _env_bool(_k("DEBUG_UNIQUE_IDS"), False)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            state_path=state_path,
            tick_seconds=tick_seconds,
            debug_unique_ids=debug_unique_ids,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
