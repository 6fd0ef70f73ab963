# src/recurring_issues/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process, built once and passed down.
- No secrets required at import time (the token is checked when the tracker is built).
- Legacy variable names (GITHUB_PAT, GITHUB_REPO) keep working.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_PREFIX = "RECUR"


class ConfigError(RuntimeError):
    """Raised when a setting required for the requested operation is missing."""


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


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

    # ---- GitHub ----
    github_token: str | None
    github_repo: str
    github_api_url: str
    http_timeout_seconds: float

    # ---- Local paths ----
    data_dir: Path
    state_path: Path
    schedule_path: Path

    # ---- Tracker conventions ----
    board_name: str
    managed_label: str
    unresolved_label: str

    # ---- Deadline processing ----
    deadline_fail_fast: bool

    def require_token(self) -> str:
        token = (self.github_token or "").strip()
        if not token:
            raise ConfigError(
                f"GitHub token is not set. Set {_k('GITHUB_TOKEN')} (or GITHUB_PAT) in your .env."
            )
        return token

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "recurring-issues") or "recurring-issues"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        github_token = _first_env(_k("GITHUB_TOKEN"), "GITHUB_PAT", "GITHUB_TOKEN", default=None)
        github_repo = (_first_env(_k("GITHUB_REPO"), "GITHUB_REPO", default="") or "").strip()
        github_api_url = _env(_k("GITHUB_API_URL"), "https://api.github.com").rstrip("/")
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0))

        data_dir = _env_path(_k("DATA_DIR"), Path("data"))
        state_path = _env_path(_k("STATE_PATH"), data_dir / "state.json")
        schedule_path = _env_path(_k("SCHEDULE_PATH"), Path("schedule.yaml"))

        # Empty board name disables board bootstrap.
        board_name = _env(_k("BOARD_NAME"), "Task Manager").strip()
        managed_label = _env(_k("MANAGED_LABEL"), "pm-managed").strip() or "pm-managed"
        unresolved_label = _env(_k("UNRESOLVED_LABEL"), "incomplete").strip() or "incomplete"

        deadline_fail_fast = _env_bool(_k("DEADLINE_FAIL_FAST"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            github_token=github_token,
            github_repo=github_repo,
            github_api_url=github_api_url,
            http_timeout_seconds=http_timeout_seconds,
            data_dir=data_dir,
            state_path=state_path,
            schedule_path=schedule_path,
            board_name=board_name,
            managed_label=managed_label,
            unresolved_label=unresolved_label,
            deadline_fail_fast=deadline_fail_fast,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
