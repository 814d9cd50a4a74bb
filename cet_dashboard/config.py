"""
Application-wide configuration: environment settings and page definitions.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

PACKAGE_DIR = Path(__file__).resolve().parent
DEFINITIONS_DIR = PACKAGE_DIR / "definitions"
MOCK_DATA_DIR = DEFINITIONS_DIR / "mock"

MIN_DEBOUNCE_MS = 300
MAX_DEBOUNCE_MS = 500


@dataclass(frozen=True)
class Settings:
    grid_config_dir: Path = DEFINITIONS_DIR
    text_filter_debounce_ms: int = 300
    default_page_size: int = 25
    spreadsheet_id: Optional[str] = None
    google_credentials: Optional[str] = None
    log_level: str = "INFO"
    filter_state_file: Optional[Path] = None


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def clamp_debounce(delay_ms: int) -> int:
    return min(max(delay_ms, MIN_DEBOUNCE_MS), MAX_DEBOUNCE_MS)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment (call ``bootstrap_env.ensure_env`` first)."""
    environ = os.environ if environ is None else environ
    config_dir = environ.get("GRID_CONFIG_DIR")
    state_file = environ.get("FILTER_STATE_FILE")
    return Settings(
        grid_config_dir=Path(config_dir) if config_dir else DEFINITIONS_DIR,
        text_filter_debounce_ms=clamp_debounce(_int_setting(environ, "TEXT_FILTER_DEBOUNCE_MS", 300)),
        default_page_size=max(_int_setting(environ, "DEFAULT_PAGE_SIZE", 25), 1),
        spreadsheet_id=environ.get("SPREADSHEET_ID") or None,
        google_credentials=environ.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        filter_state_file=Path(state_file) if state_file else None,
    )


@dataclass(frozen=True)
class PageConfig:
    key: str
    label: str
    grid_name: str


# Ordered page definitions for the dashboard
PAGES: List[PageConfig] = [
    PageConfig("dashboard", "CET Dashboard", "cet_dashboard"),
    PageConfig("queues", "CET Queues", "cet_queues"),
    PageConfig("issues", "CET Issues", "cet_issues"),
]
