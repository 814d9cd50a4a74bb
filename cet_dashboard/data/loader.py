"""
Grid configuration and row loading.

Grid configs are read from ``<name>.yaml`` (preferred) or ``<name>.json`` in
the configured definitions directory. Rows come from a worksheet named after
the grid in the configured spreadsheet, or from the bundled mock JSON when no
spreadsheet is configured or it cannot be read.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import gspread
import streamlit as st
import yaml
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from cet_dashboard.config import MOCK_DATA_DIR, Settings
from cet_dashboard.data.schema import GridConfig, GridConfigError, parse_grid_config

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]

# Spreadsheet cells that mean "no value"
SENTINELS = {"", "None", "none", "N/A", "n/a", "NA", "null", "Null", "-"}


def read_config_file(name: str, config_dir: Union[str, Path]) -> Optional[Any]:
    """Return the parsed contents of ``<name>.yaml`` or ``<name>.json``, or None."""
    config_dir = Path(config_dir)
    for suffix in (".yaml", ".yml", ".json"):
        path = config_dir / f"{name}{suffix}"
        if not path.exists():
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                if suffix == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError):
            logger.warning("Could not parse config %s", path, exc_info=True)
            return None
    logger.warning("Config %s not found in %s", name, config_dir)
    return None


def load_grid_config(name: str, config_dir: Union[str, Path]) -> Optional[GridConfig]:
    """Load and parse one grid's configuration; None when it is unusable."""
    data = read_config_file(name, config_dir)
    if data is None:
        return None
    try:
        return parse_grid_config(name, data)
    except GridConfigError as exc:
        logger.warning("Grid config %s unusable: %s", name, exc)
        return None


def _clean_row(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: (None if isinstance(value, str) and value.strip() in SENTINELS else value)
        for key, value in record.items()
    }


def load_mock_rows(grid_name: str, mock_dir: Union[str, Path] = MOCK_DATA_DIR) -> List[Dict[str, Any]]:
    path = Path(mock_dir) / f"{grid_name}.json"
    if not path.exists():
        logger.warning("No mock rows for grid %s at %s", grid_name, path)
        return []
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        logger.warning("Mock rows for grid %s are not a list", grid_name)
        return []
    return [_clean_row(row) for row in rows if isinstance(row, dict)]


@st.cache_data(show_spinner=False, ttl=300)
def _load_sheet_rows(spreadsheet_id: str, worksheet: str, service_account_file: str) -> List[Dict[str, Any]]:
    """Records of one worksheet, cached per spreadsheet, worksheet and credentials."""
    credentials = Credentials.from_service_account_file(service_account_file, scopes=SCOPES)
    client = gspread.authorize(credentials)
    records = client.open_by_key(spreadsheet_id).worksheet(worksheet).get_all_records()
    return [_clean_row(record) for record in records]


def _sheet_source(settings: Settings) -> Optional[Tuple[str, str]]:
    if not settings.spreadsheet_id:
        return None
    credentials = settings.google_credentials or "google-credentials.json"
    if not os.path.exists(credentials):
        logger.warning("Service account file not found: %s; using mock rows", credentials)
        return None
    return settings.spreadsheet_id, credentials


def load_rows(grid_name: str, settings: Settings) -> Tuple[List[Dict[str, Any]], str]:
    """Rows for ``grid_name`` and a label naming where they came from."""
    source = _sheet_source(settings)
    if source is not None:
        spreadsheet_id, credentials = source
        try:
            rows = _load_sheet_rows(spreadsheet_id, grid_name, credentials)
            return rows, f"Google Sheet · {grid_name}"
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError, ValueError) as exc:
            logger.warning("Loading worksheet %s failed (%s); using mock rows", grid_name, exc)
    return load_mock_rows(grid_name), "Mock data"


def clear_row_cache() -> None:
    _load_sheet_rows.clear()  # type: ignore[attr-defined]
