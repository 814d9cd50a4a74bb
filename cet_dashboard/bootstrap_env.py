"""
Prepare the process environment before any dashboard module reads settings.

- Secrets from ``st.secrets`` become upper-case environment variables
  (nested tables are joined with underscores: ``[sheets] id`` -> ``SHEETS_ID``).
- A service-account JSON given inline (``GOOGLE_CREDENTIALS_JSON`` secret, or
  JSON text in ``GOOGLE_APPLICATION_CREDENTIALS``) is written to a temp file
  and ``GOOGLE_APPLICATION_CREDENTIALS`` points at it.
- ``.env`` is loaded last and never overrides variables already set.
- Root logging is configured from ``LOG_LEVEL`` (default INFO).
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, Iterator, Optional, Tuple

import streamlit as st
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
CREDENTIALS_FILENAME = "cet-dashboard-google-credentials.json"


def _sanitize_key(key: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", key.upper())


def _flatten(prefix: str, value: Any) -> Iterator[Tuple[str, str]]:
    if isinstance(value, dict):
        for child_key, child_value in value.items():
            yield from _flatten(f"{prefix}_{child_key}", child_value)
    else:
        yield _sanitize_key(prefix), str(value)


def _secrets_dict() -> Dict[str, Any]:
    # Outside the Streamlit runtime there is no secrets.toml and access raises
    try:
        secrets = getattr(st, "secrets", None)
        if not secrets:
            return {}
        return secrets.to_dict()
    except (FileNotFoundError, KeyError, AttributeError, RuntimeError):
        return {}
    except Exception as exc:  # st.secrets raises its own parse errors
        logger.debug("st.secrets unavailable: %s", exc)
        return {}


def _bridge_secrets_to_env(secrets: Dict[str, Any]) -> None:
    for key, value in secrets.items():
        for env_key, env_value in _flatten(key, value):
            os.environ.setdefault(env_key, env_value)


def _credentials_json(secrets: Dict[str, Any]) -> Optional[str]:
    existing = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    if existing.startswith("{"):
        return existing
    inline = secrets.get("GOOGLE_CREDENTIALS_JSON") or os.getenv("GOOGLE_CREDENTIALS_JSON")
    if not inline:
        return None
    if isinstance(inline, dict):
        return json.dumps(inline)
    return str(inline)


def _materialize_google_credentials(secrets: Dict[str, Any]) -> None:
    """Write inline service-account JSON to a temp file unless a usable path is set."""
    existing = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if existing and os.path.exists(existing):
        return
    json_text = _credentials_json(secrets)
    if not json_text:
        return
    try:
        json.loads(json_text)
    except json.JSONDecodeError:
        logger.warning("Inline Google credentials are not valid JSON; ignored")
        return
    path = os.path.join(tempfile.gettempdir(), CREDENTIALS_FILENAME)
    with open(path, "w", encoding="utf-8") as f:
        f.write(json_text)
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = path


def configure_logging(level_name: Optional[str] = None) -> None:
    level_name = (level_name or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)


def ensure_env() -> None:
    """Idempotent; safe inside and outside the Streamlit runtime."""
    secrets = _secrets_dict()
    _bridge_secrets_to_env(secrets)
    _materialize_google_credentials(secrets)
    load_dotenv(override=False)
    configure_logging()


# Runs on import so the Streamlit entry point only needs to import this module first
ensure_env()
