from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional
from urllib.parse import quote

from cet_dashboard.data.schema import get_nested_value, is_missing, parse_number

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")


def resolve_url_template(template: Optional[str], row: Mapping[str, Any]) -> Optional[str]:
    """Substitute every ``{dotted.path}`` placeholder with a percent-encoded row value.

    Returns None if any placeholder cannot be resolved; a partially
    substituted URL is never produced.
    """
    if not template:
        return None

    missing = []

    def _replace(match: re.Match[str]) -> str:
        path = match.group(1).strip()
        value = get_nested_value(row, path)
        if is_missing(value):
            missing.append(path)
            return match.group(0)
        return quote(str(value), safe="")

    url = PLACEHOLDER_PATTERN.sub(_replace, template)
    if missing:
        logger.warning("URL template %r: property path(s) %s not found in row", template, missing)
        return None
    return url


def is_clickable(template: Optional[str], value: Any, row: Mapping[str, Any]) -> Optional[str]:
    """Return the resolved URL when a cell should link somewhere, else None.

    A link is produced only when a template is configured, the cell's numeric
    value is non-zero and every placeholder resolves.
    """
    if not template:
        return None
    number = parse_number(value)
    if number is None or number == 0:
        return None
    return resolve_url_template(template, row)
