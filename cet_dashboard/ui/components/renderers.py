"""
Built-in cell render functions for CET grids.

Badge colours follow the dashboard severity convention: green (success) for
nothing to report, blue (info) for low counts, yellow (warning) and red
(danger) above the per-metric thresholds. Every function returns the raw cell
value outside the ``display`` context.
"""

from __future__ import annotations

import logging
from html import escape
from typing import Any, Mapping, Optional

import pandas as pd

from cet_dashboard.data.schema import cell_text, parse_number
from cet_dashboard.ui.components.formatting import format_number, format_percent
from cet_dashboard.ui.components.render_registry import RenderContext, RenderRegistry
from cet_dashboard.ui.utils.url_template import is_clickable, resolve_url_template

logger = logging.getLogger(__name__)

DISPLAY = RenderContext.DISPLAY.value

# (warning_at, danger_at) per count metric; zero is always success, anything
# below warning_at is info.
COUNT_BADGE_LEVELS = {
    "threshold_alerts": (5, 9),
    "alerts": (3, 5),
    "disabled_queues": (1, 1),
    "processes_behind": (3, 6),
    "slow": (2, 4),
    "issue_count": (3, 5),
    "message_count": (10, 30),
}

SEVERITY_THEMES = {
    "critical": ("danger", "bi-exclamation-octagon-fill"),
    "high": ("warning", "bi-exclamation-triangle-fill"),
    "medium": ("info", "bi-info-circle-fill"),
}

TREND_THEMES = {
    "growing": ("success", "bi-graph-up-arrow"),
    "stable": ("info", "bi-graph-up"),
    "declining": ("warning", "bi-graph-down-arrow"),
}


def badge(tier: str, text: Any, extra_class: str = "", icon: Optional[str] = None) -> str:
    classes = f"badge bg-{tier}" + (f" {extra_class}" if extra_class else "")
    icon_html = f'<i class="{icon}"></i> ' if icon else ""
    return f'<span class="{classes}">{icon_html}{escape(cell_text(text))}</span>'


def count_tier(count: float, warning_at: float, danger_at: float) -> str:
    if count <= 0:
        return "success"
    if count >= danger_at:
        return "danger"
    if count >= warning_at:
        return "warning"
    return "info"


def _count_badge(value: Any, metric: str, extra_class: str = "") -> str:
    number = parse_number(value)
    if number is None:
        return badge("secondary", value)
    warning_at, danger_at = COUNT_BADGE_LEVELS[metric]
    return badge(count_tier(number, warning_at, danger_at), value, extra_class)


def _anchor(url: str, inner_html: str, css_class: str = "dt-clickable") -> str:
    return f'<a href="{escape(url)}" class="{css_class}">{inner_html}</a>'


def _title_case(value: Any) -> str:
    text = cell_text(value)
    return text[:1].upper() + text[1:] if text else "Unknown"


# CET count badges


def render_cet_threshold_alerts(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "threshold_alerts")


def render_clickable_cet_threshold_alerts(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    """Threshold-alert badge that links to ``auxiliary`` (a URL template).

    Falls back to the plain badge when there is no template, the count is
    zero, or a placeholder cannot be resolved from the row.
    """
    if context != DISPLAY:
        return value
    rendered = _count_badge(value, "threshold_alerts")
    url = is_clickable(auxiliary, value, row or {})
    if url is None:
        return rendered
    return _anchor(url, rendered)


def render_cet_alerts(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "alerts", "text-white")


def render_cet_disabled_queues(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "disabled_queues", "text-white")


def render_cet_processes_behind(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "processes_behind")


def render_cet_slow(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "slow")


def render_cet_issue_count(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "issue_count")


def render_message_count(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    return _count_badge(value, "message_count")


def render_queue_status(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    if value == "Enabled":
        return badge("success", "Enabled", icon="bi bi-check-circle-fill")
    if value == "Disabled":
        return badge("danger", "Disabled", icon="bi bi-x-circle-fill")
    return badge("secondary", value)


def render_support_link(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    url = resolve_url_template(auxiliary, row or {}) if auxiliary else None
    if url is None:
        text = cell_text(value)
        if not text.startswith(("http://", "https://")):
            return escape(text)
        url = text
    return (
        f'<a href="{escape(url)}" class="btn btn-sm btn-outline-primary" target="_blank" '
        f'title="{escape(cell_text(value))}"><i class="bi bi-box-arrow-up-right"></i> Wiki</a>'
    )


# Generic renderers


def render_severity_badge(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    theme, icon = SEVERITY_THEMES.get(cell_text(value).lower(), ("secondary", "bi-question-circle-fill"))
    return badge(theme, _title_case(value), icon=icon)


def render_status_badge(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    is_open = cell_text(value).lower() == "open"
    icon = "bi-check-circle-fill" if is_open else "bi-check-all"
    return badge("success" if is_open else "secondary", _title_case(value), icon=icon)


def render_timestamp(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY or not value:
        return value
    try:
        stamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        logger.warning("Invalid timestamp format: %r", value)
        return escape(cell_text(value))
    if pd.isna(stamp):
        return escape(cell_text(value))
    return stamp.strftime("%b %d, %Y, %I:%M %p")


def render_truncated_text(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    max_length = auxiliary if isinstance(auxiliary, int) and auxiliary > 0 else 50
    text = cell_text(value)
    if len(text) <= max_length:
        return escape(text)
    return f'<span title="{escape(text)}">{escape(text[:max_length])}...</span>'


def render_clickable_cell(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    text = escape(cell_text(value))
    if not auxiliary or not text:
        return text
    url = resolve_url_template(auxiliary, row or {})
    if url is None:
        return text
    return _anchor(url, text)


def render_number(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    number = parse_number(value)
    if number is None:
        return escape(cell_text(value))
    decimals = auxiliary if isinstance(auxiliary, int) else 0
    return format_number(number, decimals)


def render_percentage(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    number = parse_number(value)
    if number is None:
        return escape(cell_text(value))
    return format_percent(number, 1)


def render_growth_rate(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    number = parse_number(value)
    if number is None:
        return escape(cell_text(value))
    if number > 0:
        color, icon = "text-success", "bi-arrow-up"
    elif number < 0:
        color, icon = "text-danger", "bi-arrow-down"
    else:
        color, icon = "text-secondary", "bi-dash"
    return f'<span class="{color}"><i class="bi {icon}"></i> {format_percent(number, 1, signed=True)}</span>'


def render_trend_badge(value: Any, context: str, row: Mapping[str, Any] = None, auxiliary: Any = None) -> Any:
    if context != DISPLAY:
        return value
    theme, icon = TREND_THEMES.get(cell_text(value).lower(), ("secondary", "bi-question-circle"))
    return badge(theme, _title_case(value), icon=icon)


def register_builtin_renderers(registry: RenderRegistry) -> RenderRegistry:
    """Register every built-in render function under its config name."""
    registry.register("renderCETThresholdAlerts", render_cet_threshold_alerts)
    registry.register("renderClickableCETThresholdAlerts", render_clickable_cet_threshold_alerts)
    registry.register("renderCETAlerts", render_cet_alerts)
    registry.register("renderCETDisabledQueues", render_cet_disabled_queues)
    registry.register("renderCETProcessesBehind", render_cet_processes_behind)
    registry.register("renderCETSlow", render_cet_slow)
    registry.register("renderCETIssueCount", render_cet_issue_count)
    registry.register("renderMessageCount", render_message_count)
    registry.register("renderQueueStatus", render_queue_status)
    registry.register("renderSupportLink", render_support_link)
    registry.register("renderSeverityBadge", render_severity_badge)
    registry.register("renderStatusBadge", render_status_badge)
    registry.register("renderTimestamp", render_timestamp)
    registry.register("renderTruncatedText", render_truncated_text)
    registry.register("renderClickableCell", render_clickable_cell)
    registry.register("renderNumber", render_number)
    registry.register("renderPercentage", render_percentage)
    registry.register("renderGrowthRate", render_growth_rate)
    registry.register("renderTrendBadge", render_trend_badge)
    return registry


def default_registry() -> RenderRegistry:
    return register_builtin_renderers(RenderRegistry())
