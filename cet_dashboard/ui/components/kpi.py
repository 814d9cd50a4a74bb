from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Dict, Optional, Sequence

import streamlit as st

from cet_dashboard.data.aggregation import MetricUpdate, Tier
from cet_dashboard.data.schema import MetricWidgetConfig
from cet_dashboard.ui.components.formatting import format_metric_value

TIER_VARIANTS = {
    Tier.HEALTHY: "success",
    Tier.WARNING: "warning",
    Tier.DANGER: "danger",
}

TIER_COLORS = {
    "success": "#198754",
    "warning": "#ffc107",
    "danger": "#dc3545",
}


@dataclass
class MetricCard:
    widget: MetricWidgetConfig
    update: Optional[MetricUpdate] = None

    @property
    def variant(self) -> str:
        if self.update is None:
            return "success"
        return TIER_VARIANTS[self.update.tier]

    @property
    def value_display(self) -> str:
        return format_metric_value(self.update.value if self.update else 0)


def card_html(card: MetricCard) -> str:
    widget = card.widget
    color = TIER_COLORS[card.variant]
    icon = f'<i class="bi {escape(widget.icon)}" style="color:{color}"></i> ' if widget.icon else ""
    body = (
        f'<div class="card shadow-sm border-{card.variant}" style="border:1px solid {color};'
        f'border-radius:0.5rem;padding:0.75rem 1rem;">'
        f'<div style="font-size:0.9rem;">{icon}{escape(widget.label)}</div>'
        f'<div style="font-size:1.8rem;font-weight:600;color:{color};">{escape(card.value_display)}</div>'
        f'<div style="font-size:0.75rem;opacity:0.7;">{escape(widget.description)}</div>'
        "</div>"
    )
    if widget.click_target:
        return f'<a href="{escape(widget.click_target)}" target="_self" style="text-decoration:none;color:inherit;">{body}</a>'
    return body


def render_metric_cards(
    widgets: Sequence[MetricWidgetConfig],
    updates: Dict[str, MetricUpdate],
    columns: int = 4,
) -> None:
    """
    Render metric cards in rows of ``columns`` using the latest update per widget.
    """
    cards = [MetricCard(widget, updates.get(widget.id)) for widget in widgets]
    if not cards:
        return

    columns = max(columns, 1)
    for idx in range(0, len(cards), columns):
        row_cards = cards[idx: idx + columns]
        cols = st.columns(len(row_cards))
        for col, card in zip(cols, row_cards):
            with col:
                st.markdown(card_html(card), unsafe_allow_html=True)
