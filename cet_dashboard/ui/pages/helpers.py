from __future__ import annotations

import datetime as dt
from functools import partial
from typing import Any, List, Optional, Tuple

import streamlit as st

from cet_dashboard.data.loader import clear_row_cache, load_grid_config, load_rows
from cet_dashboard.data.schema import Bounds, FilterValue
from cet_dashboard.ui.components.kpi import render_metric_cards
from cet_dashboard.ui.components.tables import render_grid
from cet_dashboard.ui.grid import GridInstance, init_grid
from cet_dashboard.ui.pages.context import PageContext

INSTANCE_PREFIX = "cet_grid_instance_"


def get_grid_instance(context: PageContext, grid_name: str) -> Optional[Tuple[GridInstance, str]]:
    """Grid instance for ``grid_name``, built once per session and kept in state."""
    key = INSTANCE_PREFIX + grid_name
    cached = context.state.get(key)
    if cached is not None:
        return cached
    config = load_grid_config(grid_name, context.settings.grid_config_dir)
    if config is None:
        return None
    rows, source = load_rows(grid_name, context.settings)
    instance = init_grid(
        config,
        rows,
        state=context.state,
        settings=context.settings,
        persistence=context.persistence,
    )
    context.state[key] = (instance, source)
    return instance, source


def refresh_grid_instances(context: PageContext) -> None:
    """Reload rows into every cached instance; applied filters stay in place."""
    clear_row_cache()
    for key in [k for k in context.state.keys() if str(k).startswith(INSTANCE_PREFIX)]:
        instance, _ = context.state[key]
        rows, source = load_rows(str(key)[len(INSTANCE_PREFIX):], context.settings)
        instance.set_rows(rows)
        context.state[key] = (instance, source)


def describe_filter_value(value: FilterValue) -> str:
    if isinstance(value, Bounds):
        low = "…" if value.min is None else _describe_scalar(value.min)
        high = "…" if value.max is None else _describe_scalar(value.max)
        return f"{low} – {high}"
    if isinstance(value, frozenset):
        return ", ".join(sorted(value))
    return _describe_scalar(value)


def _describe_scalar(value: Any) -> str:
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def active_filter_summary(instance: GridInstance) -> List[str]:
    labels = {d.column_index: d.label for d in instance.config.filters}
    return [
        f"{labels.get(idx, instance.grid.columns[idx].title)}: {describe_filter_value(active.value)}"
        for idx, active in instance.store.items()
    ]


def render_filter_panel(instance: GridInstance) -> None:
    if not instance.controls:
        return
    summary = active_filter_summary(instance)
    with st.expander("Filters", expanded=bool(summary)):
        per_row = min(len(instance.controls), 4)
        cols = st.columns(per_row)
        for position, (column_index, control) in enumerate(sorted(instance.controls.items())):
            control.render(cols[position % per_row], on_change=partial(instance.on_control_change, column_index))
        st.button(
            "Clear filters",
            key=f"{instance.grid_id}_clear_filters",
            on_click=instance.clear_filters,
            type="primary" if summary else "secondary",
        )
    summary_text = "Active Filters: " + " | ".join(summary) if summary else "Active Filters: All data"
    st.markdown(f"**{summary_text}**")


def render_footer(instance: GridInstance) -> None:
    values = instance.footer_values
    if not values:
        return
    parts = []
    for column_index, html in sorted(values.items()):
        if instance.config.footer and _is_static(instance, column_index):
            parts.append(html)
        else:
            parts.append(f"{instance.grid.columns[column_index].title}: {html}")
    st.markdown(" · ".join(parts), unsafe_allow_html=True)


def _is_static(instance: GridInstance, column_index: int) -> bool:
    return any(f.column_index == column_index and f.aggregation == "static" for f in instance.config.footer)


def render_grid_section(context: PageContext, instance: GridInstance, show_cards: bool = True) -> None:
    """Filters, cards, grid and footer for one instance, in that order."""
    render_filter_panel(instance)
    instance.settle()

    count_key = f"{instance.grid_id}_prev_filtered_count"
    previous = context.state.get(count_key)
    current = instance.grid.filtered_count
    if previous is not None and previous != current:
        st.toast(f"Filters applied to {current:,} rows", icon="🔎")
    context.state[count_key] = current

    if show_cards and instance.binder is not None:
        render_metric_cards(instance.config.widgets, instance.metric_updates)
    if instance.disabled_features:
        st.warning("Some grid features are unavailable: " + ", ".join(instance.disabled_features))
    render_grid(instance.grid, export_file_name=f"{instance.grid_id}.csv")
    render_footer(instance)
