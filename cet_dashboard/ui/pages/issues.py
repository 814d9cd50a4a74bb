from __future__ import annotations

import streamlit as st

from cet_dashboard.ui.pages.context import PageContext
from cet_dashboard.ui.pages.helpers import get_grid_instance, render_grid_section

GRID_NAME = "cet_issues"


def render(context: PageContext) -> None:
    loaded = get_grid_instance(context, GRID_NAME)
    if loaded is None:
        st.warning("CET issues configuration is unavailable.")
        return
    instance, _ = loaded
    st.subheader(instance.config.title or "CET Issues")
    st.caption("Per-application alert, queue and throughput problems.")
    render_grid_section(context, instance, show_cards=False)
