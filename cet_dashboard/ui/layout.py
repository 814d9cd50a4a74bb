"""
Layout helpers for the Streamlit application (page config, styling, sidebar).
"""

from __future__ import annotations

from typing import Dict

import streamlit as st

from cet_dashboard.config import Settings

# Grid cells are rendered as HTML; these rules give the badge markup its colours
GRID_CSS = """
<style>
.cet-grid { width: 100%; border-collapse: collapse; font-size: 0.9rem; }
.cet-grid th { text-align: left; border-bottom: 2px solid rgba(128,128,128,0.4); padding: 0.4rem; }
.cet-grid td { border-bottom: 1px solid rgba(128,128,128,0.2); padding: 0.35rem 0.4rem; }
.cet-grid .badge { display: inline-block; min-width: 2rem; padding: 0.15rem 0.45rem; border-radius: 0.35rem;
  font-weight: 600; text-align: center; color: #fff; }
.cet-grid .bg-success { background: #198754; }
.cet-grid .bg-info { background: #0dcaf0; color: #000; }
.cet-grid .bg-warning { background: #ffc107; color: #000; }
.cet-grid .bg-danger { background: #dc3545; }
.cet-grid .bg-secondary { background: #6c757d; }
.cet-grid .text-white { color: #fff !important; }
.cet-grid a.dt-clickable { text-decoration: none; }
.footer-label { opacity: 0.7; }
</style>
"""


def setup_page() -> None:
    """Set Streamlit page configuration and top-level styling."""
    st.set_page_config(
        page_title="CET Monitoring Dashboard",
        layout="wide",
        page_icon=":satellite:",
    )
    st.markdown(GRID_CSS, unsafe_allow_html=True)


def sidebar_refresh() -> bool:
    st.sidebar.header("CET Monitoring")
    return st.sidebar.button("🔄 Refresh Data")


def sidebar_sources(settings: Settings, sources: Dict[str, str]) -> None:
    for grid_name, source in sources.items():
        st.sidebar.caption(f"{grid_name}: {source}")
    if not settings.spreadsheet_id:
        st.sidebar.info("SPREADSHEET_ID not set; showing bundled mock data.")
