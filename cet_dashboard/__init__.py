"""
Core package for the CET monitoring dashboard.

Submodules provide grid configuration and row loading, column filter
composition, live aggregates and the Streamlit rendering orchestrated by the
top-level `app.py`.
"""
