import cet_dashboard.bootstrap_env  # must be first to set env/secrets
import uuid

import streamlit as st

from cet_dashboard.config import PAGES, load_settings
from cet_dashboard.data.filter_store import JsonFileStore, SessionStateStore
from cet_dashboard.ui.layout import setup_page, sidebar_refresh, sidebar_sources
from cet_dashboard.ui.pages import dashboard, issues, queues
from cet_dashboard.ui.pages.context import PageContext
from cet_dashboard.ui.pages.helpers import get_grid_instance, refresh_grid_instances

SESSION_PARAM = "session"

PAGE_RENDERERS = {
    "dashboard": dashboard.render,
    "queues": queues.render,
    "issues": issues.render,
}


def session_prefix() -> str:
    """Per-browser key prefix for the shared filter state file.

    Kept in the URL so a page refresh finds the same saved filters.
    """
    session = st.query_params.get(SESSION_PARAM)
    if not session:
        session = uuid.uuid4().hex[:16]
        st.query_params[SESSION_PARAM] = session
    return f"{session}_"


def main() -> None:
    setup_page()
    st.title("CET Monitoring Dashboard")

    settings = load_settings()
    if settings.filter_state_file is not None:
        persistence = JsonFileStore(settings.filter_state_file, prefix=session_prefix())
    else:
        persistence = SessionStateStore(st.session_state)
    context = PageContext(settings=settings, state=st.session_state, persistence=persistence)

    if sidebar_refresh():
        refresh_grid_instances(context)

    sources = {}
    for page in PAGES:
        loaded = get_grid_instance(context, page.grid_name)
        if loaded is not None:
            sources[page.label] = loaded[1]
    sidebar_sources(settings, sources)

    streamlit_tabs = st.tabs([page.label for page in PAGES])
    for streamlit_tab, page in zip(streamlit_tabs, PAGES):
        renderer = PAGE_RENDERERS.get(page.key)
        if renderer is None:
            continue
        with streamlit_tab:
            renderer(context)


if __name__ == "__main__":
    main()
