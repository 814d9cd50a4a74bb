"""
Shared fixtures for the CET dashboard engine tests.

Rows mirror the bundled mock data shape. Nothing here touches the network or
the Streamlit runtime; filter control state is a plain dict.
"""

import pytest

from cet_dashboard.data.filter_store import ActiveFilterStore, MemoryKeyValueStore
from cet_dashboard.data.filters import FilterEngine
from cet_dashboard.data.schema import parse_grid_config
from cet_dashboard.ui.components.renderers import default_registry
from cet_dashboard.ui.components.tables import DataGrid
from cet_dashboard.ui.utils.debounce import DeferredScheduler


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


APP_ROWS = [
    {"iGateApp": "ESR", "cetApp": "ESR Primary", "level": "ERROR", "messages": 0, "issues": 6, "status": "warning", "lastUpdated": "2024-12-09T10:30:00"},
    {"iGateApp": "ESR", "cetApp": "GSS", "level": "WARN", "messages": 1, "issues": 6, "status": "critical", "lastUpdated": "2024-12-08T09:00:00"},
    {"iGateApp": "Billing", "cetApp": "Claims", "level": "INFO", "messages": 12, "issues": 12, "status": "critical", "lastUpdated": "2024-12-07T10:25:00"},
    {"iGateApp": "Lab", "cetApp": "Lab Results", "level": "DEBUG", "messages": 15, "issues": 8, "status": "healthy", "lastUpdated": "not a date"},
    {"iGateApp": "Pharmacy", "cetApp": "RX", "level": "ERROR", "messages": 45, "issues": 15, "status": "critical", "lastUpdated": "2024-12-09T08:00:00"},
    {"iGateApp": "Radiology", "cetApp": "PACS", "level": "WARN", "messages": "n/a", "issues": 1, "status": "healthy", "lastUpdated": "2024-12-05T10:30:00"},
]

GRID_CONFIG = {
    "id": "cetTable",
    "stateSave": True,
    "pageLength": 2,
    "columns": [
        {"data": "iGateApp", "title": "iGate App"},
        {"data": "cetApp", "title": "CET App"},
        {"data": "level", "title": "Level"},
        {"data": "messages", "title": "Messages", "render": "renderMessageCount"},
        {
            "data": "issues",
            "title": "Issues",
            "render": "renderClickableCETThresholdAlerts",
            "urlTemplate": "/cet-issues?app={iGateApp}",
        },
        {"data": "status", "title": "Status", "render": "renderSeverityBadge"},
        {"data": "lastUpdated", "title": "Last Updated", "render": "renderTimestamp"},
    ],
    "filterConfig": {
        "enabled": True,
        "columns": [
            {"columnIndex": 0, "type": "multiSelect", "label": "iGate App"},
            {"columnIndex": 1, "type": "text", "label": "CET App"},
            {"columnIndex": 2, "type": "multiSelect", "label": "Level"},
            {"columnIndex": 3, "type": "range", "label": "Messages"},
            {"columnIndex": 5, "type": "select", "label": "Status", "options": ["healthy", "warning", "critical"]},
            {"columnIndex": 6, "type": "dateRange", "label": "Last Updated"},
        ],
    },
    "footerConfig": {
        "enabled": True,
        "columns": [
            {"columnIndex": 0, "aggregation": "static", "staticText": "Total:"},
            {"columnIndex": 3, "aggregation": "sum"},
            {"columnIndex": 4, "aggregation": "sum"},
        ],
    },
    "cards": [
        {
            "cardId": "applicationCard",
            "label": "Applications",
            "thresholds": {"warning": 4, "danger": 6},
            "aggregate": {"kind": "distinct", "field": "iGateApp"},
        },
        {
            "cardId": "issueCard",
            "label": "Issues",
            "thresholds": {"warning": 20, "danger": 40},
            "aggregate": {"kind": "sum", "field": "issues"},
        },
    ],
}


@pytest.fixture
def rows():
    return [dict(row) for row in APP_ROWS]


@pytest.fixture
def grid_config():
    return parse_grid_config("cet_dashboard", GRID_CONFIG)


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def grid(grid_config, rows, registry):
    return DataGrid(grid_config.columns, rows, registry=registry, page_size=2, grid_id=grid_config.grid_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return DeferredScheduler(clock=clock)


@pytest.fixture
def persistence():
    return MemoryKeyValueStore()


@pytest.fixture
def store(grid_config, persistence):
    return ActiveFilterStore(grid_config.grid_id, persistence)


@pytest.fixture
def engine(grid, store, grid_config, scheduler):
    return FilterEngine(grid, store, descriptors=grid_config.filters, scheduler=scheduler, debounce_ms=300)
