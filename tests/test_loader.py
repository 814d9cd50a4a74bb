"""
Tests for grid config and row loading. No network access: the worksheet
reader is patched wherever a spreadsheet is configured.
"""

import json

import gspread
import pytest

from cet_dashboard.config import DEFINITIONS_DIR, PAGES, Settings
from cet_dashboard.data import loader
from cet_dashboard.data.loader import load_grid_config, load_mock_rows, load_rows, read_config_file


class TestGridConfigFiles:
    @pytest.mark.parametrize("page", PAGES, ids=lambda p: p.grid_name)
    def test_bundled_definitions_parse(self, page):
        config = load_grid_config(page.grid_name, DEFINITIONS_DIR)
        assert config is not None
        assert config.columns
        for descriptor in config.filters:
            assert descriptor.filter_type is not None
            assert 0 <= descriptor.column_index < len(config.columns)

    def test_dashboard_definition(self):
        config = load_grid_config("cet_dashboard", DEFINITIONS_DIR)
        assert config.grid_id == "cetTable"
        assert config.state_save is True
        assert len(config.columns) == 10
        assert [w.id for w in config.widgets] == [
            "applicationCard",
            "issueCard",
            "processesBehindCard",
            "slowProcessesCard",
        ]

    def test_issue_definition_normalizes_alias(self):
        config = load_grid_config("cet_issues", DEFINITIONS_DIR)
        assert config.filters[0].type == "multiSelect"
        assert config.columns[7].filterable is False
        assert config.widgets == ()

    def test_yaml_preferred_over_json(self, tmp_path):
        (tmp_path / "g.json").write_text(json.dumps({"columns": [{"data": "fromJson"}]}), encoding="utf-8")
        (tmp_path / "g.yaml").write_text("columns:\n  - data: fromYaml\n", encoding="utf-8")
        assert read_config_file("g", tmp_path) == {"columns": [{"data": "fromYaml"}]}

    def test_json_fallback(self, tmp_path):
        (tmp_path / "g.json").write_text(json.dumps({"id": "x", "columns": [{"data": "a"}]}), encoding="utf-8")
        config = load_grid_config("g", tmp_path)
        assert config.grid_id == "x"

    def test_missing_file(self, tmp_path):
        assert read_config_file("nothing", tmp_path) is None
        assert load_grid_config("nothing", tmp_path) is None

    def test_unparsable_file(self, tmp_path):
        (tmp_path / "g.yaml").write_text("columns: [unclosed\n", encoding="utf-8")
        assert load_grid_config("g", tmp_path) is None

    def test_config_without_columns(self, tmp_path):
        (tmp_path / "g.yaml").write_text("id: g\ncolumns: []\n", encoding="utf-8")
        assert load_grid_config("g", tmp_path) is None


class TestRows:
    def test_mock_rows(self):
        rows = load_mock_rows("cet_dashboard")
        assert len(rows) == 15
        assert {"iGateApp", "cetApp", "issues"} <= set(rows[0])

    def test_sentinels_become_none(self, tmp_path):
        (tmp_path / "g.json").write_text(
            json.dumps([{"a": "N/A", "b": " - ", "c": "value", "d": 0}, "not a row"]),
            encoding="utf-8",
        )
        assert load_mock_rows("g", tmp_path) == [{"a": None, "b": None, "c": "value", "d": 0}]

    def test_missing_mock_rows(self, tmp_path):
        assert load_mock_rows("g", tmp_path) == []

    def test_no_spreadsheet_uses_mock(self):
        rows, source = load_rows("cet_queues", Settings())
        assert source == "Mock data"
        assert len(rows) == 10

    def test_missing_credentials_uses_mock(self, tmp_path):
        settings = Settings(spreadsheet_id="sheet", google_credentials=str(tmp_path / "missing.json"))
        rows, source = load_rows("cet_issues", settings)
        assert source == "Mock data"
        assert len(rows) == 6

    def test_sheet_rows(self, tmp_path, monkeypatch):
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}", encoding="utf-8")
        calls = []

        def fake_sheet(spreadsheet_id, worksheet, service_account_file):
            calls.append((spreadsheet_id, worksheet, service_account_file))
            return [{"iGateApp": "ESR"}]

        monkeypatch.setattr(loader, "_load_sheet_rows", fake_sheet)
        settings = Settings(spreadsheet_id="sheet", google_credentials=str(credentials))
        rows, source = load_rows("cet_dashboard", settings)
        assert rows == [{"iGateApp": "ESR"}]
        assert source == "Google Sheet · cet_dashboard"
        assert calls == [("sheet", "cet_dashboard", str(credentials))]

    def test_sheet_failure_falls_back(self, tmp_path, monkeypatch):
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}", encoding="utf-8")

        def failing_sheet(*args):
            raise gspread.exceptions.WorksheetNotFound("cet_queues")

        monkeypatch.setattr(loader, "_load_sheet_rows", failing_sheet)
        rows, source = load_rows("cet_queues", Settings(spreadsheet_id="sheet", google_credentials=str(credentials)))
        assert source == "Mock data"
        assert len(rows) == 10
