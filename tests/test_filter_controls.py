"""
Tests for filter controls; state is a plain dict standing in for session state.
"""

import datetime as dt
from unittest import mock

import pytest

from cet_dashboard.data.schema import Bounds, FilterDescriptor, FilterOption, FilterType
from cet_dashboard.ui.components.filter_controls import (
    DateFilterControl,
    DateRangeFilterControl,
    MultiSelectFilterControl,
    RangeFilterControl,
    SelectFilterControl,
    TextFilterControl,
    build_filter_control,
)


def control_for(filter_type, state, options=None, column_index=2, descriptor_options=()):
    descriptor = FilterDescriptor(column_index=column_index, type=filter_type, label="Level", options=descriptor_options)
    return build_filter_control("cetTable", descriptor, state, options)


class TestBuild:
    @pytest.mark.parametrize(
        "filter_type,expected",
        [
            ("text", TextFilterControl),
            ("select", SelectFilterControl),
            ("multiSelect", MultiSelectFilterControl),
            ("multi-select", MultiSelectFilterControl),
            ("range", RangeFilterControl),
            ("date", DateFilterControl),
            ("dateRange", DateRangeFilterControl),
        ],
    )
    def test_control_class(self, filter_type, expected):
        assert type(control_for(filter_type, {})) is expected

    def test_unknown_type(self):
        assert control_for("slider", {}) is None

    def test_key_includes_grid_and_column(self):
        assert control_for("text", {}).key == "cetTable_filter_2"

    def test_configured_options_win(self):
        configured = (FilterOption("critical", "Critical"),)
        control = control_for("select", {}, options=["x", "y"], descriptor_options=configured)
        assert control.options == configured

    def test_distinct_values_as_fallback(self):
        control = control_for("multiSelect", {}, options=["ERROR", "WARN"])
        assert [o.value for o in control.options] == ["ERROR", "WARN"]


class TestReadWrite:
    def test_text(self):
        state = {}
        control = control_for("text", state)
        assert control.read() is None
        state[control.key] = "  esr "
        assert control.read() == "esr"
        control.clear()
        assert state[control.key] == ""
        assert control.read() is None

    def test_select_ignores_unknown_option(self):
        state = {}
        control = control_for("select", state, options=["ERROR", "WARN"])
        state[control.key] = "WARN"
        assert control.read() == "WARN"
        state[control.key] = "FATAL"
        assert control.read() is None

        control.write("FATAL")
        assert state[control.key] == "FATAL"
        control.write("ERROR")
        assert state[control.key] == "ERROR"

    def test_multi_select(self):
        state = {}
        control = control_for("multiSelect", state, options=["DEBUG", "ERROR", "WARN"])
        state[control.key] = ["WARN", "gone"]
        assert control.read() == frozenset({"WARN"})

        control.write(frozenset({"WARN", "DEBUG"}))
        assert state[control.key] == ["DEBUG", "WARN"]

        control.clear()
        assert control.read() is None

    def test_range(self):
        state = {}
        control = control_for("range", state)
        state[control.key + "_min"] = "10"
        state[control.key + "_max"] = ""
        assert control.read() == Bounds(min=10.0, max=None)

        control.write(Bounds(min=10.0, max=29.5))
        assert state["cetTable_filter_2_min"] == "10"
        assert state["cetTable_filter_2_max"] == "29.5"

        control.clear()
        assert control.read() is None

    def test_range_with_unparsable_input(self):
        state = {"cetTable_filter_2_min": "lots", "cetTable_filter_2_max": "abc"}
        assert control_for("range", state).read() is None

    def test_date(self):
        state = {}
        control = control_for("date", state)
        control.write(dt.date(2024, 12, 9))
        assert control.read() == dt.date(2024, 12, 9)
        control.clear()
        assert control.read() is None

    def test_date_range(self):
        state = {}
        control = control_for("dateRange", state)
        state["cetTable_filter_2_start"] = dt.date(2024, 12, 1)
        assert control.read() == Bounds(min=dt.date(2024, 12, 1), max=None)

        control.write(Bounds(min=dt.date(2024, 12, 1), max=dt.date(2024, 12, 9)))
        assert state["cetTable_filter_2_end"] == dt.date(2024, 12, 9)
        control.clear()
        assert control.read() is None


class TestRender:
    def test_text_input_is_wired(self):
        container = mock.Mock()
        callback = mock.Mock()
        control_for("text", {}).render(container, on_change=callback)
        container.text_input.assert_called_once()
        kwargs = container.text_input.call_args.kwargs
        assert kwargs["key"] == "cetTable_filter_2"
        assert kwargs["on_change"] is callback

    def test_select_has_all_option(self):
        container = mock.Mock()
        control_for("select", {}, options=["ERROR"]).render(container)
        kwargs = container.selectbox.call_args.kwargs
        assert kwargs["options"] == ["", "ERROR"]
        assert kwargs["format_func"]("") == "All"
        assert kwargs["format_func"]("ERROR") == "ERROR"

    def test_range_renders_two_inputs(self):
        container = mock.Mock()
        low, high = mock.Mock(), mock.Mock()
        container.columns.return_value = (low, high)
        control_for("range", {}).render(container)
        assert low.text_input.call_args.kwargs["key"] == "cetTable_filter_2_min"
        assert high.text_input.call_args.kwargs["key"] == "cetTable_filter_2_max"
