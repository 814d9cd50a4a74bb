"""
Tests for the render registry and the built-in CET render functions.
"""

import logging

import pytest

from cet_dashboard.data.schema import ColumnDescriptor
from cet_dashboard.ui.components.render_registry import RenderRegistry, identity_render
from cet_dashboard.ui.components.renderers import (
    count_tier,
    default_registry,
    render_cet_threshold_alerts,
    render_clickable_cet_threshold_alerts,
    render_truncated_text,
)

NON_DISPLAY_CONTEXTS = ["sort", "filter", "type"]
SAMPLE_VALUES = [0, 5, 9, "12", None, "Enabled", "critical", "2024-12-09T10:30:00", -3.5]
ROW = {"iGateApp": "SAP_PROD", "appId": "1097"}


class TestRegistry:
    def test_resolve_known_name(self):
        """Registered functions are returned as-is."""
        registry = RenderRegistry()
        registry.register("upper", lambda v, c, r, a: str(v).upper())
        assert registry.resolve("upper")("x", "display", {}, None) == "X"
        assert "upper" in registry

    def test_unknown_name_falls_back_to_identity(self, caplog):
        """Unknown names warn once and pass values through untouched."""
        registry = RenderRegistry()
        with caplog.at_level(logging.WARNING):
            fn = registry.resolve("renderDoesNotExist")
            registry.resolve("renderDoesNotExist")
        assert fn is identity_render
        assert fn(7, "display", {}, None) == 7
        warnings = [r for r in caplog.records if "renderDoesNotExist" in r.getMessage()]
        assert len(warnings) == 1

    def test_register_rejects_non_callable(self):
        with pytest.raises(TypeError):
            RenderRegistry().register("bad", "not a function")

    def test_bound_column_passes_url_template(self):
        """The column's URL template arrives as the auxiliary argument."""
        registry = RenderRegistry()
        seen = {}

        def capture(value, context, row, auxiliary):
            seen["aux"] = auxiliary
            return value

        registry.register("capture", capture)
        column = ColumnDescriptor(data_path="issues", title="Issues", render_name="capture", url_template="/x/{id}")
        registry.bind_column(column)(3, "display", {"id": 1})
        assert seen["aux"] == "/x/{id}"

    def test_failing_render_function_shows_raw_value(self):
        registry = RenderRegistry()

        def broken(value, context, row, auxiliary):
            raise RuntimeError("boom")

        registry.register("broken", broken)
        render = registry.bind_column(ColumnDescriptor(data_path="a", title="A", render_name="broken"))
        assert render(42, "display", {}) == 42


class TestRawValuesOutsideDisplay:
    @pytest.mark.parametrize("context", NON_DISPLAY_CONTEXTS)
    def test_every_builtin_returns_raw_value(self, context):
        """No markup leaks into sort, filter or type contexts."""
        registry = default_registry()
        for name in registry.names():
            fn = registry.resolve(name)
            for value in SAMPLE_VALUES:
                assert fn(value, context, ROW, "/cet-issues?app={iGateApp}") is value, name


class TestThresholdAlertBadges:
    @pytest.mark.parametrize(
        "value,tier",
        [(0, "success"), (1, "info"), (4, "info"), (5, "warning"), (8, "warning"), (9, "danger"), (30, "danger")],
    )
    def test_tiers(self, value, tier):
        assert render_cet_threshold_alerts(value, "display") == f'<span class="badge bg-{tier}">{value}</span>'

    def test_non_numeric_value_gets_neutral_badge(self):
        assert 'bg-secondary' in render_cet_threshold_alerts("n/a", "display")

    def test_count_tier_zero_is_success(self):
        assert count_tier(0, 5, 9) == "success"


class TestClickableThresholdAlerts:
    TEMPLATE = "/cet-issues?app={iGateApp}"

    def test_non_zero_value_links_to_resolved_url(self):
        html = render_clickable_cet_threshold_alerts(5, "display", {"iGateApp": "SAP_PROD"}, self.TEMPLATE)
        assert html == (
            '<a href="/cet-issues?app=SAP_PROD" class="dt-clickable">'
            '<span class="badge bg-warning">5</span></a>'
        )

    def test_zero_never_links(self):
        html = render_clickable_cet_threshold_alerts(0, "display", {"iGateApp": "SAP_PROD"}, self.TEMPLATE)
        assert "<a " not in html
        assert html == '<span class="badge bg-success">0</span>'

    def test_zero_never_links_even_with_broken_template(self):
        html = render_clickable_cet_threshold_alerts(0, "display", {}, "/x?id={missing}")
        assert "<a " not in html

    def test_unresolvable_placeholder_matches_no_template(self):
        """A placeholder missing from the row renders like no template at all."""
        unresolved = render_clickable_cet_threshold_alerts(5, "display", {"other": 1}, self.TEMPLATE)
        plain = render_clickable_cet_threshold_alerts(5, "display", {"other": 1}, None)
        assert unresolved == plain
        assert "<a " not in unresolved

    def test_values_are_percent_encoded(self):
        html = render_clickable_cet_threshold_alerts(2, "display", {"iGateApp": "A&B Lab"}, self.TEMPLATE)
        assert 'href="/cet-issues?app=A%26B%20Lab"' in html


class TestOtherRenderers:
    def test_truncated_text(self):
        text = "x" * 60
        html = render_truncated_text(text, "display")
        assert html.startswith(f'<span title="{text}">')
        assert html.endswith("...</span>")

    def test_markup_in_values_is_escaped(self):
        registry = default_registry()
        html = registry.resolve("renderClickableCell")("<b>x</b>", "display", {}, None)
        assert "<b>" not in html

    def test_queue_status(self):
        registry = default_registry()
        assert "bg-danger" in registry.resolve("renderQueueStatus")("Disabled", "display", {}, None)
        assert "bg-success" in registry.resolve("renderQueueStatus")("Enabled", "display", {}, None)

    def test_timestamp_formats_iso_strings(self):
        registry = default_registry()
        assert registry.resolve("renderTimestamp")("2024-12-09T10:30:00", "display", {}, None) == "Dec 09, 2024, 10:30 AM"
