"""
Tests for metric card markup.
"""

from cet_dashboard.data.aggregation import MetricUpdate, Tier
from cet_dashboard.data.schema import MetricWidgetConfig
from cet_dashboard.ui.components.kpi import MetricCard, card_html


def test_card_uses_tier_variant():
    widget = MetricWidgetConfig(id="issueCard", label="Issues", icon="bi-exclamation-triangle-fill")
    html = card_html(MetricCard(widget, MetricUpdate(48, Tier.DANGER)))
    assert "border-danger" in html
    assert ">48<" in html
    assert "bi-exclamation-triangle-fill" in html


def test_card_without_update_is_healthy_zero():
    card = MetricCard(MetricWidgetConfig(id="queueCard", label="Queues"))
    assert card.variant == "success"
    assert card.value_display == "0"


def test_click_target_wraps_card_in_link():
    widget = MetricWidgetConfig(id="issueCard", label="Issues", click_target="/cet-issues")
    html = card_html(MetricCard(widget, MetricUpdate(3, Tier.HEALTHY)))
    assert html.startswith('<a href="/cet-issues"')


def test_labels_are_escaped():
    widget = MetricWidgetConfig(id="x", label="<script>", description="a & b")
    html = card_html(MetricCard(widget))
    assert "&lt;script&gt;" in html
    assert "a &amp; b" in html
