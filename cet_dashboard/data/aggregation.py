"""
Live aggregates over a grid's filtered rows: metric cards and footer cells.

Both binders subscribe to grid notifications and recompute over the full
filtered, unpaginated row set whenever filtering, searching or the data
itself changes. Sorting and paging never change an aggregate, so those
notifications are ignored.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from cet_dashboard.data.schema import (
    AggregateSpec,
    FooterColumnConfig,
    MetricWidgetConfig,
    ThresholdSpec,
    cell_text,
    get_nested_value,
    is_missing,
    parse_number,
)
from cet_dashboard.ui.components.tables import ROW_SET_EVENTS, GridController, GridEvent

logger = logging.getLogger(__name__)

Rows = Sequence[Mapping[str, Any]]
Formula = Callable[[Rows], float]


class Tier(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class MetricUpdate:
    value: float
    tier: Tier


def classify_tier(value: float, thresholds: ThresholdSpec) -> Tier:
    if value < thresholds.warning:
        return Tier.HEALTHY
    if value < thresholds.danger:
        return Tier.WARNING
    return Tier.DANGER


# ---------------------------------------------------------------------------
# Formula builders
# ---------------------------------------------------------------------------


def _as_count(total: float) -> float:
    return int(total) if float(total).is_integer() else float(total)


def _matching(rows: Rows, where: Optional[Iterable[Any]]) -> List[Mapping[str, Any]]:
    if not where:
        return list(rows)
    conditions = list(where.items()) if isinstance(where, Mapping) else list(where)
    return [
        row
        for row in rows
        if all(cell_text(get_nested_value(row, path)) == cell_text(expected) for path, expected in conditions)
    ]


def _field_values(rows: Rows, field_path: str) -> pd.Series:
    return pd.Series([get_nested_value(row, field_path) for row in rows], dtype=object)


def count_rows(where: Optional[Mapping[str, Any]] = None) -> Formula:
    def formula(rows: Rows) -> float:
        return len(_matching(rows, where))

    return formula


def count_distinct(field_path: str, where: Optional[Mapping[str, Any]] = None) -> Formula:
    """Distinct non-empty values of ``field_path`` across the rows."""

    def formula(rows: Rows) -> float:
        texts = _field_values(_matching(rows, where), field_path).map(cell_text)
        return int(texts[texts != ""].nunique())

    return formula


def sum_field(field_path: str, where: Optional[Mapping[str, Any]] = None) -> Formula:
    """Numeric sum of ``field_path``; values that are not numbers count as zero."""

    def formula(rows: Rows) -> float:
        numbers = _field_values(_matching(rows, where), field_path).map(parse_number).astype(float)
        return _as_count(numbers.fillna(0).sum())

    return formula


def formula_from_spec(spec: AggregateSpec) -> Formula:
    where = dict(spec.where) if spec.where else None
    if spec.kind == "count":
        return count_rows(where)
    if spec.kind == "distinct":
        return count_distinct(spec.field, where)
    if spec.kind == "sum":
        return sum_field(spec.field, where)
    raise ValueError(f"Unknown aggregate kind {spec.kind!r}")


def formulas_from_config(widgets: Iterable[MetricWidgetConfig]) -> Dict[str, Formula]:
    """Formulas for widgets that declare an ``aggregate`` block."""
    return {w.id: formula_from_spec(w.aggregate) for w in widgets if w.aggregate is not None}


# ---------------------------------------------------------------------------
# Metric cards
# ---------------------------------------------------------------------------


class AggregationBinder:
    """Keeps metric widgets in step with one grid's filtered rows.

    ``on_update(widget, update)`` is called for every widget after each
    recompute; the binder keeps no reference to how widgets are drawn.
    """

    def __init__(self, on_update: Optional[Callable[[MetricWidgetConfig, MetricUpdate], None]] = None):
        self.on_update = on_update
        self.latest: Dict[str, MetricUpdate] = {}
        self.recompute_count = 0
        self._grid: Optional[GridController] = None
        self._bindings: List[tuple] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def bind(
        self,
        grid: GridController,
        widgets: Sequence[MetricWidgetConfig],
        formulas: Mapping[str, Formula],
    ) -> None:
        self.unbind()
        self._bindings = []
        for widget in widgets:
            formula = formulas.get(widget.id)
            if formula is None:
                logger.warning("No formula bound for metric widget %s; it will not update", widget.id)
                continue
            self._bindings.append((widget, formula))
        self._grid = grid
        self._unsubscribe = grid.subscribe(self._on_grid_event)
        self.recompute()

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._grid = None

    def _on_grid_event(self, event: GridEvent) -> None:
        if event in ROW_SET_EVENTS:
            self.recompute()

    def recompute(self) -> Dict[str, MetricUpdate]:
        if self._grid is None:
            return {}
        rows = self._grid.filtered_rows()
        self.recompute_count += 1
        for widget, formula in self._bindings:
            try:
                value = formula(rows)
            except Exception:
                logger.warning("Formula for metric widget %s failed; skipped this cycle", widget.id, exc_info=True)
                continue
            if value is None or not np.isfinite(value):
                logger.warning("Formula for metric widget %s returned %r; skipped", widget.id, value)
                continue
            update = MetricUpdate(value=value, tier=classify_tier(value, widget.thresholds))
            self.latest[widget.id] = update
            if self.on_update is not None:
                try:
                    self.on_update(widget, update)
                except Exception:
                    logger.warning("Update callback for metric widget %s failed", widget.id, exc_info=True)
        return dict(self.latest)


# ---------------------------------------------------------------------------
# Footer aggregation
# ---------------------------------------------------------------------------

FooterFunction = Callable[[pd.Series, FooterColumnConfig], Any]


def _numeric(values: pd.Series) -> pd.Series:
    return values.map(parse_number).astype(float).dropna()


def _present(values: pd.Series) -> pd.Series:
    return values[values.map(lambda v: not is_missing(v) and v != "").astype(bool)]


def _footer_sum(values: pd.Series, config: FooterColumnConfig) -> Any:
    return _as_count(_numeric(values).sum())


def _footer_average(values: pd.Series, config: FooterColumnConfig) -> Any:
    numbers = _numeric(values)
    return float(numbers.mean()) if len(numbers) else 0


def _footer_min(values: pd.Series, config: FooterColumnConfig) -> Any:
    numbers = _numeric(values)
    return _as_count(numbers.min()) if len(numbers) else 0


def _footer_max(values: pd.Series, config: FooterColumnConfig) -> Any:
    numbers = _numeric(values)
    return _as_count(numbers.max()) if len(numbers) else 0


def _footer_count(values: pd.Series, config: FooterColumnConfig) -> Any:
    return len(_present(values))


def _footer_count_unique(values: pd.Series, config: FooterColumnConfig) -> Any:
    return int(_present(values).map(cell_text).nunique())


def _footer_static(values: pd.Series, config: FooterColumnConfig) -> Any:
    return config.static_text


BUILTIN_FOOTER_AGGREGATIONS: Dict[str, FooterFunction] = {
    "sum": _footer_sum,
    "average": _footer_average,
    "min": _footer_min,
    "max": _footer_max,
    "count": _footer_count,
    "countUnique": _footer_count_unique,
    "static": _footer_static,
}


def format_footer_value(value: Any, config: FooterColumnConfig) -> str:
    if value is None or value == "" or (isinstance(value, float) and math.isnan(value)):
        return escape(config.empty_text)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config.decimals is not None:
            separator = "," if config.thousands_separator else ""
            formatted = f"{value:{separator}.{config.decimals}f}"
        elif config.thousands_separator:
            formatted = f"{round(value, 2):,}"
            if formatted.endswith(".0"):
                formatted = formatted[:-2]
        else:
            formatted = str(value)
    else:
        formatted = str(value)

    formatted = escape(f"{config.prefix}{formatted}{config.suffix}")
    if config.label:
        return (
            f'<span class="footer-label">{escape(config.label)}:</span> '
            f'<span class="footer-value">{formatted}</span>'
        )
    return formatted


class FooterAggregator:
    """Per-column footer summaries over a grid's filtered rows."""

    def __init__(
        self,
        columns: Sequence[FooterColumnConfig],
        on_update: Optional[Callable[[Dict[int, str]], None]] = None,
    ):
        self.columns = tuple(columns)
        self.on_update = on_update
        self.values: Dict[int, str] = {}
        self._functions: Dict[str, FooterFunction] = dict(BUILTIN_FOOTER_AGGREGATIONS)
        self._grid: Optional[GridController] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def register_aggregation(self, name: str, fn: FooterFunction) -> None:
        if not callable(fn):
            raise TypeError(f"Footer aggregation {name!r} is not callable")
        self._functions[name] = fn

    def bind(self, grid: GridController) -> None:
        self.unbind()
        self._grid = grid
        self._unsubscribe = grid.subscribe(self._on_grid_event)
        self.recompute()

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._grid = None

    def _on_grid_event(self, event: GridEvent) -> None:
        if event in ROW_SET_EVENTS:
            self.recompute()

    def recompute(self) -> Dict[int, str]:
        if self._grid is None:
            return {}
        values: Dict[int, str] = {}
        for config in self.columns:
            if not 0 <= config.column_index < self._grid.column_count:
                logger.warning("Footer column %s does not exist; skipped", config.column_index)
                continue
            fn = self._functions.get(config.aggregation)
            if fn is None:
                logger.warning("Unknown footer aggregation %r for column %s", config.aggregation, config.column_index)
                values[config.column_index] = format_footer_value(None, config)
                continue
            try:
                result = fn(self._grid.column_values(config.column_index), config)
            except Exception:
                logger.warning(
                    "Footer aggregation %s failed for column %s",
                    config.aggregation,
                    config.column_index,
                    exc_info=True,
                )
                result = None
            values[config.column_index] = format_footer_value(result, config)
        self.values = values
        if self.on_update is not None:
            try:
                self.on_update(dict(values))
            except Exception:
                logger.warning("Footer update callback failed", exc_info=True)
        return dict(values)
