"""
Typed descriptors for grid configuration and runtime filter state.

Column, filter, widget and footer descriptors are loaded once per grid from the
configuration source and treated as read-only for the grid's lifetime. Parsing
is lenient: an optional entry that cannot be understood is dropped with a
warning so the rest of the grid still initializes.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)


class GridConfigError(ValueError):
    """Raised when a grid configuration has no usable column list."""


class FilterType(str, Enum):
    TEXT = "text"
    SELECT = "select"
    MULTI_SELECT = "multiSelect"
    RANGE = "range"
    DATE = "date"
    DATE_RANGE = "dateRange"


# Spellings seen in older page configs
FILTER_TYPE_ALIASES = {
    "multi-select": FilterType.MULTI_SELECT,
    "multiselect": FilterType.MULTI_SELECT,
    "daterange": FilterType.DATE_RANGE,
    "date-range": FilterType.DATE_RANGE,
}


def parse_filter_type(raw: Any) -> Optional[FilterType]:
    if isinstance(raw, FilterType):
        return raw
    key = str(raw).strip() if raw is not None else ""
    try:
        return FilterType(key)
    except ValueError:
        return FILTER_TYPE_ALIASES.get(key.lower())


@dataclass(frozen=True)
class Bounds:
    """Inclusive bounds for range and dateRange filters; None means unbounded."""

    min: Optional[Any] = None
    max: Optional[Any] = None

    @property
    def start(self) -> Optional[Any]:
        return self.min

    @property
    def end(self) -> Optional[Any]:
        return self.max

    @property
    def is_open(self) -> bool:
        return self.min is None and self.max is None


FilterValue = Union[str, dt.date, FrozenSet[str], Bounds]


@dataclass(frozen=True)
class ColumnDescriptor:
    data_path: str
    title: str
    render_name: Optional[str] = None
    url_template: Optional[str] = None
    filterable: bool = True
    orderable: bool = True
    searchable: bool = True


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str


@dataclass(frozen=True)
class FilterDescriptor:
    column_index: int
    type: str
    label: str
    options: Tuple[FilterOption, ...] = ()
    placeholder: Optional[str] = None

    @property
    def filter_type(self) -> Optional[FilterType]:
        return parse_filter_type(self.type)


@dataclass(frozen=True)
class ActiveFilter:
    column_index: int
    type: FilterType
    value: FilterValue


@dataclass(frozen=True)
class ThresholdSpec:
    warning: float = math.inf
    danger: float = math.inf


@dataclass(frozen=True)
class AggregateSpec:
    kind: str  # count | distinct | sum
    field: Optional[str] = None
    where: Optional[Tuple[Tuple[str, Any], ...]] = None


@dataclass(frozen=True)
class MetricWidgetConfig:
    id: str
    icon: str = ""
    label: str = ""
    description: str = ""
    thresholds: ThresholdSpec = ThresholdSpec()
    click_target: Optional[str] = None
    aggregate: Optional[AggregateSpec] = None


@dataclass(frozen=True)
class FooterColumnConfig:
    column_index: int
    aggregation: str
    label: Optional[str] = None
    decimals: Optional[int] = None
    prefix: str = ""
    suffix: str = ""
    empty_text: str = "-"
    static_text: str = ""
    thousands_separator: bool = True


@dataclass(frozen=True)
class GridConfig:
    grid_id: str
    columns: Tuple[ColumnDescriptor, ...]
    filters: Tuple[FilterDescriptor, ...] = ()
    widgets: Tuple[MetricWidgetConfig, ...] = ()
    footer: Tuple[FooterColumnConfig, ...] = ()
    title: str = ""
    state_save: bool = False
    page_size: int = 25
    default_order: Tuple[int, str] = (0, "asc")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    return isinstance(value, float) and math.isnan(value)


def get_nested_value(row: Any, path: str) -> Any:
    """Walk ``row`` through each dot-separated segment of ``path``.

    Returns None as soon as a segment is missing or an intermediate value is
    not a mapping.
    """
    value = row
    for key in path.split("."):
        if isinstance(value, Mapping) and key in value:
            value = value[key]
        else:
            return None
    return value


def cell_text(value: Any) -> str:
    if is_missing(value):
        return ""
    return str(value)


def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def parse_date(value: Any) -> Optional[dt.date]:
    if is_missing(value):
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, numbers.Number):
        # a bare number would be read as an epoch offset
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        stamp = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    return stamp.date()


def normalize_filter_value(filter_type: FilterType, value: Any) -> Optional[FilterValue]:
    """Coerce a raw control or persisted value into its typed shape.

    Returns None when the value places no constraint on the column: blank
    text, an empty selection, or bounds with neither side set.
    """
    if value is None:
        return None
    if filter_type in (FilterType.TEXT, FilterType.SELECT):
        text = str(value).strip() if filter_type is FilterType.TEXT else str(value)
        return text or None
    if filter_type is FilterType.MULTI_SELECT:
        if isinstance(value, (str, bytes)):
            value = [value]
        try:
            selected = frozenset(str(v) for v in value if str(v) != "")
        except TypeError:
            return None
        return selected or None
    if filter_type is FilterType.DATE:
        return parse_date(value)
    if filter_type in (FilterType.RANGE, FilterType.DATE_RANGE):
        low, high = _bound_parts(value)
        parse = parse_number if filter_type is FilterType.RANGE else parse_date
        bounds = Bounds(min=parse(low), max=parse(high))
        return None if bounds.is_open else bounds
    return None


def _bound_parts(value: Any) -> Tuple[Any, Any]:
    if isinstance(value, Bounds):
        return value.min, value.max
    if isinstance(value, Mapping):
        low = value.get("min", value.get("start"))
        high = value.get("max", value.get("end"))
        return low, high
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return value[0], value[1]
    return None, None


def filter_value_to_json(value: FilterValue) -> Any:
    if isinstance(value, Bounds):
        return {"min": _json_scalar(value.min), "max": _json_scalar(value.max)}
    if isinstance(value, frozenset):
        return sorted(value)
    return _json_scalar(value)


def _json_scalar(value: Any) -> Any:
    if isinstance(value, dt.date):
        return value.isoformat()
    return value


# ---------------------------------------------------------------------------
# Configuration parsing
# ---------------------------------------------------------------------------


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in {"false", "0", "no", "off", ""}
    return bool(value)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_column(data: Mapping[str, Any]) -> Optional[ColumnDescriptor]:
    data_path = data.get("dataPath", data.get("data"))
    if not data_path or not isinstance(data_path, str):
        logger.warning("Column entry without a data path skipped: %r", data)
        return None
    return ColumnDescriptor(
        data_path=data_path,
        title=str(data.get("title") or data_path),
        render_name=data.get("renderName", data.get("render")) or None,
        url_template=data.get("urlTemplate") or None,
        filterable=_as_bool(data.get("filterable"), True),
        orderable=_as_bool(data.get("orderable"), True),
        searchable=_as_bool(data.get("searchable"), True),
    )


def _parse_options(raw: Any) -> Tuple[FilterOption, ...]:
    if not raw:
        return ()
    options: List[FilterOption] = []
    for opt in raw:
        if isinstance(opt, Mapping):
            if "value" not in opt:
                continue
            value = str(opt["value"])
            options.append(FilterOption(value=value, label=str(opt.get("label", value))))
        else:
            options.append(FilterOption(value=str(opt), label=str(opt)))
    return tuple(options)


def parse_filter(data: Mapping[str, Any], columns: Tuple[ColumnDescriptor, ...]) -> Optional[FilterDescriptor]:
    column_index = _as_int(data.get("columnIndex"))
    if column_index is None or not 0 <= column_index < len(columns):
        logger.warning("Filter entry with invalid column index skipped: %r", data)
        return None
    column = columns[column_index]
    if not column.filterable:
        logger.warning("Filter configured on non-filterable column %s skipped", column.data_path)
        return None
    raw_type = str(data.get("type") or "")
    known = parse_filter_type(raw_type)
    return FilterDescriptor(
        column_index=column_index,
        # Unknown types are kept verbatim; the control factory rejects them
        type=known.value if known else raw_type,
        label=str(data.get("label") or column.title),
        options=_parse_options(data.get("options")),
        placeholder=data.get("placeholder"),
    )


def parse_thresholds(data: Any) -> ThresholdSpec:
    if not isinstance(data, Mapping):
        return ThresholdSpec()
    warning = parse_number(data.get("warning"))
    danger = parse_number(data.get("danger"))
    return ThresholdSpec(
        warning=math.inf if warning is None else warning,
        danger=math.inf if danger is None else danger,
    )


def parse_aggregate(data: Any) -> Optional[AggregateSpec]:
    if not isinstance(data, Mapping):
        return None
    kind = str(data.get("kind") or "").strip()
    if kind not in {"count", "distinct", "sum"}:
        logger.warning("Unknown aggregate kind %r ignored", kind)
        return None
    field_name = data.get("field")
    if kind != "count" and not field_name:
        logger.warning("Aggregate %r requires a field; ignored", kind)
        return None
    where = data.get("where")
    where_items = tuple(sorted(where.items())) if isinstance(where, Mapping) and where else None
    return AggregateSpec(kind=kind, field=field_name, where=where_items)


def parse_widget(data: Mapping[str, Any]) -> Optional[MetricWidgetConfig]:
    widget_id = data.get("id") or data.get("cardId")
    if not widget_id:
        logger.warning("Metric widget without an id skipped: %r", data)
        return None
    return MetricWidgetConfig(
        id=str(widget_id),
        icon=str(data.get("icon") or ""),
        label=str(data.get("label") or widget_id),
        description=str(data.get("description") or ""),
        thresholds=parse_thresholds(data.get("thresholds")),
        click_target=data.get("clickTarget", data.get("clickAction")) or None,
        aggregate=parse_aggregate(data.get("aggregate")),
    )


def parse_footer_column(data: Mapping[str, Any]) -> Optional[FooterColumnConfig]:
    column_index = _as_int(data.get("columnIndex"))
    if column_index is None:
        logger.warning("Footer entry without a column index skipped: %r", data)
        return None
    aggregation = data.get("aggregation")
    if not aggregation:
        aggregation = "static"
    return FooterColumnConfig(
        column_index=column_index,
        aggregation=str(aggregation),
        label=data.get("label"),
        decimals=_as_int(data.get("decimals")),
        prefix=str(data.get("prefix") or ""),
        suffix=str(data.get("suffix") or ""),
        empty_text=str(data.get("emptyText", "-")),
        static_text=str(data.get("staticText", data.get("content", "")) or ""),
        thousands_separator=_as_bool(data.get("thousandsSeparator"), True),
    )


def _entries(raw: Any, key: str) -> Iterable[Mapping[str, Any]]:
    """Accept either a bare list or a ``{enabled, <key>: [...]}`` block."""
    if isinstance(raw, Mapping):
        if not _as_bool(raw.get("enabled"), True):
            return []
        raw = raw.get(key)
    if not isinstance(raw, list):
        return []
    return [entry for entry in raw if isinstance(entry, Mapping)]


def parse_grid_config(grid_id: str, data: Mapping[str, Any]) -> GridConfig:
    """Build a GridConfig from JSON-shaped data.

    The column list is mandatory; filters, widgets and footer are optional and
    each malformed entry is skipped on its own.
    """
    if not isinstance(data, Mapping):
        raise GridConfigError(f"Grid config for {grid_id!r} is not a mapping")
    columns = tuple(
        col for col in (parse_column(entry) for entry in _entries(data.get("columns"), "columns")) if col
    )
    if not columns:
        raise GridConfigError(f"Grid config for {grid_id!r} has no usable columns")

    filters: List[FilterDescriptor] = []
    seen_columns = set()
    for entry in _entries(data.get("filterConfig", data.get("filters")), "columns"):
        descriptor = parse_filter(entry, columns)
        if descriptor is None:
            continue
        if descriptor.column_index in seen_columns:
            logger.warning("Duplicate filter for column %s skipped", descriptor.column_index)
            continue
        seen_columns.add(descriptor.column_index)
        filters.append(descriptor)

    widgets = tuple(
        w for w in (parse_widget(entry) for entry in _entries(data.get("cards", data.get("widgets")), "cards")) if w
    )
    footer = tuple(
        f for f in (parse_footer_column(entry) for entry in _entries(data.get("footerConfig", data.get("footer")), "columns")) if f
    )

    order = data.get("defaultOrder")
    default_order: Tuple[int, str] = (0, "asc")
    if isinstance(order, (list, tuple)) and len(order) == 2 and _as_int(order[0]) is not None:
        default_order = (_as_int(order[0]), "desc" if str(order[1]).lower() == "desc" else "asc")

    return GridConfig(
        grid_id=str(data.get("id") or grid_id),
        columns=columns,
        filters=tuple(filters),
        widgets=widgets,
        footer=footer,
        title=str(data.get("title") or ""),
        state_save=_as_bool(data.get("stateSave"), False),
        page_size=_as_int(data.get("pageLength", data.get("pageSize"))) or 25,
        default_order=default_order,
    )
