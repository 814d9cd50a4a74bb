"""
Streamlit filter controls built from a grid's filter descriptors.

Control values live in a mutable mapping (``st.session_state`` in the app)
under ``<grid_id>_filter_<column_index>``; range controls use ``_min``/``_max``
and date ranges ``_start``/``_end`` suffixes. ``read()`` returns the typed
filter value or None when the control places no constraint on its column.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Sequence, Type

import streamlit as st

from cet_dashboard.data.schema import (
    Bounds,
    FilterDescriptor,
    FilterOption,
    FilterType,
    FilterValue,
    normalize_filter_value,
    parse_date,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]


def _bound_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class FilterControl:
    filter_type: FilterType = FilterType.TEXT

    def __init__(
        self,
        grid_id: str,
        descriptor: FilterDescriptor,
        state: MutableMapping[str, Any],
        options: Sequence[FilterOption] = (),
    ):
        self.grid_id = grid_id
        self.descriptor = descriptor
        self.state = state
        self.options = tuple(options)
        self.key = f"{grid_id}_filter_{descriptor.column_index}"

    @property
    def column_index(self) -> int:
        return self.descriptor.column_index

    @property
    def label(self) -> str:
        return self.descriptor.label

    def raw(self) -> Any:
        return self.state.get(self.key)

    def read(self) -> Optional[FilterValue]:
        return normalize_filter_value(self.filter_type, self.raw())

    def clear(self) -> None:
        self.state[self.key] = None

    def write(self, value: FilterValue) -> None:
        self.state[self.key] = value

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        raise NotImplementedError


class TextFilterControl(FilterControl):
    filter_type = FilterType.TEXT

    def clear(self) -> None:
        self.state[self.key] = ""

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        container.text_input(
            self.label,
            key=self.key,
            placeholder=self.descriptor.placeholder or f"Filter {self.label}",
            on_change=on_change,
        )


class SelectFilterControl(FilterControl):
    filter_type = FilterType.SELECT

    def _values(self) -> List[str]:
        return [option.value for option in self.options]

    def _labels(self) -> Dict[str, str]:
        return {option.value: option.label for option in self.options}

    def read(self) -> Optional[FilterValue]:
        raw = self.raw()
        # A value that is no longer an option is no constraint
        if raw is None or str(raw) not in self._values():
            return None
        return normalize_filter_value(self.filter_type, raw)

    def clear(self) -> None:
        self.state[self.key] = ""

    def write(self, value: FilterValue) -> None:
        if str(value) in self._values():
            self.state[self.key] = str(value)
        else:
            logger.warning("Select filter %s has no option %r", self.key, value)

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        labels = self._labels()
        container.selectbox(
            self.label,
            options=[""] + self._values(),
            format_func=lambda v: labels.get(v, "All") if v else "All",
            key=self.key,
            on_change=on_change,
        )


class MultiSelectFilterControl(SelectFilterControl):
    filter_type = FilterType.MULTI_SELECT

    def read(self) -> Optional[FilterValue]:
        raw = self.raw() or []
        known = set(self._values())
        return normalize_filter_value(self.filter_type, [v for v in raw if str(v) in known])

    def clear(self) -> None:
        self.state[self.key] = []

    def write(self, value: FilterValue) -> None:
        known = self._values()
        selected = {str(v) for v in value} if isinstance(value, (set, frozenset, list, tuple)) else {str(value)}
        self.state[self.key] = [v for v in known if v in selected]

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        labels = self._labels()
        container.multiselect(
            self.label,
            options=self._values(),
            format_func=lambda v: labels.get(v, v),
            key=self.key,
            placeholder=self.descriptor.placeholder or "All",
            on_change=on_change,
        )


class RangeFilterControl(FilterControl):
    filter_type = FilterType.RANGE
    low_suffix = "_min"
    high_suffix = "_max"

    @property
    def low_key(self) -> str:
        return self.key + self.low_suffix

    @property
    def high_key(self) -> str:
        return self.key + self.high_suffix

    def raw(self) -> Any:
        return {"min": self.state.get(self.low_key), "max": self.state.get(self.high_key)}

    def clear(self) -> None:
        self.state[self.low_key] = ""
        self.state[self.high_key] = ""

    def write(self, value: FilterValue) -> None:
        bounds = value if isinstance(value, Bounds) else Bounds()
        self.state[self.low_key] = _bound_text(bounds.min)
        self.state[self.high_key] = _bound_text(bounds.max)

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        container.markdown(f"**{self.label}**")
        low_col, high_col = container.columns(2)
        low_col.text_input("Min", key=self.low_key, placeholder="Min", on_change=on_change)
        high_col.text_input("Max", key=self.high_key, placeholder="Max", on_change=on_change)


class DateFilterControl(FilterControl):
    filter_type = FilterType.DATE

    def write(self, value: FilterValue) -> None:
        self.state[self.key] = parse_date(value)

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        container.date_input(self.label, value=None, key=self.key, on_change=on_change)


class DateRangeFilterControl(RangeFilterControl):
    filter_type = FilterType.DATE_RANGE
    low_suffix = "_start"
    high_suffix = "_end"

    def raw(self) -> Any:
        return {"start": self.state.get(self.low_key), "end": self.state.get(self.high_key)}

    def clear(self) -> None:
        self.state[self.low_key] = None
        self.state[self.high_key] = None

    def write(self, value: FilterValue) -> None:
        bounds = value if isinstance(value, Bounds) else Bounds()
        self.state[self.low_key] = parse_date(bounds.start)
        self.state[self.high_key] = parse_date(bounds.end)

    def render(self, container: Any = st, on_change: Optional[ChangeCallback] = None) -> None:
        container.markdown(f"**{self.label}**")
        start_col, end_col = container.columns(2)
        start_col.date_input("From", value=None, key=self.low_key, on_change=on_change)
        end_col.date_input("To", value=None, key=self.high_key, on_change=on_change)


CONTROL_TYPES: Dict[FilterType, Type[FilterControl]] = {
    FilterType.TEXT: TextFilterControl,
    FilterType.SELECT: SelectFilterControl,
    FilterType.MULTI_SELECT: MultiSelectFilterControl,
    FilterType.RANGE: RangeFilterControl,
    FilterType.DATE: DateFilterControl,
    FilterType.DATE_RANGE: DateRangeFilterControl,
}


def build_filter_control(
    grid_id: str,
    descriptor: FilterDescriptor,
    state: MutableMapping[str, Any],
    options: Optional[Sequence[Any]] = None,
) -> Optional[FilterControl]:
    """Build the control for ``descriptor``, or None for an unknown type.

    Select and multiSelect controls use the configured options, falling back
    to ``options`` (normally the column's distinct values) when none are set.
    """
    filter_type = descriptor.filter_type
    if filter_type is None:
        logger.warning(
            "Unknown filter type %r for column %s of grid %s; control omitted",
            descriptor.type,
            descriptor.column_index,
            grid_id,
        )
        return None
    control_options: Sequence[FilterOption] = descriptor.options
    if not control_options and options:
        control_options = tuple(
            opt if isinstance(opt, FilterOption) else FilterOption(value=str(opt), label=str(opt))
            for opt in options
        )
    return CONTROL_TYPES[filter_type](grid_id, descriptor, state, control_options)


