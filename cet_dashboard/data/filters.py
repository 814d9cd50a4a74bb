"""
Column filter composition for CET grids.

Each active filter becomes a column predicate over the column's raw cell
values; the grid keeps a row only when every installed predicate matches it.
Values are compared directly (substring, equality, membership, bounds), never
through patterns built from user input.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import pandas as pd

from cet_dashboard.data.filter_store import ActiveFilterStore
from cet_dashboard.data.schema import (
    ActiveFilter,
    Bounds,
    FilterDescriptor,
    FilterType,
    FilterValue,
    cell_text,
    normalize_filter_value,
    parse_date,
    parse_filter_type,
    parse_number,
)
from cet_dashboard.ui.components.tables import ColumnPredicate, GridController, GridEvent
from cet_dashboard.ui.utils.debounce import DeferredScheduler, Debouncer, Scheduler

logger = logging.getLogger(__name__)


def _text_predicate(needle: str) -> ColumnPredicate:
    needle = needle.lower()

    def predicate(values: pd.Series) -> pd.Series:
        return values.map(lambda v: needle in cell_text(v).lower()).astype(bool)

    return predicate


def _select_predicate(selected: str) -> ColumnPredicate:
    def predicate(values: pd.Series) -> pd.Series:
        return values.map(lambda v: cell_text(v) == selected).astype(bool)

    return predicate


def _multi_select_predicate(selected: frozenset) -> ColumnPredicate:
    def predicate(values: pd.Series) -> pd.Series:
        return values.map(lambda v: cell_text(v) in selected).astype(bool)

    return predicate


def _within(value: Any, bounds: Bounds) -> bool:
    if bounds.min is not None and value < bounds.min:
        return False
    if bounds.max is not None and value > bounds.max:
        return False
    return True


def _range_predicate(bounds: Bounds) -> ColumnPredicate:
    def predicate(values: pd.Series) -> pd.Series:
        numbers = values.map(parse_number).astype(float)
        inside = pd.Series(True, index=values.index, dtype=bool)
        if bounds.min is not None:
            inside &= numbers >= bounds.min
        if bounds.max is not None:
            inside &= numbers <= bounds.max
        # Cells that are not numbers pass
        return numbers.isna() | inside

    return predicate


def _date_predicate(day: dt.date) -> ColumnPredicate:
    def predicate(values: pd.Series) -> pd.Series:
        def _match(value: Any) -> bool:
            parsed = parse_date(value)
            return parsed is None or parsed == day

        return values.map(_match).astype(bool)

    return predicate


def _date_range_predicate(bounds: Bounds) -> ColumnPredicate:
    def predicate(values: pd.Series) -> pd.Series:
        def _match(value: Any) -> bool:
            parsed = parse_date(value)
            return parsed is None or _within(parsed, bounds)

        return values.map(_match).astype(bool)

    return predicate


_PREDICATE_BUILDERS: Dict[FilterType, Callable[[Any], ColumnPredicate]] = {
    FilterType.TEXT: _text_predicate,
    FilterType.SELECT: _select_predicate,
    FilterType.MULTI_SELECT: _multi_select_predicate,
    FilterType.RANGE: _range_predicate,
    FilterType.DATE: _date_predicate,
    FilterType.DATE_RANGE: _date_range_predicate,
}


def column_predicate(active_filter: ActiveFilter) -> ColumnPredicate:
    """Build the predicate for one active filter.

    Text matches are case-insensitive substrings; select matches are exact.
    Range, date and dateRange filters let through cells that do not parse.
    """
    return _PREDICATE_BUILDERS[active_filter.type](active_filter.value)


@dataclass
class FilterHooks:
    """Optional per-grid callbacks around filter application.

    ``validate(grid_id, column_index, value, type)`` can veto a value,
    ``custom_predicate(grid_id, column_index, value, type)`` can replace the
    built-in predicate by returning one, and ``on_change(grid_id,
    column_index, value, type)`` is told about every applied or cleared value.
    """

    validate: Optional[Callable[[str, int, Any, FilterType], bool]] = None
    custom_predicate: Optional[Callable[[str, int, FilterValue, FilterType], Optional[ColumnPredicate]]] = None
    on_change: Optional[Callable[[str, int, Optional[FilterValue], FilterType], None]] = None


class FilterEngine:
    """Keeps a grid's column predicates and its ActiveFilterStore in step.

    Every mutation goes through this class so that each predicate on the grid
    has a store entry and each store entry has a predicate. Text updates are
    debounced per column; every other change applies at once. Each public
    operation ends in at most one grid redraw.
    """

    def __init__(
        self,
        grid: GridController,
        store: ActiveFilterStore,
        descriptors: Iterable[FilterDescriptor] = (),
        scheduler: Optional[Scheduler] = None,
        debounce_ms: int = 300,
        hooks: Optional[FilterHooks] = None,
    ):
        self.grid = grid
        self.store = store
        self.hooks = hooks or FilterHooks()
        self.descriptors: Dict[int, FilterDescriptor] = {
            d.column_index: d for d in descriptors if d.filter_type is not None
        }
        self.scheduler = scheduler or DeferredScheduler()
        self._debouncer = Debouncer(self.scheduler, debounce_ms)

    @property
    def grid_id(self) -> str:
        return self.store.grid_id

    @property
    def active_filters(self) -> Dict[int, ActiveFilter]:
        return self.store.snapshot()

    def is_pending(self, column_index: int) -> bool:
        return self._debouncer.is_pending(column_index)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _validate(self, column_index: int, value: Any, filter_type: FilterType) -> bool:
        if self.hooks.validate is None:
            return True
        try:
            accepted = bool(self.hooks.validate(self.grid_id, column_index, value, filter_type))
        except Exception:
            logger.warning("Filter validation hook failed for %s column %s", self.grid_id, column_index, exc_info=True)
            return False
        if not accepted:
            logger.info("Filter value %r rejected for %s column %s", value, self.grid_id, column_index)
        return accepted

    def _predicate(self, active: ActiveFilter) -> ColumnPredicate:
        if self.hooks.custom_predicate is not None:
            try:
                custom = self.hooks.custom_predicate(self.grid_id, active.column_index, active.value, active.type)
            except Exception:
                logger.warning(
                    "Custom predicate hook failed for %s column %s; using built-in",
                    self.grid_id,
                    active.column_index,
                    exc_info=True,
                )
                custom = None
            if custom is not None:
                return custom
        return column_predicate(active)

    def _notify(self, column_index: int, value: Optional[FilterValue], filter_type: FilterType) -> None:
        if self.hooks.on_change is None:
            return
        try:
            self.hooks.on_change(self.grid_id, column_index, value, filter_type)
        except Exception:
            logger.warning("Filter change hook failed for %s column %s", self.grid_id, column_index, exc_info=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _accept(self, active: ActiveFilter) -> Optional[ActiveFilter]:
        if not 0 <= active.column_index < self.grid.column_count:
            logger.warning("Filter on unknown column %s of grid %s dropped", active.column_index, self.grid_id)
            return None
        filter_type = parse_filter_type(active.type)
        if filter_type is None:
            logger.warning("Unknown filter type %r on %s column %s dropped", active.type, self.grid_id, active.column_index)
            return None
        value = normalize_filter_value(filter_type, active.value)
        if value is None or not self._validate(active.column_index, value, filter_type):
            return None
        return ActiveFilter(column_index=active.column_index, type=filter_type, value=value)

    def apply(self, active_filters: Mapping[int, ActiveFilter]) -> Dict[int, ActiveFilter]:
        """Replace every column predicate with ``active_filters`` and redraw once.

        Entries without a constraint or rejected by validation are left out.
        Returns the filters actually applied.
        """
        self._debouncer.cancel_all()
        accepted: Dict[int, ActiveFilter] = {}
        for column_index, active in active_filters.items():
            if active.column_index != column_index:
                logger.warning("Filter keyed %s targets column %s; dropped", column_index, active.column_index)
                continue
            normalized = self._accept(active)
            if normalized is not None:
                accepted[column_index] = normalized

        for column_index in self.store.snapshot():
            if column_index not in accepted:
                self.grid.set_column_predicate(column_index, None)
        for column_index, active in accepted.items():
            self.grid.set_column_predicate(column_index, self._predicate(active))
        self.store.replace(accepted)
        self.grid.draw(GridEvent.FILTER)
        return dict(accepted)

    def update(self, column_index: int, filter_type: Any, value: Any) -> None:
        """Set or clear one column's filter from a control value."""
        parsed = parse_filter_type(filter_type)
        if parsed is None:
            logger.warning("Unknown filter type %r for %s column %s ignored", filter_type, self.grid_id, column_index)
            return
        if parsed is FilterType.TEXT:
            self._debouncer.call(column_index, self._commit, column_index, parsed, value)
            return
        self._debouncer.cancel(column_index)
        self._commit(column_index, parsed, value)

    def _commit(self, column_index: int, filter_type: FilterType, value: Any) -> None:
        normalized = normalize_filter_value(filter_type, value)
        if normalized is None:
            if self._remove(column_index):
                self.grid.draw(GridEvent.FILTER)
                self._notify(column_index, None, filter_type)
            return
        active = self._accept(ActiveFilter(column_index=column_index, type=filter_type, value=normalized))
        if active is None:
            return
        if self.store.get(column_index) == active:
            return
        self.grid.set_column_predicate(column_index, self._predicate(active))
        self.store.set(column_index, active)
        self.grid.draw(GridEvent.FILTER)
        self._notify(column_index, active.value, filter_type)

    def _remove(self, column_index: int) -> bool:
        if column_index not in self.store:
            return False
        self.grid.set_column_predicate(column_index, None)
        self.store.remove(column_index)
        return True

    def clear_filter(self, column_index: int) -> bool:
        """Drop one column's filter; the remaining filters stay applied."""
        self._debouncer.cancel(column_index)
        previous = self.store.get(column_index)
        if not self._remove(column_index):
            return False
        self.grid.draw(GridEvent.FILTER)
        self._notify(column_index, None, previous.type)
        return True

    def clear_all(self) -> None:
        self._debouncer.cancel_all()
        for column_index in self.store.snapshot():
            self.grid.set_column_predicate(column_index, None)
        self.store.clear()
        self.grid.draw(GridEvent.FILTER)

    def restore(self) -> Dict[int, ActiveFilter]:
        """Re-apply persisted filters that still match a configured filter.

        A persisted entry survives only if its column still has a filter
        descriptor of the same type. Returns the filters now applied.
        """
        persisted = self.store.restore()
        valid: Dict[int, ActiveFilter] = {}
        for column_index, active in persisted.items():
            descriptor = self.descriptors.get(column_index)
            if descriptor is None or descriptor.filter_type is not active.type:
                logger.warning(
                    "Persisted %s filter on %s column %s no longer configured; dropped",
                    active.type.value,
                    self.grid_id,
                    column_index,
                )
                continue
            valid[column_index] = active
        if not valid and not len(self.store):
            if persisted:
                self.store.clear()
            return {}
        applied = self.apply(valid)
        if applied:
            logger.info("Restored %d filter(s) for grid %s", len(applied), self.grid_id)
        return applied

    def flush(self) -> int:
        """Apply pending debounced text filters now."""
        return self._debouncer.flush()
