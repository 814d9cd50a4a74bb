"""
Pandas-backed grid used by every CET page, plus its Streamlit rendering.

``DataGrid`` owns sorting, global search and paging over a list of row
records. The filter engine talks to it only through the ``GridController``
surface: per-column predicates over raw values, state-change notifications,
the filtered (unpaginated) row set and an explicit redraw.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd
import streamlit as st

from cet_dashboard.data.schema import ColumnDescriptor, cell_text, get_nested_value, is_missing
from cet_dashboard.ui.components.render_registry import (
    CellRenderer,
    RenderContext,
    RenderRegistry,
)

logger = logging.getLogger(__name__)

ColumnPredicate = Callable[[pd.Series], pd.Series]
GridListener = Callable[["GridEvent"], None]


class GridEvent(str, Enum):
    FILTER = "filter"
    SEARCH = "search"
    SORT = "sort"
    PAGE = "page"
    DATA = "data"


# Events that change which rows are in the filtered set
ROW_SET_EVENTS = frozenset({GridEvent.FILTER, GridEvent.SEARCH, GridEvent.DATA})


class GridController(Protocol):
    @property
    def column_count(self) -> int:
        ...

    def set_column_predicate(self, column_index: int, predicate: Optional[ColumnPredicate]) -> None:
        ...

    def subscribe(self, listener: GridListener) -> Callable[[], None]:
        ...

    def filtered_rows(self) -> List[Mapping[str, Any]]:
        ...

    def column_values(self, column_index: int, filtered: bool = True) -> pd.Series:
        ...

    def draw(self, event: GridEvent = GridEvent.FILTER) -> None:
        ...


def _sort_key(values: pd.Series) -> pd.Series:
    """Numeric ordering when every present value parses, text ordering otherwise."""
    present = values.map(lambda v: not is_missing(v) and v != "").astype(bool)
    numeric = pd.to_numeric(values.where(present), errors="coerce")
    if numeric[present].notna().all():
        return numeric
    return values.map(cell_text).str.lower()


class DataGrid:
    def __init__(
        self,
        columns: Sequence[ColumnDescriptor],
        rows: Optional[Sequence[Mapping[str, Any]]] = None,
        registry: Optional[RenderRegistry] = None,
        page_size: int = 25,
        default_order: Optional[Tuple[int, str]] = None,
        grid_id: str = "grid",
    ):
        self.grid_id = grid_id
        self.columns: Tuple[ColumnDescriptor, ...] = tuple(columns)
        self.registry = registry or RenderRegistry()
        self._renderers: List[CellRenderer] = [self.registry.bind_column(col) for col in self.columns]
        self._predicates: Dict[int, ColumnPredicate] = {}
        self._listeners: List[GridListener] = []
        self._search = ""
        self._order: Optional[Tuple[int, str]] = None
        self._page = 0
        self._page_size = max(int(page_size), 1)
        self._rows: List[Mapping[str, Any]] = []
        self._frame = pd.DataFrame()
        self._visible = pd.RangeIndex(0)
        self.draw_count = 0
        if default_order is not None:
            self._set_order(*default_order)
        self._load(rows or [])
        self._recompute()

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def _load(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self._rows = list(rows)
        self._frame = pd.DataFrame(
            {
                idx: pd.Series([get_nested_value(row, col.data_path) for row in self._rows], dtype=object)
                for idx, col in enumerate(self.columns)
            },
            index=pd.RangeIndex(len(self._rows)),
        )

    def set_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        """Replace the row set and redraw; predicates and search stay installed."""
        self._load(rows)
        self.draw(GridEvent.DATA)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def total_count(self) -> int:
        return len(self._rows)

    @property
    def filtered_count(self) -> int:
        return len(self._visible)

    # ------------------------------------------------------------------
    # Grid controller surface
    # ------------------------------------------------------------------

    def set_column_predicate(self, column_index: int, predicate: Optional[ColumnPredicate]) -> None:
        """Install or remove a column predicate. Takes effect on the next draw."""
        if not 0 <= column_index < len(self.columns):
            raise IndexError(f"Column index {column_index} out of range for grid {self.grid_id}")
        if predicate is None:
            self._predicates.pop(column_index, None)
        else:
            self._predicates[column_index] = predicate

    def predicate_columns(self) -> List[int]:
        return sorted(self._predicates)

    def subscribe(self, listener: GridListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def draw(self, event: GridEvent = GridEvent.FILTER) -> None:
        event = GridEvent(event)
        self.draw_count += 1
        if event is not GridEvent.PAGE:
            self._recompute()
        if event in ROW_SET_EVENTS:
            self._page = 0
        self._clamp_page()
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("Listener on grid %s failed for %s event", self.grid_id, event.value, exc_info=True)

    def filtered_rows(self) -> List[Mapping[str, Any]]:
        return [self._rows[pos] for pos in self._visible]

    def column_values(self, column_index: int, filtered: bool = True) -> pd.Series:
        values = self._frame[column_index]
        if filtered:
            return values.loc[self._visible]
        return values

    def unique_values(self, column_index: int) -> List[str]:
        """Distinct non-empty display strings of a column across all rows."""
        texts = {cell_text(v) for v in self._frame[column_index]} if len(self._frame) else set()
        texts.discard("")
        return sorted(texts)

    # ------------------------------------------------------------------
    # Search, ordering and paging
    # ------------------------------------------------------------------

    @property
    def search_text(self) -> str:
        return self._search

    def search(self, text: Optional[str]) -> None:
        self._search = (text or "").strip()
        self.draw(GridEvent.SEARCH)

    def _set_order(self, column_index: int, direction: str) -> None:
        if not 0 <= column_index < len(self.columns) or not self.columns[column_index].orderable:
            logger.warning("Grid %s cannot order by column %s", self.grid_id, column_index)
            return
        self._order = (column_index, "desc" if direction == "desc" else "asc")

    def order(self, column_index: int, direction: str = "asc") -> None:
        self._set_order(column_index, direction)
        self.draw(GridEvent.SORT)

    @property
    def page_index(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def page_count(self) -> int:
        return max(1, -(-len(self._visible) // self._page_size))

    def page(self, index: int) -> None:
        self._page = int(index)
        self.draw(GridEvent.PAGE)

    def set_page_size(self, size: int) -> None:
        self._page_size = max(int(size), 1)
        self._page = 0
        self.draw(GridEvent.PAGE)

    def _clamp_page(self) -> None:
        self._page = min(max(self._page, 0), self.page_count - 1)

    def page_rows(self) -> List[Mapping[str, Any]]:
        return [self._rows[pos] for pos in self._page_positions()]

    def _page_positions(self) -> pd.Index:
        start = self._page * self._page_size
        return self._visible[start:start + self._page_size]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _column_context_values(self, column_index: int, context: RenderContext) -> pd.Series:
        render = self._renderers[column_index]
        values = self._frame[column_index]
        return pd.Series(
            [render(value, context.value, self._rows[pos]) for pos, value in values.items()],
            index=values.index,
            dtype=object,
        )

    def _predicate_mask(self) -> pd.Series:
        mask = pd.Series(True, index=self._frame.index, dtype=bool)
        for column_index, predicate in sorted(self._predicates.items()):
            try:
                matched = predicate(self._frame[column_index])
            except Exception:
                logger.warning(
                    "Predicate for column %s of grid %s failed; column left unconstrained",
                    column_index,
                    self.grid_id,
                    exc_info=True,
                )
                continue
            mask &= matched.reindex(self._frame.index, fill_value=False).astype(bool)
        return mask

    def _search_mask(self) -> pd.Series:
        mask = pd.Series(False, index=self._frame.index, dtype=bool)
        needle = self._search.lower()
        for column_index, column in enumerate(self.columns):
            if not column.searchable:
                continue
            text = self._column_context_values(column_index, RenderContext.FILTER).map(cell_text).str.lower()
            mask |= text.str.contains(needle, regex=False)
        return mask

    def _recompute(self) -> None:
        if self._frame.empty:
            self._visible = pd.RangeIndex(0)
            return
        mask = self._predicate_mask()
        if self._search:
            mask &= self._search_mask()
        visible = self._frame.index[mask.to_numpy()]
        if self._order is not None:
            column_index, direction = self._order
            values = self._column_context_values(column_index, RenderContext.SORT).loc[visible]
            visible = values.sort_values(
                key=_sort_key,
                ascending=direction == "asc",
                kind="stable",
                na_position="last",
            ).index
        self._visible = visible

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def rendered_page(self) -> pd.DataFrame:
        positions = self._page_positions()
        data = {
            column.title: [
                self._renderers[idx](self._frame.at[pos, idx], RenderContext.DISPLAY.value, self._rows[pos])
                for pos in positions
            ]
            for idx, column in enumerate(self.columns)
        }
        return pd.DataFrame(data, columns=[column.title for column in self.columns])

    def filtered_frame(self) -> pd.DataFrame:
        """Raw values of the filtered rows, titled columns, for export."""
        frame = self._frame.loc[self._visible].copy()
        frame.columns = [column.title for column in self.columns]
        return frame

    def to_html(self) -> str:
        page = self.rendered_page()
        if page.empty:
            return ""
        return page.to_html(
            escape=False,
            index=False,
            border=0,
            classes="table table-sm table-hover cet-grid",
            table_id=f"{self.grid_id}-table",
        )


def render_grid(grid: DataGrid, key: Optional[str] = None, export_file_name: Optional[str] = None) -> None:
    """Draw the search box, pager and current page for ``grid``."""
    key = key or grid.grid_id
    search_key = f"{key}_search"
    search_col, page_col = st.columns([3, 1])
    search_col.text_input(
        "Search",
        key=search_key,
        placeholder="Search all columns",
        on_change=lambda: grid.search(st.session_state.get(search_key, "")),
    )
    if grid.page_count > 1:
        selected = page_col.number_input(
            "Page",
            min_value=1,
            max_value=grid.page_count,
            value=grid.page_index + 1,
            step=1,
            # keyed on position so a reset page shows up in the widget
            key=f"{key}_page_{grid.page_index}_{grid.filtered_count}",
        )
        if int(selected) - 1 != grid.page_index:
            grid.page(int(selected) - 1)

    if grid.filtered_count == 0:
        st.info("No matching records found.")
    else:
        st.markdown(grid.to_html(), unsafe_allow_html=True)

    first = grid.page_index * grid.page_size + 1 if grid.filtered_count else 0
    last = min((grid.page_index + 1) * grid.page_size, grid.filtered_count)
    summary = f"Showing {first} to {last} of {grid.filtered_count} entries"
    if grid.filtered_count != grid.total_count:
        summary += f" (filtered from {grid.total_count} total entries)"
    st.caption(summary)

    if grid.filtered_count:
        csv_bytes = grid.filtered_frame().to_csv(index=False).encode("utf-8")
        st.download_button(
            "Download CSV",
            data=csv_bytes,
            file_name=export_file_name or f"{key}.csv",
            mime="text/csv",
            key=f"{key}_download",
        )
