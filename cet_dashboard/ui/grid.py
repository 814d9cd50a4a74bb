"""
Wiring of one grid instance: grid, filter controls, filter engine and store,
footer and metric card bindings.

Each optional block (filters, footer, cards) is set up on its own; a failure
in one is logged and leaves that feature off while the grid still displays.
Instances share nothing, so several grids can live on one page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from cet_dashboard.config import Settings
from cet_dashboard.data.aggregation import (
    AggregationBinder,
    FooterAggregator,
    Formula,
    MetricUpdate,
    formulas_from_config,
)
from cet_dashboard.data.filter_store import ActiveFilterStore, KeyValueStore
from cet_dashboard.data.filters import FilterEngine, FilterHooks
from cet_dashboard.data.schema import FilterOption, FilterType, GridConfig
from cet_dashboard.ui.components.filter_controls import FilterControl, build_filter_control
from cet_dashboard.ui.components.render_registry import RenderRegistry
from cet_dashboard.ui.components.renderers import default_registry
from cet_dashboard.ui.components.tables import DataGrid
from cet_dashboard.ui.utils.debounce import DeferredScheduler

logger = logging.getLogger(__name__)

OPTION_TYPES = {FilterType.SELECT, FilterType.MULTI_SELECT}


@dataclass
class GridInstance:
    config: GridConfig
    grid: DataGrid
    store: ActiveFilterStore
    engine: FilterEngine
    scheduler: DeferredScheduler
    controls: Dict[int, FilterControl] = field(default_factory=dict)
    binder: Optional[AggregationBinder] = None
    footer: Optional[FooterAggregator] = None
    disabled_features: List[str] = field(default_factory=list)

    @property
    def grid_id(self) -> str:
        return self.config.grid_id

    def on_control_change(self, column_index: int) -> None:
        control = self.controls.get(column_index)
        if control is None:
            return
        self.engine.update(column_index, control.filter_type, control.read())

    def clear_filters(self) -> None:
        self.engine.clear_all()
        for control in self.controls.values():
            control.clear()

    def settle(self) -> int:
        """Fire due and pending debounced work before the grid is drawn."""
        return self.scheduler.run_due() + self.engine.flush()

    def set_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        """Swap in fresh rows; filters stay applied and data-derived options follow the rows."""
        self.grid.set_rows(rows)
        for column_index, control in self.controls.items():
            if control.filter_type in OPTION_TYPES and not control.descriptor.options:
                control.options = _column_options(self.grid, column_index)

    @property
    def metric_updates(self) -> Dict[str, MetricUpdate]:
        return dict(self.binder.latest) if self.binder else {}

    @property
    def footer_values(self) -> Dict[int, str]:
        return dict(self.footer.values) if self.footer else {}


def _column_options(grid: DataGrid, column_index: int) -> Tuple[FilterOption, ...]:
    return tuple(FilterOption(value=v, label=v) for v in grid.unique_values(column_index))


def _build_controls(
    config: GridConfig,
    grid: DataGrid,
    state: MutableMapping[str, Any],
) -> Dict[int, FilterControl]:
    controls: Dict[int, FilterControl] = {}
    for descriptor in config.filters:
        options = None
        if descriptor.filter_type in OPTION_TYPES and not descriptor.options:
            options = _column_options(grid, descriptor.column_index)
        control = build_filter_control(config.grid_id, descriptor, state, options)
        if control is not None:
            controls[descriptor.column_index] = control
    return controls


def init_grid(
    config: GridConfig,
    rows: Sequence[Mapping[str, Any]],
    state: Optional[MutableMapping[str, Any]] = None,
    settings: Optional[Settings] = None,
    registry: Optional[RenderRegistry] = None,
    persistence: Optional[KeyValueStore] = None,
    formulas: Optional[Mapping[str, Formula]] = None,
    hooks: Optional[FilterHooks] = None,
    scheduler: Optional[DeferredScheduler] = None,
) -> GridInstance:
    """Build an independent grid instance from ``config`` and ``rows``.

    ``state`` holds filter control values (``st.session_state`` in the app).
    Filter state is persisted through ``persistence`` only when the grid is
    configured with ``stateSave``; persisted filters are re-applied here.
    """
    settings = settings or Settings()
    state = {} if state is None else state
    grid = DataGrid(
        config.columns,
        rows,
        registry=registry or default_registry(),
        page_size=config.page_size or settings.default_page_size,
        default_order=config.default_order,
        grid_id=config.grid_id,
    )
    store = ActiveFilterStore(config.grid_id, persistence if config.state_save else None)
    scheduler = scheduler or DeferredScheduler()
    engine = FilterEngine(
        grid,
        store,
        descriptors=config.filters,
        scheduler=scheduler,
        debounce_ms=settings.text_filter_debounce_ms,
        hooks=hooks,
    )
    instance = GridInstance(config=config, grid=grid, store=store, engine=engine, scheduler=scheduler)

    if config.filters:
        try:
            instance.controls = _build_controls(config, grid, state)
            if store.persistent:
                for column_index, active in engine.restore().items():
                    control = instance.controls.get(column_index)
                    if control is not None:
                        control.write(active.value)
        except Exception:
            logger.exception("Filters for grid %s could not be initialized", config.grid_id)
            instance.controls = {}
            instance.disabled_features.append("filters")

    if config.footer:
        try:
            footer = FooterAggregator(config.footer)
            footer.bind(grid)
            instance.footer = footer
        except Exception:
            logger.exception("Footer for grid %s could not be initialized", config.grid_id)
            instance.disabled_features.append("footer")

    if config.widgets:
        try:
            bound = formulas_from_config(config.widgets)
            bound.update(formulas or {})
            binder = AggregationBinder()
            binder.bind(grid, config.widgets, bound)
            instance.binder = binder
        except Exception:
            logger.exception("Metric cards for grid %s could not be initialized", config.grid_id)
            instance.disabled_features.append("cards")

    logger.info(
        "Grid %s initialized: %d rows, %d filter controls, footer=%s, cards=%s",
        config.grid_id,
        grid.total_count,
        len(instance.controls),
        instance.footer is not None,
        instance.binder is not None,
    )
    return instance
