"""
Name-to-function registry resolving a column's cell content.

Column configs reference render functions by name. Every render function takes
``(cell_value, context, row, auxiliary)``; in the ``display`` context it
returns presentation markup, in every other context it must return the raw
cell value untouched so sorting, searching and type detection see the
original data.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from cet_dashboard.data.schema import ColumnDescriptor

logger = logging.getLogger(__name__)

RenderFunction = Callable[[Any, str, Mapping[str, Any], Any], Any]
CellRenderer = Callable[[Any, str, Mapping[str, Any]], Any]


class RenderContext(str, Enum):
    DISPLAY = "display"
    SORT = "sort"
    FILTER = "filter"
    TYPE = "type"


def identity_render(value: Any, context: str, row: Mapping[str, Any], auxiliary: Any = None) -> Any:
    return value


class RenderRegistry:
    def __init__(self) -> None:
        self._functions: Dict[str, RenderFunction] = {}
        self._warned: set = set()

    def register(self, name: str, fn: RenderFunction) -> None:
        if not callable(fn):
            raise TypeError(f"Render function {name!r} is not callable")
        if name in self._functions:
            logger.debug("Render function %s replaced", name)
        self._functions[name] = fn

    def resolve(self, name: Optional[str]) -> RenderFunction:
        if not name:
            return identity_render
        fn = self._functions.get(name)
        if fn is None:
            if name not in self._warned:
                logger.warning("Render function not found: %s; using raw values", name)
                self._warned.add(name)
            return identity_render
        return fn

    def names(self) -> List[str]:
        return sorted(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def bind_column(self, column: ColumnDescriptor) -> CellRenderer:
        """Return a cell renderer for ``column`` with its URL template as auxiliary."""
        fn = self.resolve(column.render_name)
        render_name = column.render_name
        url_template = column.url_template

        def _render(value: Any, context: str, row: Mapping[str, Any]) -> Any:
            try:
                return fn(value, context, row, url_template)
            except Exception:
                logger.warning(
                    "Render function %s failed for value %r (%s); using raw value",
                    render_name,
                    value,
                    context,
                    exc_info=True,
                )
                return value

        return _render
