from __future__ import annotations

from dataclasses import dataclass
from typing import Any, MutableMapping, Optional

from cet_dashboard.config import Settings
from cet_dashboard.data.filter_store import KeyValueStore


@dataclass
class PageContext:
    settings: Settings
    state: MutableMapping[str, Any]
    persistence: Optional[KeyValueStore] = None
