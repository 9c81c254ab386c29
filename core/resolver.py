from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from core.catalog import CatalogEntry, resolve_entry
from core.decoder import ColumnRole, candidates_with, discover_territories
from core.filters import FilterEvent, FilterState, TerritoriesLoaded, reduce_filters
from core.sheets import SheetSource, SheetSourceError


logger = logging.getLogger(__name__)


class FilterResolver:
    """Drives the filter state machine, including the territory discovery fetch.

    Each indicator or source change opens a new request id. Fetches run off the
    event loop; when several overlap, only the answer to the newest request is
    applied, so a slow stale response never overwrites a later selection.
    """

    def __init__(
        self,
        source: SheetSource,
        catalog: Sequence[CatalogEntry],
        *,
        state: Optional[FilterState] = None,
        timeout: float = 15.0,
    ):
        self.source = source
        self.catalog = list(catalog)
        self.timeout = timeout
        self._state = state or FilterState()

    @property
    def state(self) -> FilterState:
        return self._state

    async def dispatch(self, event: FilterEvent) -> FilterState:
        before = self._state.request_id
        self._state = reduce_filters(self._state, event, self.catalog)
        if not self._state.territories_loading or self._state.request_id == before:
            return self._state

        request_id = self._state.request_id
        territories, error = await self.discover(self._state)
        self._state = reduce_filters(
            self._state,
            TerritoriesLoaded(request_id=request_id, territories=tuple(territories), error=error),
            self.catalog,
        )
        return self._state

    async def discover(self, state: FilterState) -> Tuple[List[str], Optional[str]]:
        sel = state.selection
        entry = resolve_entry(self.catalog, sel.indicator_id, sel.source)
        if entry is None or not entry.a1_range:
            return [], None
        try:
            values = await asyncio.wait_for(
                asyncio.to_thread(self.source.fetch_range, entry.a1_range),
                timeout=self.timeout,
            )
        except SheetSourceError as exc:
            logger.warning("Territory discovery failed for %s: %s", entry.a1_range, exc)
            return [], str(exc)
        except asyncio.TimeoutError:
            logger.warning("Territory discovery timed out for %s", entry.a1_range)
            return [], f"Timed out after {self.timeout:g}s"
        territories = discover_territories(
            values,
            candidates=candidates_with(ColumnRole.TERRITORY, entry.territory_column),
        )
        return territories, None
