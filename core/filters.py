from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from core.catalog import CatalogEntry, indicator_options, source_options


@dataclass(frozen=True)
class FilterSelection:
    area: Optional[str] = None
    indicator_id: Optional[str] = None
    source: Optional[str] = None
    territory: Optional[str] = None


def _as_opt_str(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_filters(raw: Optional[dict]) -> FilterSelection:
    raw = raw or {}
    return FilterSelection(
        area=_as_opt_str(raw.get("area")),
        indicator_id=_as_opt_str(raw.get("indicator_id", raw.get("indicador"))),
        source=_as_opt_str(raw.get("source", raw.get("fonte"))),
        territory=_as_opt_str(raw.get("territory", raw.get("territorio"))),
    )


class FilterStage(str, Enum):
    EMPTY = "empty"
    AREA_SELECTED = "area_selected"
    INDICATOR_SELECTED = "indicator_selected"
    SOURCE_RESOLVED = "source_resolved"
    TERRITORY_RESOLVED = "territory_resolved"


@dataclass(frozen=True)
class FilterState:
    selection: FilterSelection = field(default_factory=FilterSelection)
    territory_options: Tuple[str, ...] = ()
    territories_loading: bool = False
    request_id: int = 0
    error: Optional[str] = None

    @property
    def stage(self) -> FilterStage:
        sel = self.selection
        if sel.territory and sel.source and sel.indicator_id:
            return FilterStage.TERRITORY_RESOLVED
        if sel.source and sel.indicator_id:
            return FilterStage.SOURCE_RESOLVED
        if sel.indicator_id:
            return FilterStage.INDICATOR_SELECTED
        if sel.area:
            return FilterStage.AREA_SELECTED
        return FilterStage.EMPTY


@dataclass(frozen=True)
class SelectArea:
    area: Optional[str]


@dataclass(frozen=True)
class SelectIndicator:
    indicator_id: Optional[str]


@dataclass(frozen=True)
class SelectSource:
    source: Optional[str]


@dataclass(frozen=True)
class SelectTerritory:
    territory: Optional[str]


@dataclass(frozen=True)
class TerritoriesLoaded:
    request_id: int
    territories: Tuple[str, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class ClearFilters:
    pass


FilterEvent = Union[SelectArea, SelectIndicator, SelectSource, SelectTerritory, TerritoriesLoaded, ClearFilters]


def _resolve_source(catalog: Sequence[CatalogEntry], indicator_id: Optional[str], current: Optional[str]) -> Optional[str]:
    sources = source_options(catalog, indicator_id)
    if len(sources) == 1:
        return sources[0]
    if current in sources:
        return current
    return None


def _start_territory_request(state: FilterState, selection: FilterSelection) -> FilterState:
    if not selection.indicator_id:
        return replace(
            state,
            selection=replace(selection, territory=None),
            territory_options=(),
            territories_loading=False,
            request_id=state.request_id + 1,
            error=None,
        )
    return replace(
        state,
        selection=selection,
        territory_options=(),
        territories_loading=True,
        request_id=state.request_id + 1,
        error=None,
    )


def _apply_territories(selection: FilterSelection, territories: Tuple[str, ...]) -> FilterSelection:
    current = selection.territory
    if len(territories) == 1:
        # the only option wins over any spelling of the current pick ("rj" -> "RJ")
        return replace(selection, territory=territories[0])
    if territories and current not in territories:
        return replace(selection, territory=None)
    return selection


def reduce_filters(state: FilterState, event: FilterEvent, catalog: Sequence[CatalogEntry]) -> FilterState:
    """Apply one filter event and return the next state.

    Area narrows indicators, indicator narrows sources, and indicator plus
    source select the sheet whose territory column feeds the territory options.
    A change of indicator or source opens a new territory request; the caller
    fetches it and reports back with :class:`TerritoriesLoaded`. Results for an
    older request id are dropped.
    """
    sel = state.selection

    if isinstance(event, ClearFilters):
        return FilterState(request_id=state.request_id + 1)

    if isinstance(event, SelectArea):
        area = _as_opt_str(event.area)
        indicators = indicator_options(catalog, area)
        indicator_id = indicators[0][0] if len(indicators) == 1 else None
        source = _resolve_source(catalog, indicator_id, None)
        selection = FilterSelection(area=area, indicator_id=indicator_id, source=source, territory=sel.territory)
        return _start_territory_request(state, selection)

    if isinstance(event, SelectIndicator):
        indicator_id = _as_opt_str(event.indicator_id)
        valid_ids = [i for i, _ in indicator_options(catalog, sel.area)] if sel.area else None
        if indicator_id and valid_ids is not None and indicator_id not in valid_ids:
            indicator_id = None
        source = _resolve_source(catalog, indicator_id, sel.source)
        return _start_territory_request(state, replace(sel, indicator_id=indicator_id, source=source))

    if isinstance(event, SelectSource):
        sources = source_options(catalog, sel.indicator_id)
        source = _as_opt_str(event.source)
        if source not in sources:
            source = sources[0] if len(sources) == 1 else None
        if source == sel.source and (state.territory_options or state.territories_loading):
            return state
        return _start_territory_request(state, replace(sel, source=source))

    if isinstance(event, SelectTerritory):
        territory = _as_opt_str(event.territory)
        if territory and state.territory_options and territory not in state.territory_options:
            return state
        return replace(state, selection=replace(sel, territory=territory))

    if isinstance(event, TerritoriesLoaded):
        if event.request_id != state.request_id or not state.territories_loading:
            return state
        territories = tuple(dict.fromkeys(t for t in event.territories if t))
        return replace(
            state,
            selection=_apply_territories(sel, territories),
            territory_options=territories,
            territories_loading=False,
            error=event.error,
        )

    return state
