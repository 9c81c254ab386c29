from __future__ import annotations

from dataclasses import replace

import pytest

from core.catalog import CatalogEntry
from core.filters import (
    ClearFilters,
    FilterSelection,
    FilterStage,
    FilterState,
    SelectArea,
    SelectIndicator,
    SelectSource,
    SelectTerritory,
    TerritoriesLoaded,
    normalize_filters,
    reduce_filters,
)


def _entry(area: str, indicator_id: str, source: str, sheet: str) -> CatalogEntry:
    return CatalogEntry(
        area=area,
        indicator_id=indicator_id,
        indicator_name=indicator_id.upper(),
        source=source,
        sheet_name=sheet,
    )


CATALOG = [
    _entry("Area1", "X", "A", "x_a"),
    _entry("Area1", "Y", "B", "y_b"),
    _entry("Area1", "Y", "C", "y_c"),
    _entry("Area2", "Z", "A", "z_a"),
]


def _reduce(state, *events):
    for event in events:
        state = reduce_filters(state, event, CATALOG)
    return state


def test_normalize_filters_accepts_portuguese_keys():
    filt = normalize_filters({"area": " Saúde ", "indicador": "psico", "fonte": "", "territorio": "RJ"})
    assert filt == FilterSelection(area="Saúde", indicator_id="psico", source=None, territory="RJ")
    assert normalize_filters(None) == FilterSelection()


def test_empty_state():
    assert FilterState().stage is FilterStage.EMPTY


def test_single_indicator_and_source_are_auto_selected():
    state = _reduce(FilterState(), SelectArea("Area2"))
    assert state.selection.indicator_id == "Z"
    assert state.selection.source == "A"
    assert state.territories_loading
    assert state.request_id == 1
    assert state.stage is FilterStage.SOURCE_RESOLVED


def test_area_with_several_indicators_waits_for_a_choice():
    state = _reduce(FilterState(), SelectArea("Area1"))
    assert state.selection.indicator_id is None
    assert state.selection.source is None
    assert not state.territories_loading
    assert state.stage is FilterStage.AREA_SELECTED


def test_changing_indicator_clears_a_source_it_does_not_offer():
    state = _reduce(FilterState(), SelectArea("Area1"), SelectIndicator("X"))
    assert state.selection.source == "A"
    assert state.stage is FilterStage.SOURCE_RESOLVED

    state = _reduce(state, SelectIndicator("Y"))
    assert state.selection.indicator_id == "Y"
    assert state.selection.source is None
    assert state.stage is FilterStage.INDICATOR_SELECTED


def test_indicator_outside_the_area_is_rejected():
    state = _reduce(FilterState(), SelectArea("Area1"), SelectIndicator("Z"))
    assert state.selection.indicator_id is None


def test_select_source_validates_against_indicator():
    state = _reduce(FilterState(), SelectArea("Area1"), SelectIndicator("Y"), SelectSource("C"))
    assert state.selection.source == "C"
    state = _reduce(state, SelectSource("A"))
    assert state.selection.source is None


def test_each_indicator_or_source_change_opens_a_new_request():
    state = _reduce(FilterState(), SelectArea("Area1"))
    ids = [state.request_id]
    for event in (SelectIndicator("Y"), SelectSource("B"), SelectSource("C")):
        state = _reduce(state, event)
        ids.append(state.request_id)
        assert state.territories_loading
        assert state.territory_options == ()
    assert ids == [1, 2, 3, 4]


def test_stale_territory_results_are_ignored():
    state = _reduce(FilterState(), SelectArea("Area1"), SelectIndicator("X"))
    stale_id = state.request_id
    state = _reduce(state, SelectIndicator("Y"))

    after_stale = _reduce(state, TerritoriesLoaded(request_id=stale_id, territories=("Old",)))
    assert after_stale == state
    assert after_stale.territories_loading

    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("Niterói",)))
    assert state.selection.territory == "Niterói"
    assert state.territory_options == ("Niterói",)
    assert not state.territories_loading


def _loading_with(territory):
    preset = FilterSelection(area="Area2", indicator_id="Z", source="A", territory=territory)
    state = _reduce(FilterState(selection=preset), SelectSource("A"))
    assert state.territories_loading
    return state


def test_single_territory_replaces_any_spelling_of_the_current_pick():
    state = _loading_with("rj")
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("RJ",)))
    assert state.selection.territory == "RJ"
    assert state.stage is FilterStage.TERRITORY_RESOLVED


def test_valid_pick_is_preserved_among_several_territories():
    state = _loading_with("RJ")
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("Niterói", "RJ")))
    assert state.selection.territory == "RJ"


def test_invalid_pick_is_cleared_among_several_territories():
    state = _loading_with("Maricá")
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("Niterói", "RJ", "RJ", "")))
    assert state.selection.territory is None
    assert state.territory_options == ("Niterói", "RJ")


def test_failed_discovery_keeps_pick_and_reports_error():
    state = _loading_with("RJ")
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=(), error="HTTP 503"))
    assert state.selection.territory == "RJ"
    assert state.territory_options == ()
    assert state.error == "HTTP 503"
    assert not state.territories_loading


def test_select_territory_must_be_an_option():
    state = _loading_with(None)
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("Niterói", "RJ")))
    assert _reduce(state, SelectTerritory("Maricá")) == state
    assert _reduce(state, SelectTerritory("Niterói")).selection.territory == "Niterói"


def test_clear_filters_resets_and_invalidates_pending_requests():
    state = _reduce(FilterState(), SelectArea("Area2"))
    pending = state.request_id
    state = _reduce(state, ClearFilters())
    assert state.selection == FilterSelection()
    assert state.stage is FilterStage.EMPTY
    assert state.request_id == pending + 1

    late = _reduce(state, TerritoriesLoaded(request_id=pending, territories=("RJ",)))
    assert late == state


def test_same_source_does_not_refetch_when_options_are_loaded():
    state = _loading_with("RJ")
    state = _reduce(state, TerritoriesLoaded(request_id=state.request_id, territories=("Niterói", "RJ")))
    assert _reduce(state, SelectSource("A")) == state


@pytest.mark.parametrize("area", [None, ""])
def test_clearing_area_clears_everything_below(area):
    state = _loading_with("RJ")
    state = _reduce(state, SelectArea(area))
    assert state.selection.indicator_id is None
    assert state.selection.territory is None
    assert state.stage is FilterStage.EMPTY
    assert replace(state, request_id=0) == FilterState()
