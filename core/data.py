from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from core.aggregation import DEFAULT_TERRITORY, distinct_dates, filter_rows
from core.catalog import CatalogEntry, resolve_entry, rows_to_catalog
from core.decoder import ColumnRole, candidates_with, empty_frame, normalize_sheet
from core.filters import FilterSelection, normalize_filters
from core.parsers import parse_number_locale, parse_number_simple
from core.sheets import SheetSource, SheetSourceError, fetch_meta_label


logger = logging.getLogger(__name__)

GENERAL_MODALITY = "Geral"

# "simple" reads blanks as 0 and only swaps the first comma
NUMBER_PARSERS: Dict[str, Callable[[object], Optional[float]]] = {
    "locale": parse_number_locale,
    "simple": parse_number_simple,
}


def fetch_values(source: SheetSource, a1_range: str) -> Tuple[list, Optional[str]]:
    """Fetch a range, turning transport failures into empty data plus an error message."""
    if not a1_range:
        return [], None
    try:
        return source.fetch_range(a1_range) or [], None
    except SheetSourceError as exc:
        logger.warning("Could not read %s: %s", a1_range, exc)
        return [], str(exc)


def load_catalog(source: SheetSource, catalog_range: str = "catalogo!A:Z") -> Tuple[List[CatalogEntry], Optional[str]]:
    values, error = fetch_values(source, catalog_range)
    return rows_to_catalog(values), error


def sheet_range_for(catalog: Sequence[CatalogEntry], indicator_id: str, source: Optional[str] = None) -> str:
    entry = resolve_entry(catalog, indicator_id, source)
    if entry is not None and entry.a1_range:
        return entry.a1_range
    return f"{indicator_id}!A:Z"


def load_indicator_frame(
    source: SheetSource,
    entry: Optional[CatalogEntry],
    *,
    number_parser: Callable[[object], Optional[float]] = parse_number_locale,
    blank_modality: str = GENERAL_MODALITY,
) -> Tuple[pd.DataFrame, Optional[str]]:
    if entry is None or not entry.a1_range:
        return empty_frame(), None
    values, error = fetch_values(source, entry.a1_range)
    frame = normalize_sheet(
        values,
        candidates=candidates_with(ColumnRole.TERRITORY, entry.territory_column),
        number_parser=number_parser,
        blank_modality=blank_modality,
    )
    if values and frame.empty and error is None:
        error = "Required columns missing (territorio, data, valor)"
    return frame, error


def load_updated_label(source: SheetSource, cell: str = "_meta!B1") -> Optional[str]:
    try:
        return fetch_meta_label(source, cell)
    except SheetSourceError as exc:
        logger.warning("Could not read %s: %s", cell, exc)
        return None


def prepare_context(
    filters: dict | FilterSelection,
    catalog: Sequence[CatalogEntry],
    frame: pd.DataFrame,
    *,
    default_territory: str = DEFAULT_TERRITORY,
    error: Optional[str] = None,
) -> Dict[str, object]:
    filt = filters if isinstance(filters, FilterSelection) else normalize_filters(filters)
    entry = resolve_entry(catalog, filt.indicator_id, filt.source)
    territory = filt.territory or default_territory
    filtered = filter_rows(frame, territory, filt.source, default_territory=default_territory)
    if filtered is None:
        filtered = empty_frame()
    return {
        "filters": filt,
        "entry": entry,
        "territory": territory,
        "rows": frame,
        "filtered_rows": filtered,
        "dates": distinct_dates(filtered),
        "error": error,
    }
