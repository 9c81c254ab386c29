from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from core.merged_dates import fill_merged_dates
from core.parsers import as_str, normalize_key, parse_date_token, parse_number_locale


logger = logging.getLogger(__name__)


class ColumnRole(str, Enum):
    TERRITORY = "territory"
    DATE = "date"
    MODALITY = "modality"
    VALUE = "value"
    SOURCE = "source"


NORMALIZED_COLUMNS = [role.value for role in ColumnRole]

DEFAULT_HEADER_CANDIDATES: Dict[ColumnRole, List[str]] = {
    ColumnRole.TERRITORY: ["territorio", "território", "territorio_nome"],
    ColumnRole.DATE: ["data", "periodo", "período"],
    ColumnRole.VALUE: ["valor"],
    ColumnRole.SOURCE: ["fonte"],
    ColumnRole.MODALITY: [
        "categoria",
        "modalidade",
        "faixa",
        "faixa_etaria",
        "faixa etaria",
        "idade",
        "raca",
        "alfabetizacao",
        "atendimento_psicologico",
        "situacao",
        "condicao",
    ],
}

REQUIRED_ROLES = (ColumnRole.TERRITORY, ColumnRole.DATE, ColumnRole.VALUE)

# Claimed before modality so the fallback can skip them.
_RESOLUTION_ORDER = (
    ColumnRole.TERRITORY,
    ColumnRole.DATE,
    ColumnRole.VALUE,
    ColumnRole.SOURCE,
    ColumnRole.MODALITY,
)


def empty_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "territory": pd.Series(dtype=object),
            "date": pd.Series(dtype=object),
            "modality": pd.Series(dtype=object),
            "value": pd.Series(dtype=float),
            "source": pd.Series(dtype=object),
        }
    )


def resolve_columns(
    headers: Sequence[object],
    candidates: Mapping[ColumnRole, Sequence[str]] = DEFAULT_HEADER_CANDIDATES,
    fallback_roles: Iterable[ColumnRole] = (ColumnRole.MODALITY,),
) -> Dict[ColumnRole, int]:
    """Map each role to a column index.

    Headers and candidates are compared with :func:`normalize_key`, so case,
    surrounding whitespace and accents do not matter. The first candidate that
    matches wins. A fallback role left unresolved claims the first non-blank
    header no other role took.
    """
    keys = [normalize_key(h) for h in headers]
    fallback = set(fallback_roles)
    resolved: Dict[ColumnRole, int] = {}
    for role in _RESOLUTION_ORDER:
        for candidate in candidates.get(role, ()):
            target = normalize_key(candidate)
            if target in keys:
                resolved[role] = keys.index(target)
                break
        if role in resolved or role not in fallback:
            continue
        claimed = set(resolved.values())
        for idx, key in enumerate(keys):
            if key and idx not in claimed:
                resolved[role] = idx
                break
    return resolved


def decode_sheet(
    values: Optional[Sequence[Sequence[object]]],
    *,
    candidates: Mapping[ColumnRole, Sequence[str]] = DEFAULT_HEADER_CANDIDATES,
    required: Iterable[ColumnRole] = REQUIRED_ROLES,
    fallback_roles: Iterable[ColumnRole] = (ColumnRole.MODALITY,),
    number_parser: Callable[[object], Optional[float]] = parse_number_locale,
    blank_modality: str = "",
) -> pd.DataFrame:
    """Decode a raw sheet (header row + body rows) into normalized columns.

    Returns an empty frame, never raises, when the sheet has no body rows or a
    required role cannot be located. Dates are left exactly as found; use
    :func:`normalize_sheet` to also rebuild merged date cells.
    """
    if not values or len(values) < 2:
        return empty_frame()

    index = resolve_columns(values[0] or [], candidates, fallback_roles)
    missing = [role.value for role in required if role not in index]
    if missing:
        logger.debug("decode_sheet: missing required columns %s", missing)
        return empty_frame()

    def cell(row: Sequence[object], role: ColumnRole) -> object:
        idx = index.get(role)
        if idx is None or row is None or idx >= len(row):
            return ""
        return row[idx]

    records = []
    for row in values[1:]:
        modality = as_str(cell(row, ColumnRole.MODALITY))
        records.append(
            {
                "territory": as_str(cell(row, ColumnRole.TERRITORY)),
                "date": parse_date_token(cell(row, ColumnRole.DATE)),
                "modality": modality or blank_modality,
                "value": number_parser(cell(row, ColumnRole.VALUE)),
                "source": as_str(cell(row, ColumnRole.SOURCE)),
            }
        )
    frame = pd.DataFrame.from_records(records, columns=NORMALIZED_COLUMNS)
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce").astype(float)
    return frame


def normalize_sheet(values: Optional[Sequence[Sequence[object]]], **kwargs) -> pd.DataFrame:
    return fill_merged_dates(decode_sheet(values, **kwargs))


def discover_territories(values: Optional[Sequence[Sequence[object]]], **kwargs) -> List[str]:
    """Distinct non-blank territories of a sheet, in order of first appearance."""
    kwargs.setdefault("required", (ColumnRole.TERRITORY,))
    frame = decode_sheet(values, **kwargs)
    if frame.empty:
        return []
    territories = frame["territory"]
    return territories[territories != ""].drop_duplicates().tolist()


def candidates_with(role: ColumnRole, header: str) -> Dict[ColumnRole, List[str]]:
    """Default candidates with ``header`` tried first for ``role``."""
    out = {r: list(c) for r, c in DEFAULT_HEADER_CANDIDATES.items()}
    if header:
        out[role] = [header] + [c for c in out[role] if c != header]
    return out
