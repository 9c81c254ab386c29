from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from core.parsers import as_str


logger = logging.getLogger(__name__)

DEFAULT_RANGE = "A:Z"

CATALOG_COLUMNS = {
    "area": "area",
    "indicador_id": "indicator_id",
    "indicador_nome": "indicator_name",
    "fonte": "source",
    "fonte_url": "source_url",
    "sheet": "sheet_name",
    "range": "range_spec",
    "tipo": "kind",
    "titulo": "display_title",
    "unidade": "unit",
    "territorio_col": "territory_column",
    "perfil": "profile",
    "nota_explicativa": "note",
}


class ChartProfile(str, Enum):
    PADRAO = "padrao"
    PIZZA = "pizza"
    BARRAS_HORIZONTAIS_PERCENTUAL = "barras_horizontais_percentual"
    LINHA = "linha"
    BARRAS_AGRUPADAS = "barras_agrupadas"

    @classmethod
    def parse(cls, value: object, *, kind: str = "") -> "ChartProfile":
        raw = as_str(value).lower()
        if kind.strip().lower() == "quantidade" and raw in ("", cls.PADRAO.value):
            return cls.PADRAO
        for member in cls:
            if member.value == raw:
                return member
        if raw:
            logger.debug("Unknown chart profile %r, using %s", raw, cls.PADRAO.value)
        return cls.PADRAO


@dataclass(frozen=True)
class CatalogEntry:
    area: str
    indicator_id: str
    indicator_name: str = ""
    source: str = ""
    source_url: str = ""
    sheet_name: str = ""
    range_spec: str = ""
    display_title: str = ""
    unit: str = ""
    kind: str = ""
    territory_column: str = ""
    profile: str = ""
    note: str = ""

    @property
    def chart_profile(self) -> ChartProfile:
        return ChartProfile.parse(self.profile, kind=self.kind)

    @property
    def title(self) -> str:
        return self.display_title or self.indicator_name or self.indicator_id

    @property
    def a1_range(self) -> str:
        if not self.sheet_name:
            return ""
        return f"{self.sheet_name}!{self.range_spec or DEFAULT_RANGE}"


def rows_to_catalog(values: Optional[Sequence[Sequence[object]]]) -> List[CatalogEntry]:
    """Build catalog entries from the catalog sheet.

    Header labels must match exactly (after trimming). Rows without an
    ``indicador_id`` are skipped.
    """
    if not values or len(values) < 2:
        return []
    headers = [as_str(h) for h in values[0]]
    entries: List[CatalogEntry] = []
    for row in values[1:]:
        row = row or []
        fields: Dict[str, str] = {}
        for idx, header in enumerate(headers):
            attr = CATALOG_COLUMNS.get(header)
            if attr is None:
                continue
            fields[attr] = as_str(row[idx]) if idx < len(row) else ""
        if not fields.get("indicator_id"):
            continue
        fields.setdefault("area", "")
        entries.append(CatalogEntry(**fields))
    return entries


def _unique(values: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


def area_options(catalog: Sequence[CatalogEntry]) -> List[str]:
    return _unique([e.area for e in catalog])


def indicator_options(catalog: Sequence[CatalogEntry], area: Optional[str]) -> List[Tuple[str, str]]:
    """(id, name) pairs of the indicators of ``area``; the first name seen wins."""
    if not area:
        return []
    names: Dict[str, str] = {}
    for entry in catalog:
        if entry.area == area and entry.indicator_id not in names:
            names[entry.indicator_id] = entry.indicator_name or entry.indicator_id
    return list(names.items())


def source_options(catalog: Sequence[CatalogEntry], indicator_id: Optional[str]) -> List[str]:
    if not indicator_id:
        return []
    return _unique([e.source for e in catalog if e.indicator_id == indicator_id])


def resolve_entry(
    catalog: Sequence[CatalogEntry], indicator_id: Optional[str], source: Optional[str] = None
) -> Optional[CatalogEntry]:
    if not indicator_id:
        return None
    rows = [e for e in catalog if e.indicator_id == indicator_id]
    if not rows:
        return None
    if source:
        for entry in rows:
            if entry.source == source:
                return entry
    return rows[0]


def search_options(options: Sequence[str], query: Optional[str]) -> List[str]:
    q = as_str(query).lower()
    if not q:
        return list(options)
    return [o for o in options if q in o.lower()]
