from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from core.aggregation import (
    DEFAULT_TERRITORY,
    TOTAL_LABEL,
    CategoryValue,
    change_pct,
    distinct_dates,
    filter_rows,
    snapshot,
    total_for_date,
)
from core.parsers import format_number_br, normalize_key
from core.percentages import percent_of_sum


KPI_ACOLHIDOS = "total_acolhidos"
KPI_UNIDADES = "total_unidades"
KPI_NAO_ALFABETIZADOS = "nao_alfabetizados"
KPI_TEMPO_MEDIO = "tempo_medio"

# kpi id -> indicator id whose sheet feeds it
KPI_INDICATORS = {
    KPI_ACOLHIDOS: "acolhidos",
    KPI_UNIDADES: "abrigos",
    KPI_NAO_ALFABETIZADOS: "alfabetizacao",
}

KPI_BASE = [
    {"id": KPI_ACOLHIDOS, "label": "Crianças e adolescentes acolhidos", "unit": ""},
    {"id": KPI_UNIDADES, "label": "Entidades de acolhimento", "unit": ""},
    {"id": KPI_NAO_ALFABETIZADOS, "label": "Não alfabetizados", "unit": "%"},
    {"id": KPI_TEMPO_MEDIO, "label": "Tempo médio de acolhimento", "unit": "anos"},
]

MODALITY_ORDER = [
    "Acolhimento Institucional",
    "Famílias Acolhedoras",
    "Casa-Lar",
    "Acolhimento Especializado em Dependentes Químicos",
    "Acolhimentos de Segunda à Sexta",
    "Acolhimento para Aluno Residente",
]

SHORT_LABELS = {
    "Acolhimento Institucional": "Institucional",
    "Famílias Acolhedoras": "Famílias acolhedoras",
    "Casa-Lar": "Casa-Lar",
    "Acolhimentos de Segunda à Sexta": "Seg a sex",
    "Acolhimento para Aluno Residente": "Aluno residente",
    "Acolhimento Especializado em Dependentes Químicos": "Especializado",
}

ACOLHIDOS_TOTAL_LABELS = (TOTAL_LABEL,)
UNIDADES_TOTAL_LABELS = ("Todos os acolhimentos", TOTAL_LABEL)


def short_modality_label(name: str) -> str:
    name = (name or "").strip()
    return SHORT_LABELS.get(name, name)


def detail_lines(items: List[CategoryValue]) -> List[str]:
    """Card detail lines: known modalities in a fixed order, then the rest by value."""
    by_name = {i.name: i.value for i in items if i.value > 0}
    ordered = [m for m in MODALITY_ORDER if m in by_name]
    rest = sorted((m for m in by_name if m not in MODALITY_ORDER), key=lambda m: -by_name[m])
    return [f"{short_modality_label(m)}: {format_number_br(by_name[m])}" for m in ordered + rest]


def is_state_territory(territory: object) -> bool:
    key = normalize_key(territory)
    return key == "rj" or "rio de janeiro" in key


def _total_card(frame: pd.DataFrame, labels, *, with_change: bool) -> Dict[str, Any]:
    rows = filter_rows(frame, DEFAULT_TERRITORY)
    dates = distinct_dates(rows)
    if not dates:
        return {"value": None, "change": None, "details": []}
    snap = snapshot(rows, labels)
    return {
        "value": total_for_date(rows, dates[-1], labels),
        "change": change_pct(rows, labels) if with_change else None,
        "details": detail_lines(snap.items),
    }


def _is_nao_alfabetizado(modality: object) -> bool:
    key = normalize_key(modality)
    return key == "nao alfabetizado" or ("nao" in key and "alfabet" in key)


def nao_alfabetizados_pct(frame: pd.DataFrame) -> Optional[float]:
    """Share of the "não alfabetizado" category over every row at the latest date."""
    if frame is None or frame.empty or "territory" not in frame.columns:
        return None
    rows = frame[frame["territory"].map(is_state_territory)]
    dates = distinct_dates(rows)
    if not dates:
        return None
    at_last = rows[rows["date"] == dates[-1]]
    values = at_last["value"].tolist()
    items = [
        CategoryValue(name=str(m), value=float(v) if pd.notna(v) else 0.0)
        for m, v in zip(at_last["modality"], values)
    ]
    match = next((idx for idx, item in enumerate(items) if _is_nao_alfabetizado(item.name)), None)
    if match is None or pd.isna(values[match]):
        return None
    shares = percent_of_sum(items)
    if not shares:
        return None
    return round(shares[match].value, 1)


def compute_kpis(frames: Dict[str, pd.DataFrame]) -> Dict[str, Any]:
    """Overview cards from the decoded sheets keyed by indicator id."""
    empty = pd.DataFrame()
    acolhidos = _total_card(frames.get("acolhidos", empty), ACOLHIDOS_TOTAL_LABELS, with_change=True)
    unidades = _total_card(frames.get("abrigos", empty), UNIDADES_TOTAL_LABELS, with_change=False)
    pct = nao_alfabetizados_pct(frames.get("alfabetizacao", empty))

    cards = []
    for base in KPI_BASE:
        card = dict(base, value=None, change=None, details=[])
        if base["id"] == KPI_ACOLHIDOS:
            card.update(acolhidos)
        elif base["id"] == KPI_UNIDADES:
            card.update(unidades)
        elif base["id"] == KPI_NAO_ALFABETIZADOS:
            card["value"] = pct
        cards.append(card)
    return {"territory": DEFAULT_TERRITORY, "kpis": cards}
