from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.aggregation import composition, snapshot, total_series
from core.catalog import CatalogEntry, ChartProfile
from core.charts import composition_chart, evolution_chart, snapshot_chart
from core.filters import FilterSelection
from core.parsers import format_date_br
from core.percentages import percent_of_fixed


VIEW_SNAPSHOT = "foto"
VIEW_EVOLUTION = "evolucao"
VIEW_COMPOSITION = "composicao"


def _meta(entry: Optional[CatalogEntry]) -> Dict[str, Any]:
    if entry is None:
        return {}
    return {
        "indicator_id": entry.indicator_id,
        "title": entry.title,
        "unit": entry.unit,
        "source": entry.source,
        "source_url": entry.source_url,
        "note": entry.note,
        "profile": entry.chart_profile.value,
        "kind": entry.kind,
    }


def available_views(entry: Optional[CatalogEntry]) -> List[Dict[str, str]]:
    views = [
        {"id": VIEW_SNAPSHOT, "label": "Fotografia atual"},
        {"id": VIEW_EVOLUTION, "label": "Evolução"},
    ]
    if entry is not None and entry.chart_profile is ChartProfile.PIZZA:
        return views
    label = "Por tipo de entidade" if entry is not None and entry.indicator_id == "abrigos" else "Por modalidade"
    views.append({"id": VIEW_COMPOSITION, "label": label})
    return views


def compute_indicator(filters: FilterSelection, ctx: Dict[str, Any]) -> Dict[str, Any]:
    entry: Optional[CatalogEntry] = ctx.get("entry")
    rows: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "territory": ctx.get("territory"),
        "meta": _meta(entry),
        "views": available_views(entry),
        "error": ctx.get("error"),
        "reference_date": None,
        "reference_date_br": None,
        "snapshot": {"date": None, "total": None, "show_banner": False, "items": []},
        "evolution": [],
        "composition": {"keys": [], "rows": []},
        "charts": {},
    }
    if entry is None:
        return payload

    profile = entry.chart_profile
    unit = entry.unit
    snap = snapshot(rows)
    items = snap.items
    snapshot_unit = unit
    if profile is ChartProfile.BARRAS_HORIZONTAIS_PERCENTUAL:
        items = percent_of_fixed(items, snap.total)
        snapshot_unit = "%"
    show_banner = entry.kind.strip().lower() == "quantidade" or profile is ChartProfile.PADRAO

    series = total_series(rows)
    comp = composition(rows)

    payload["reference_date"] = snap.date
    payload["reference_date_br"] = format_date_br(snap.date) if snap.date else None
    payload["snapshot"] = {
        "date": snap.date,
        "total": snap.total,
        "unit": snapshot_unit,
        "show_banner": bool(show_banner and snap.total is not None),
        "items": [asdict(i) for i in items],
    }
    payload["evolution"] = [asdict(p) for p in series]
    payload["composition"] = {
        "keys": comp.keys,
        "rows": [{"date": r.date, "values": r.values, "dominant": r.dominant} for r in comp.rows],
    }

    charts: Dict[str, Any] = {}
    foto = snapshot_chart(items, profile, snapshot_unit)
    if foto is not None:
        charts[VIEW_SNAPSHOT] = foto
    if profile is ChartProfile.PIZZA:
        evolution = composition_chart(comp, unit, grouped=True)
    else:
        evolution = evolution_chart(series, unit)
    if evolution is not None:
        charts[VIEW_EVOLUTION] = evolution
    if profile is not ChartProfile.PIZZA:
        stacked = composition_chart(comp, unit)
        if stacked is not None:
            charts[VIEW_COMPOSITION] = stacked
    payload["charts"] = charts
    return payload
