from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from core.aggregation import CategoryValue, Composition, DatedValue
from core.catalog import ChartProfile
from core.parsers import format_date_br

alt.data_transformers.disable_max_rows()

PRIMARY_COLOR = "#359AD4"
CHART_COLORS = [
    "#2674a0",
    "#E67310",
    "#72C0F8",
    "#FFCE19",
    "#175070",
    "#FA841E",
    "#C9E3FC",
    "#FFB114",
    "#0A2E43",
    "#9F5125",
    "#f7efba",
    "#02121E",
]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _palette(n: int) -> List[str]:
    return [CHART_COLORS[i % len(CHART_COLORS)] for i in range(n)]


def snapshot_chart(items: Sequence[CategoryValue], profile: ChartProfile, unit: str = "") -> Optional[Dict[str, Any]]:
    if not items:
        return None
    df = pd.DataFrame([{"name": i.name, "value": i.value} for i in items])
    value_title = unit or "valor"
    tooltip = [alt.Tooltip("name:N", title="Categoria"), alt.Tooltip("value:Q", title=value_title, format=",.2~f")]

    if profile is ChartProfile.PIZZA:
        chart = (
            alt.Chart(df)
            .mark_arc(innerRadius=80, outerRadius=120, padAngle=0.02)
            .encode(
                theta=alt.Theta("value:Q"),
                color=alt.Color("name:N", title=None, scale=alt.Scale(range=_palette(len(df)))),
                tooltip=tooltip,
            )
        )
    elif profile is ChartProfile.BARRAS_HORIZONTAIS_PERCENTUAL:
        chart = (
            alt.Chart(df)
            .mark_bar(color=PRIMARY_COLOR, cornerRadiusEnd=4)
            .encode(
                y=alt.Y("name:N", sort="-x", title=None),
                x=alt.X("value:Q", title="%", axis=alt.Axis(gridDash=[3, 3])),
                tooltip=tooltip,
            )
        )
    else:
        chart = (
            alt.Chart(df)
            .mark_bar(color=PRIMARY_COLOR, cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
            .encode(
                x=alt.X("name:N", sort="-y", title=None, axis=alt.Axis(labelAngle=0)),
                y=alt.Y("value:Q", title=value_title, axis=alt.Axis(gridDash=[3, 3])),
                tooltip=tooltip,
            )
        )
    return to_vega_spec(chart)


def evolution_chart(series: Sequence[DatedValue], unit: str = "") -> Optional[Dict[str, Any]]:
    if not series:
        return None
    df = pd.DataFrame([{"date": p.date, "label": format_date_br(p.date), "value": p.value} for p in series])
    chart = (
        alt.Chart(df)
        .mark_line(point={"filled": True}, color=PRIMARY_COLOR, strokeWidth=2)
        .encode(
            x=alt.X("label:O", sort=df["label"].tolist(), title=None),
            y=alt.Y("value:Q", title=unit or "Total", axis=alt.Axis(gridDash=[3, 3])),
            tooltip=[alt.Tooltip("label:O", title="Data"), alt.Tooltip("value:Q", title=unit or "Total", format=",.2~f")],
        )
    )
    return to_vega_spec(chart)


def _composition_long(comp: Composition) -> pd.DataFrame:
    records = []
    for row in comp.rows:
        for order, key in enumerate(comp.keys):
            records.append(
                {
                    "date": row.date,
                    "label": format_date_br(row.date),
                    "category": key,
                    "order": order,
                    "value": row.values.get(key, 0.0),
                    "is_top": key == row.dominant,
                }
            )
    return pd.DataFrame(records)


def composition_chart(comp: Composition, unit: str = "", *, grouped: bool = False) -> Optional[Dict[str, Any]]:
    """Stacked bars per date; ``grouped`` places categories side by side instead."""
    if not comp.rows:
        return None
    df = _composition_long(comp)
    df = df[df["value"] > 0]
    if df.empty:
        return None
    keys = comp.keys
    encoding = dict(
        x=alt.X("label:O", sort=[format_date_br(r.date) for r in comp.rows], title=None),
        y=alt.Y("value:Q", title=unit or None, stack=None if grouped else "zero", axis=alt.Axis(gridDash=[3, 3])),
        color=alt.Color("category:N", title=None, sort=keys, scale=alt.Scale(domain=keys, range=_palette(len(keys)))),
        order=alt.Order("order:Q"),
        tooltip=[
            alt.Tooltip("label:O", title="Data"),
            alt.Tooltip("category:N", title="Categoria"),
            alt.Tooltip("value:Q", title=unit or "valor", format=",.2~f"),
        ],
    )
    if grouped:
        encoding["xOffset"] = alt.XOffset("category:N", sort=keys)
    chart = alt.Chart(df).mark_bar().encode(**encoding)
    return to_vega_spec(chart)
