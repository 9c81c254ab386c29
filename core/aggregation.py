from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd


TOTAL_LABEL = "Em todos os acolhimentos"
TOTAL_LABELS = (TOTAL_LABEL, "Todos os acolhimentos", "Total")
DEFAULT_TERRITORY = "RJ"

Labels = Union[str, Sequence[str]]


@dataclass(frozen=True)
class DatedValue:
    date: str
    value: float


@dataclass(frozen=True)
class CategoryValue:
    name: str
    value: float


@dataclass(frozen=True)
class Snapshot:
    date: Optional[str] = None
    total: Optional[float] = None
    items: List[CategoryValue] = field(default_factory=list)


@dataclass(frozen=True)
class StackedRow:
    date: str
    values: Dict[str, float]
    dominant: Optional[str] = None


@dataclass(frozen=True)
class Composition:
    keys: List[str] = field(default_factory=list)
    rows: List[StackedRow] = field(default_factory=list)


@dataclass(frozen=True)
class AggregatedSeries:
    by_date: List[DatedValue] = field(default_factory=list)
    by_category_at_date: Dict[str, float] = field(default_factory=dict)
    stacked_by_date: List[StackedRow] = field(default_factory=list)
    snapshot_date: Optional[str] = None


def _labels(total_labels: Labels) -> List[str]:
    if isinstance(total_labels, str):
        return [total_labels]
    return list(total_labels)


def _usable(frame: Optional[pd.DataFrame]) -> bool:
    return frame is not None and not frame.empty and {"date", "modality", "value"}.issubset(frame.columns)


def _breakdown_mask(frame: pd.DataFrame, labels: List[str]) -> pd.Series:
    modality = frame["modality"].fillna("").astype(str)
    return (modality != "") & ~modality.isin(labels)


def _explicit_total(at_date: pd.DataFrame, labels: List[str]) -> Optional[float]:
    """Value of the first label, in priority order, that has a row on this date.

    ``None`` when no label has a row or that row is blank. Lower-priority labels
    are never added on top.
    """
    for label in labels:
        hits = at_date[at_date["modality"] == label]
        if hits.empty:
            continue
        value = hits["value"].iloc[0]
        return float(value) if pd.notna(value) else None
    return None


def filter_rows(
    frame: pd.DataFrame,
    territory: Optional[str] = None,
    source: Optional[str] = None,
    default_territory: str = DEFAULT_TERRITORY,
) -> pd.DataFrame:
    if frame is None or frame.empty or "territory" not in frame.columns:
        return frame if frame is not None else pd.DataFrame()
    out = frame[frame["territory"] == (territory or default_territory)]
    if source and "source" in out.columns:
        out = out[out["source"] == source]
    return out


def distinct_dates(frame: pd.DataFrame) -> List[str]:
    """Non-blank dates, sorted. ISO dates sort chronologically as strings."""
    if frame is None or frame.empty or "date" not in frame.columns:
        return []
    dates = frame["date"].fillna("").astype(str)
    return sorted(d for d in dates.unique() if d)


def total_for_date(frame: pd.DataFrame, date: str, total_labels: Labels = TOTAL_LABELS) -> float:
    """Explicit total row for ``date`` when present and numeric, else the sum of its categories.

    Labels are tried in order; the first label with a row decides. Blank values
    count as zero in the fallback sum.
    """
    if not _usable(frame):
        return 0.0
    labels = _labels(total_labels)
    at_date = frame[frame["date"] == date]
    explicit = _explicit_total(at_date, labels)
    if explicit is not None:
        return explicit
    parts = at_date[_breakdown_mask(at_date, labels)]
    return float(parts["value"].fillna(0).sum())


def total_series(frame: pd.DataFrame, total_labels: Labels = TOTAL_LABELS) -> List[DatedValue]:
    return [DatedValue(date=d, value=total_for_date(frame, d, total_labels)) for d in distinct_dates(frame)]


def snapshot(frame: pd.DataFrame, total_labels: Labels = TOTAL_LABELS) -> Snapshot:
    """Breakdown by category at the latest date.

    Categories summing to zero or less are dropped; the rest are sorted by value,
    largest first. The total is the explicit total row when numeric, otherwise
    the sum of the kept categories.
    """
    dates = distinct_dates(frame)
    if not dates or not _usable(frame):
        return Snapshot()
    labels = _labels(total_labels)
    latest = dates[-1]
    at_date = frame[frame["date"] == latest]
    parts = at_date[_breakdown_mask(at_date, labels)]
    grouped = parts.assign(value=parts["value"].fillna(0)).groupby("modality", sort=False)["value"].sum()
    grouped = grouped[grouped > 0].sort_values(ascending=False, kind="stable")
    items = [CategoryValue(name=str(name), value=float(value)) for name, value in grouped.items()]

    explicit = _explicit_total(at_date, labels)
    total = explicit if explicit is not None else float(sum(item.value for item in items))
    return Snapshot(date=latest, total=total, items=items)


def composition(frame: pd.DataFrame, total_labels: Labels = TOTAL_LABELS) -> Composition:
    """Per-date stacked values across categories.

    Keys are the canonical total label followed by every category with a
    positive value somewhere, ascending by their all-dates sum. On a date that
    has a positive breakdown the total row is left out so parts and total are
    not stacked twice. Otherwise the canonical key holds the same explicit
    total ``total_for_date`` picks. ``dominant`` is the last key, in key order, with a
    positive value on that date.
    """
    dates = distinct_dates(frame)
    if not dates or not _usable(frame):
        return Composition()
    labels = _labels(total_labels)
    canonical = labels[0]

    named = frame[_breakdown_mask(frame, labels)]
    positive = set(named.loc[named["value"] > 0, "modality"])
    totals = named["value"].fillna(0).groupby(named["modality"], sort=False).sum()
    kept = [m for m in totals.index if m in positive]
    kept_sorted = sorted(kept, key=lambda m: totals[m])
    keys = [canonical] + kept_sorted

    rows: List[StackedRow] = []
    for d in dates:
        on_date = frame[frame["date"] == d]
        breakdown = on_date[_breakdown_mask(on_date, labels)]
        has_breakdown = bool((breakdown["value"] > 0).any())
        values = dict.fromkeys(keys, 0.0)
        for modality, value in zip(breakdown["modality"], breakdown["value"]):
            if modality in values:
                values[modality] += 0.0 if pd.isna(value) else float(value)
        if not has_breakdown:
            values[canonical] = _explicit_total(on_date, labels) or 0.0
        dominant = next((k for k in reversed(keys) if values[k] > 0), None)
        rows.append(StackedRow(date=d, values=values, dominant=dominant))
    return Composition(keys=keys, rows=rows)


def change_pct(frame: pd.DataFrame, total_labels: Labels = TOTAL_LABELS) -> Optional[float]:
    """Change of the latest total against the previous date, in percent."""
    dates = distinct_dates(frame)
    if len(dates) < 2:
        return None
    last = total_for_date(frame, dates[-1], total_labels)
    prev = total_for_date(frame, dates[-2], total_labels)
    if prev <= 0:
        return None
    return (last - prev) / prev * 100


def aggregate(frame: pd.DataFrame, total_labels: Labels = TOTAL_LABELS) -> AggregatedSeries:
    snap = snapshot(frame, total_labels)
    return AggregatedSeries(
        by_date=total_series(frame, total_labels),
        by_category_at_date={item.name: item.value for item in snap.items},
        stacked_by_date=composition(frame, total_labels).rows,
        snapshot_date=snap.date,
    )
