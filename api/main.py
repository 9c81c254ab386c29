from __future__ import annotations

import asyncio
from dataclasses import asdict
from functools import lru_cache
import logging
import math
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    FilterEventModel,
    FilterResolveRequest,
    FilterSelectionModel,
    SheetValuesResponse,
    UpdatedAtResponse,
    UpdatedLabelResponse,
)
from core.catalog import area_options, indicator_options, resolve_entry, search_options, source_options
from core.config import ConfigurationError, Settings, configure_logging, load_settings
from core.data import (
    NUMBER_PARSERS,
    fetch_values,
    load_catalog,
    load_indicator_frame,
    load_updated_label,
    prepare_context,
    sheet_range_for,
)
from core.decoder import normalize_sheet
from core.filters import (
    ClearFilters,
    FilterEvent,
    FilterState,
    SelectArea,
    SelectIndicator,
    SelectSource,
    SelectTerritory,
    normalize_filters,
)
from core.metrics_indicator import compute_indicator
from core.metrics_kpis import KPI_INDICATORS, compute_kpis
from core.resolver import FilterResolver
from core.sheets import GoogleSheetSource, SheetSource


NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}

EVENT_TYPES = {
    "select_area": SelectArea,
    "select_indicator": SelectIndicator,
    "select_source": SelectSource,
    "select_territory": SelectTerritory,
}


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


@lru_cache()
def _google_source() -> GoogleSheetSource:
    return GoogleSheetSource(get_settings())


def get_sheet_source() -> SheetSource:
    return _google_source()


_settings = get_settings()
configure_logging(_settings.log_level)

app = FastAPI(title="Acolhimento Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials="*" not in _settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_store(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        response.headers.update(NO_STORE_HEADERS)
    return response


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.exception_handler(ConfigurationError)
async def configuration_error(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return _error(exc)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _to_event(model: FilterEventModel) -> FilterEvent:
    if model.type == "clear":
        return ClearFilters()
    return EVENT_TYPES[model.type](model.value)


def _state_payload(state: FilterState, catalog, territory_query: str = "") -> Dict[str, object]:
    sel = state.selection
    return {
        "selection": asdict(sel),
        "stage": state.stage.value,
        "loading": state.territories_loading,
        "request_id": state.request_id,
        "error": state.error,
        "options": {
            "areas": area_options(catalog),
            "indicators": [{"id": i, "name": n} for i, n in indicator_options(catalog, sel.area)],
            "sources": source_options(catalog, sel.indicator_id),
            "territories": search_options(state.territory_options, territory_query),
        },
    }


def _indicator_context(
    selection: FilterSelectionModel,
    source: SheetSource,
    settings: Settings,
    number_format: str = "locale",
):
    filt = normalize_filters(selection.model_dump())
    catalog, catalog_error = load_catalog(source, settings.catalog_range)
    entry = resolve_entry(catalog, filt.indicator_id, filt.source)
    frame, frame_error = load_indicator_frame(source, entry, number_parser=NUMBER_PARSERS[number_format])
    ctx = prepare_context(
        filt,
        catalog,
        frame,
        default_territory=settings.default_territory,
        error=frame_error or catalog_error,
    )
    return filt, ctx


def _kpi_frame(source: SheetSource, catalog, indicator_id: str) -> Tuple[pd.DataFrame, Optional[str]]:
    values, error = fetch_values(source, sheet_range_for(catalog, indicator_id))
    return normalize_sheet(values), error


@app.get("/api/health")
def health(settings: Settings = Depends(get_settings)):
    sid = settings.spreadsheet_id
    return _json(
        {
            "ok": True,
            "port": settings.port,
            "hasSpreadsheetId": bool(sid),
            "spreadsheetIdPreview": f"{sid[:6]}...{sid[-6:]}" if sid else "",
            "hasCredsPath": bool(settings.credentials_path),
            "credsPath": settings.credentials_path,
            "credsFileExists": settings.credentials_file_exists,
            "hasInlineCreds": bool(settings.credentials_json),
        }
    )


@app.get("/api/sheets")
def sheets(
    a1_range: str = Query(default="", alias="range"),
    source: SheetSource = Depends(get_sheet_source),
):
    a1_range = (a1_range or "").strip()
    if not a1_range:
        return _error(ValueError("range is required"), status_code=400)
    try:
        values = source.fetch_range(a1_range) or []
        return _json(SheetValuesResponse(values=values))
    except Exception as exc:
        logger.exception("sheets failed for range %s", a1_range)
        return _error(exc)


@app.get("/api/sheets/updated-at")
def sheets_updated_at(source: SheetSource = Depends(get_sheet_source)):
    try:
        return _json(UpdatedAtResponse(modifiedTime=source.fetch_last_modified()))
    except Exception as exc:
        logger.exception("sheets_updated_at failed")
        return _error(exc)


@app.get("/api/meta/updated-label")
def meta_updated_label(
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        return _json(UpdatedLabelResponse(label=load_updated_label(source, settings.meta_cell)))
    except Exception as exc:
        logger.exception("meta_updated_label failed")
        return _error(exc)


@app.get("/api/catalog")
def catalog(
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        entries, error = load_catalog(source, settings.catalog_range)
        rows = [dict(asdict(e), a1_range=e.a1_range, profile=e.chart_profile.value) for e in entries]
        return _json({"entries": rows, "areas": area_options(entries), "error": error})
    except Exception as exc:
        logger.exception("catalog failed")
        return _error(exc)


@app.post("/api/filters/resolve")
async def filters_resolve(
    request: FilterResolveRequest,
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        catalog, _ = await asyncio.to_thread(load_catalog, source, settings.catalog_range)
        start = FilterState(selection=normalize_filters(request.selection.model_dump()))
        resolver = FilterResolver(source, catalog, state=start, timeout=settings.fetch_timeout)
        for event in request.events:
            await resolver.dispatch(_to_event(event))
        state = resolver.state
        if state.request_id == 0 and state.selection.indicator_id:
            # no event touched the sheet yet: load territories for the incoming selection
            state = await resolver.dispatch(SelectSource(state.selection.source))
        return _json(_state_payload(state, catalog, request.territory_query))
    except Exception as exc:
        logger.exception("filters_resolve failed")
        return _error(exc)


@app.post("/api/indicator")
def indicator(
    selection: FilterSelectionModel,
    number_format: Literal["locale", "simple"] = Query(default="locale"),
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        filt, ctx = _indicator_context(selection, source, settings, number_format)
        return _json(compute_indicator(filt, ctx))
    except Exception as exc:
        logger.exception("indicator failed")
        return _error(exc)


@app.get("/api/kpis")
async def kpis(
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        catalog, catalog_error = await asyncio.to_thread(load_catalog, source, settings.catalog_range)
        ids: List[str] = list(KPI_INDICATORS.values())
        results = await asyncio.gather(*(asyncio.to_thread(_kpi_frame, source, catalog, i) for i in ids))
        frames = {i: frame for i, (frame, _) in zip(ids, results)}
        payload = compute_kpis(frames)
        payload["errors"] = [e for e in [catalog_error] + [err for _, err in results] if e]
        return _json(payload)
    except Exception as exc:
        logger.exception("kpis failed")
        return _error(exc)


@app.post("/api/export")
def export(
    selection: FilterSelectionModel,
    number_format: Literal["locale", "simple"] = Query(default="locale"),
    source: SheetSource = Depends(get_sheet_source),
    settings: Settings = Depends(get_settings),
):
    try:
        filt, ctx = _indicator_context(selection, source, settings, number_format)
        export_df = ctx.get("filtered_rows")
        if export_df is None or not hasattr(export_df, "to_csv"):
            export_df = pd.DataFrame()
        filename = f"{filt.indicator_id or 'indicador'}.csv"
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        return Response(
            content=csv_bytes,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=_settings.port)
