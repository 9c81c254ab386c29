"""Core (transport-agnostic) dashboard logic.

This package contains:
- cell parsing and sheet decoding (raw 2D values -> pandas)
- catalog and filter resolution
- aggregation and percentage helpers
- view and KPI compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- the Google Sheets source
"""
