from __future__ import annotations

import math
import re
import unicodedata
from typing import Optional

import pandas as pd


_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_THOUSANDS_ONLY = re.compile(r"^[+-]?[1-9]\d{0,2}\.\d{3}$")


def as_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _native_number(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        out = float(value)
        return out if math.isfinite(out) else None
    return None


def parse_number_simple(value: object) -> float:
    """Lenient numeric cell parser: first comma becomes a decimal point.

    Blank or unparsable cells become ``0.0``. Callers that need to tell a blank
    cell apart from zero must use :func:`parse_number_locale` instead.
    """
    native = _native_number(value)
    if native is not None:
        return native
    s = as_str(value).replace(",", ".", 1)
    if not s:
        return 0.0
    try:
        out = float(s)
    except ValueError:
        return 0.0
    return out if math.isfinite(out) else 0.0


def parse_number_locale(value: object) -> Optional[float]:
    """Parse a pt-BR or plain numeric cell, returning ``None`` for blank or bad input.

    ``"1.234,56"`` -> 1234.56, ``"12,5"`` -> 12.5, ``"1.234"`` -> 1234.0,
    ``"12.5"`` -> 12.5, ``"0.500"`` -> 0.5.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _native_number(value)
    s = as_str(value).replace(" ", "").replace("\xa0", "")
    if not s:
        return None
    if "," in s:
        # dots are thousands separators, the last comma is the decimal mark
        head, _, tail = s.rpartition(",")
        s = head.replace(".", "").replace(",", "") + "." + tail
    elif s.count(".") > 1 or _THOUSANDS_ONLY.match(s):
        s = s.replace(".", "")
    try:
        out = float(s)
    except ValueError:
        return None
    return out if math.isfinite(out) else None


def normalize_key(value: object) -> str:
    s = as_str(value).lower()
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_date_token(value: object) -> str:
    """Return an ISO ``yyyy-mm-dd`` date for ``dd/mm/yyyy`` tokens, else the trimmed token."""
    s = as_str(value)
    if not s:
        return ""
    match = _BR_DATE.match(s)
    if not match:
        return s
    day, month, year = (int(g) for g in match.groups())
    try:
        return pd.Timestamp(year=year, month=month, day=day).strftime("%Y-%m-%d")
    except ValueError:
        return s


def format_date_br(value: object) -> str:
    s = as_str(value)
    parts = s.split("-")
    if len(parts) != 3 or not all(parts):
        return s
    year, month, day = parts
    return f"{day}/{month}/{year}"


def format_number_br(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return ""
    number = float(value)
    if number.is_integer():
        text = f"{number:,.0f}"
    else:
        text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
