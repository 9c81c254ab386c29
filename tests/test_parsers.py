from __future__ import annotations

import math

import pytest

from core.parsers import (
    as_str,
    format_date_br,
    format_number_br,
    normalize_key,
    parse_date_token,
    parse_number_locale,
    parse_number_simple,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12,5", 12.5),
        ("12.5", 12.5),
        (" 7 ", 7.0),
        (7, 7.0),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        # only the first comma is swapped, so grouped thousands do not parse
        ("1.234,56", 0.0),
    ],
)
def test_parse_number_simple(raw, expected):
    assert parse_number_simple(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("12,5", 12.5),
        ("1.234", 1234.0),
        ("-1.234", -1234.0),
        ("1.234.567", 1234567.0),
        # a leading zero group is never a thousands group
        ("0.500", 0.5),
        ("-0.250", -0.25),
        ("12.5", 12.5),
        ("1 234,5", 1234.5),
        ("1\xa0234", 1234.0),
        (42, 42.0),
        (2.5, 2.5),
    ],
)
def test_parse_number_locale(raw, expected):
    assert parse_number_locale(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "   ", None, "abc", "inf", float("nan")])
def test_parse_number_locale_returns_none_for_blank_or_bad_input(raw):
    assert parse_number_locale(raw) is None


def test_variants_disagree_on_malformed_input():
    assert parse_number_simple("n/a") == 0.0
    assert parse_number_locale("n/a") is None


def test_as_str():
    assert as_str(None) == ""
    assert as_str(float("nan")) == ""
    assert as_str("  RJ ") == "RJ"
    assert as_str(10) == "10"


def test_normalize_key():
    assert normalize_key(" Território ") == "territorio"
    assert normalize_key("Em Todos os Acolhimentos") == "em todos os acolhimentos"
    assert normalize_key("NÃO ALFABETIZADO") == "nao alfabetizado"
    assert normalize_key(None) == ""


def test_parse_date_token():
    assert parse_date_token("05/03/2024") == "2024-03-05"
    assert parse_date_token("5/3/2024") == "2024-03-05"
    assert parse_date_token(" 2024-03-05 ") == "2024-03-05"
    assert parse_date_token("") == ""
    assert parse_date_token(None) == ""
    # not a real calendar day: left as written
    assert parse_date_token("31/02/2024") == "31/02/2024"


def test_format_date_br():
    assert format_date_br("2024-03-05") == "05/03/2024"
    assert format_date_br("março de 2024") == "março de 2024"
    assert format_date_br("") == ""


def test_format_number_br():
    assert format_number_br(1234) == "1.234"
    assert format_number_br(1234.5) == "1.234,5"
    assert format_number_br(0.125) == "0,125"
    assert format_number_br(None) == ""
    assert format_number_br(math.nan) == ""
