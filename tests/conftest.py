# Shared pytest fixtures: an in-memory sheet source plus a small catalog and data sheets
from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from core.catalog import rows_to_catalog


class FakeSheetSource:
    """SheetSource backed by a dict of A1 range -> raw values."""

    def __init__(
        self,
        ranges: Optional[Dict[str, List[List[object]]]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        modified_time: Optional[str] = "2025-03-01T12:00:00.000Z",
    ):
        self.ranges = dict(ranges or {})
        self.errors = dict(errors or {})
        self.modified_time = modified_time
        self.calls: List[str] = []

    def fetch_range(self, a1_range: str) -> List[List[object]]:
        self.calls.append(a1_range)
        if a1_range in self.errors:
            raise self.errors[a1_range]
        return [list(row) for row in self.ranges.get(a1_range, [])]

    def fetch_last_modified(self) -> Optional[str]:
        return self.modified_time


CATALOG_HEADER = [
    "area",
    "indicador_id",
    "indicador_nome",
    "fonte",
    "fonte_url",
    "sheet",
    "range",
    "tipo",
    "titulo",
    "unidade",
    "territorio_col",
    "perfil",
    "nota_explicativa",
]


@pytest.fixture()
def catalog_values() -> List[List[object]]:
    return [
        CATALOG_HEADER,
        ["Acolhimento", "acolhidos", "Crianças acolhidas", "MCA", "https://mca.example.org", "acolhidos", "A:E",
         "quantidade", "", "pessoas", "territorio", "", ""],
        ["Acolhimento", "abrigos", "Entidades", "MCA", "", "abrigos", "", "quantidade", "", "", "", "", ""],
        ["Educação", "alfabetizacao", "Alfabetização", "MCA", "", "alfabetizacao", "A:Z", "percentual",
         "Alfabetização dos acolhidos", "%", "", "pizza", "Somente maiores de 6 anos"],
        ["Saúde", "psico", "Atendimento psicológico", "MCA", "", "psico_mca", "", "percentual", "", "%", "",
         "barras_horizontais_percentual", ""],
        ["Saúde", "psico", "Atendimento psicológico", "CNJ", "", "psico_cnj", "", "percentual", "", "%", "",
         "barras_horizontais_percentual", ""],
    ]


@pytest.fixture()
def catalog(catalog_values):
    return rows_to_catalog(catalog_values)


@pytest.fixture()
def acolhidos_values() -> List[List[object]]:
    return [
        ["territorio", "data", "modalidade", "valor", "fonte"],
        ["RJ", "01/01/2024", "Acolhimento Institucional", "100", "MCA"],
        ["RJ", "", "Famílias Acolhedoras", "20", "MCA"],
        ["RJ", "", "Em todos os acolhimentos", "120", "MCA"],
        ["RJ", "01/07/2024", "Acolhimento Institucional", "110", "MCA"],
        ["RJ", "", "Famílias Acolhedoras", "40", "MCA"],
        ["RJ", "", "Em todos os acolhimentos", "150", "MCA"],
        ["Niterói", "01/07/2024", "Acolhimento Institucional", "9", "MCA"],
    ]


@pytest.fixture()
def abrigos_values() -> List[List[object]]:
    return [
        ["territorio", "data", "tipo_entidade", "valor"],
        ["RJ", "2024-07-01", "Abrigo", "30"],
        ["RJ", "", "Casa-Lar", "12"],
        ["RJ", "", "Todos os acolhimentos", "42"],
    ]


@pytest.fixture()
def alfabetizacao_values() -> List[List[object]]:
    return [
        ["territorio", "data", "alfabetizacao", "valor"],
        ["Rio de Janeiro", "2024-01-01", "Não alfabetizado", "50"],
        ["Rio de Janeiro", "", "Alfabetizado", "50"],
        ["Rio de Janeiro", "2024-07-01", "Alfabetizado", "75"],
        ["Rio de Janeiro", "", "Não alfabetizado", "25"],
    ]


@pytest.fixture()
def psico_values() -> List[List[object]]:
    return [
        ["territorio", "data", "atendimento_psicologico", "valor"],
        ["RJ", "2024-07-01", "Sim", "50"],
        ["RJ", "", "Não", "150"],
        ["RJ", "", "Em todos os acolhimentos", "200"],
    ]


@pytest.fixture()
def sheet_values(catalog_values, acolhidos_values, abrigos_values, alfabetizacao_values, psico_values):
    return {
        "catalogo!A:Z": catalog_values,
        "acolhidos!A:E": acolhidos_values,
        "abrigos!A:Z": abrigos_values,
        "alfabetizacao!A:Z": alfabetizacao_values,
        "psico_mca!A:Z": psico_values,
        "_meta!B1": [["Atualizado em março de 2025"]],
    }


@pytest.fixture()
def fake_source(sheet_values) -> FakeSheetSource:
    return FakeSheetSource(sheet_values)
