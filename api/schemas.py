from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class FilterSelectionModel(BaseModel):
    area: Optional[str] = None
    indicator_id: Optional[str] = None
    source: Optional[str] = None
    territory: Optional[str] = None


class FilterEventModel(BaseModel):
    type: Literal["select_area", "select_indicator", "select_source", "select_territory", "clear"]
    value: Optional[str] = None


class FilterResolveRequest(BaseModel):
    selection: FilterSelectionModel = Field(default_factory=FilterSelectionModel)
    events: List[FilterEventModel] = Field(default_factory=list)
    territory_query: str = ""


class SheetValuesResponse(BaseModel):
    values: List[List[Any]]


class UpdatedAtResponse(BaseModel):
    modifiedTime: Optional[str] = None


class UpdatedLabelResponse(BaseModel):
    label: Optional[str] = None
