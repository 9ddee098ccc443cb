from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SelectionModel(BaseModel):
    products: List[str] = Field(default_factory=list)
    # None selects every available day; [] selects none.
    periods: Optional[List[int]] = None


class TrendsRequestModel(SelectionModel):
    hidden_series: List[str] = Field(default_factory=list)


class CellIssueModel(BaseModel):
    row: int
    product_id: str
    column: str
    value: str


class UploadResponse(BaseModel):
    message: str
    count: int
    products: List[str]
    issues: List[CellIssueModel] = Field(default_factory=list)
