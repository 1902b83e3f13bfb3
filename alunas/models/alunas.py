# alunas/models/alunas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A row from alunas_hotmart. The table owns the schema; we only read keys.
StudentRecord = Dict[str, Any]


class AlunaFilters(BaseModel):
    """
    Optional constraints for the student list. Missing or empty fields mean
    "no constraint". Frozen so a filter can be part of a cache key.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    curso: Optional[str] = None
    data_inicio: Optional[str] = Field(default=None, alias="dataInicio")
    data_fim: Optional[str] = Field(default=None, alias="dataFim")
    query: Optional[str] = None

    @field_validator("data_inicio", "data_fim", mode="before")
    @classmethod
    def _iso_bounds(cls, v: Any) -> Any:
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        return v


class Page(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, gt=0)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def bounds(self) -> tuple[int, int]:
        """Inclusive [from, to] row range for this page."""
        start = self.offset
        return start, start + self.limit - 1


class ListResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[StudentRecord] = Field(default_factory=list)
    count: int = 0
    total_pages: int = Field(default=0, alias="totalPages")


class StudentSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    discord_count: int = Field(default=0, alias="discordCount")
    ativas_count: int = Field(default=0, alias="ativasCount")
