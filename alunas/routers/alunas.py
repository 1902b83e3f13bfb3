from __future__ import annotations
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from alunas.config.settings import get_settings
from alunas.models.alunas import AlunaFilters, ListResult, StudentSummary
from alunas.repositories.alunas_repo import AlunasRepository
from alunas.services.query_cache import QueryCache

router = APIRouter(prefix="/api", tags=["alunas"])


@lru_cache
def get_repository() -> AlunasRepository:
    s = get_settings()
    return AlunasRepository(
        cache=QueryCache(
            stale_time=s.QUERY_CACHE_STALE_SECONDS,
            max_entries=s.QUERY_CACHE_MAX_ENTRIES,
        ),
        table=s.ALUNAS_TABLE,
        default_limit=s.ALUNAS_PAGE_SIZE,
    )


@router.get("/alunas", response_model=ListResult)
async def http_list_alunas(
    curso: Optional[str] = None,
    data_inicio: Optional[str] = Query(default=None, alias="dataInicio"),
    data_fim: Optional[str] = Query(default=None, alias="dataFim"),
    query: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    repo: AlunasRepository = Depends(get_repository),
):
    filters = AlunaFilters(
        curso=curso, data_inicio=data_inicio, data_fim=data_fim, query=query
    )
    return await repo.list_alunas(filters, page=page, limit=limit)


@router.get("/alunas/summary", response_model=StudentSummary)
async def http_student_summary(repo: AlunasRepository = Depends(get_repository)):
    return await repo.student_summary()


@router.get("/alunas/cursos", response_model=List[str])
async def http_list_cursos(repo: AlunasRepository = Depends(get_repository)):
    return await repo.list_cursos()


@router.post("/alunas", status_code=201)
async def http_create_aluna(
    record: Dict[str, Any] = Body(...),
    repo: AlunasRepository = Depends(get_repository),
):
    return await repo.create_aluna(record)
