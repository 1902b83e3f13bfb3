# alunas/repositories/alunas_repo.py
from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from alunas.models.alunas import (
    AlunaFilters,
    ListResult,
    Page,
    StudentRecord,
    StudentSummary,
)
from alunas.services.query_cache import QueryCache

logger = logging.getLogger("alunas.repo")

DEFAULT_TABLE = "alunas_hotmart"

# Cache namespaces
LIST_KEY = "alunas"
STATS_KEY = "alunas-stats"
CURSOS_KEY = "cursos"

SEARCH_COLUMNS = ("email", "nome", "transacao")
STATUS_ATIVO = "ativo"

# Characters PostgREST reserves inside or=(...) expressions
_RESERVED_RE = re.compile(r'[,.:()"\\]')


class BackendError(RuntimeError):
    """Any failure reported by the Supabase client (network, RLS, bad query)."""

    def __init__(self, message: str, *, code: Any = None, details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details

    @classmethod
    def wrap(cls, exc: BaseException) -> "BackendError":
        if isinstance(exc, cls):
            return exc
        msg = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        return cls(
            str(msg),
            code=getattr(exc, "code", None),
            details=getattr(exc, "details", None),
        )


# ------------------------------------------------------------------------------
# query helpers
# ------------------------------------------------------------------------------
def page_range(page: int, limit: int) -> Tuple[int, int]:
    """Inclusive (from, to) offsets; raises ValueError on page < 1 or limit < 1."""
    return Page(page=page, limit=limit).bounds()


def total_pages(count: int, limit: int) -> int:
    if limit <= 0:
        raise ValueError("limit must be > 0")
    return math.ceil(max(count, 0) / limit)


def _pg_quote(val: str) -> str:
    """
    Double-quote a value for a PostgREST logic expression when it carries
    reserved characters. Backslash and quote are escaped inside the quotes.
    """
    if not _RESERVED_RE.search(val):
        return val
    return '"' + val.replace("\\", "\\\\").replace('"', '\\"') + '"'


def search_expression(term: str) -> str:
    """
    OR expression matching term (lower-cased, substring, case-insensitive)
    against email, nome and transacao.
    """
    pattern = _pg_quote(f"*{term.lower()}*")
    return ",".join(f"{col}.ilike.{pattern}" for col in SEARCH_COLUMNS)


def apply_filters(q, filters: AlunaFilters):
    if filters.curso:
        q = q.eq("curso", filters.curso)
    if filters.data_inicio:
        q = q.gte("data_compra", filters.data_inicio)
    if filters.data_fim:
        q = q.lte("data_compra", filters.data_fim)
    if filters.query:
        q = q.or_(search_expression(filters.query))
    return q


async def _execute(builder):
    """Run builder.execute() off the event loop; failures become BackendError."""
    try:
        return await asyncio.to_thread(builder.execute)
    except BackendError:
        raise
    except Exception as e:
        raise BackendError.wrap(e) from e


# ------------------------------------------------------------------------------
# repository
# ------------------------------------------------------------------------------
class AlunasRepository:
    """
    Reads and writes for the alunas_hotmart table.

    Every read goes through the query cache under a key of the form
    (namespace, *params); create_aluna() invalidates the list namespace.
    """

    def __init__(
        self,
        client: Any = None,
        cache: Optional[QueryCache] = None,
        table: str = DEFAULT_TABLE,
        default_limit: int = 50,
    ):
        if client is None:
            from alunas.services.supabase_service import supabase as client
        self.client = client
        self.cache = cache if cache is not None else QueryCache()
        self.table = table
        self.default_limit = default_limit

    def _from(self):
        try:
            return self.client.table(self.table)
        except RuntimeError as e:
            # missing credentials surface on first use of the lazy client
            raise BackendError.wrap(e) from e

    # ---- list ----------------------------------------------------------------
    async def list_alunas(
        self,
        filters: Optional[AlunaFilters] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> ListResult:
        filters = filters if filters is not None else AlunaFilters()
        limit = self.default_limit if limit is None else limit
        start, end = page_range(page, limit)

        async def load() -> ListResult:
            try:
                q = (
                    self._from()
                    .select("*", count="exact")
                    .order("data_compra", desc=True)
                )
                q = apply_filters(q, filters).range(start, end)
                res = await _execute(q)
            except BackendError as e:
                logger.exception("Error fetching alunas: %s", e)
                raise

            rows = getattr(res, "data", None) or []
            count = getattr(res, "count", None) or 0
            return ListResult(
                data=list(rows), count=count, total_pages=total_pages(count, limit)
            )

        result = await self.cache.fetch((LIST_KEY, filters, page, limit), load)
        # callers get their own copy; the cached instance stays untouched
        return result.model_copy(deep=True)

    # ---- summary -------------------------------------------------------------
    async def student_summary(self) -> StudentSummary:
        async def load() -> StudentSummary:
            res = await _execute(self._from().select("discord_user_id,status_acesso"))
            rows: List[Dict[str, Any]] = getattr(res, "data", None) or []
            return StudentSummary(
                discord_count=sum(
                    1 for r in rows if r.get("discord_user_id") is not None
                ),
                ativas_count=sum(
                    1 for r in rows if r.get("status_acesso") == STATUS_ATIVO
                ),
            )

        summary = await self.cache.fetch((STATS_KEY,), load)
        return summary.model_copy()

    # ---- cursos --------------------------------------------------------------
    async def list_cursos(self) -> List[str]:
        async def load() -> List[str]:
            res = await _execute(
                self._from().select("curso").not_.is_("curso", "null")
            )
            rows = getattr(res, "data", None) or []
            # dedupe by value, keep first-seen order, drop "" / None
            return list(dict.fromkeys(r.get("curso") for r in rows if r.get("curso")))

        cursos = await self.cache.fetch((CURSOS_KEY,), load)
        return list(cursos)

    # ---- create --------------------------------------------------------------
    async def create_aluna(self, record: Dict[str, Any]) -> StudentRecord:
        res = await _execute(self._from().insert(record))
        rows = getattr(res, "data", None) or []
        if len(rows) != 1:
            raise BackendError(f"insert returned {len(rows)} rows, expected exactly one")

        dropped = self.cache.invalidate((LIST_KEY,))
        logger.info(
            "aluna created",
            extra={"event": {"action": "insert", "table": self.table, "invalidated": dropped}},
        )
        return rows[0]
