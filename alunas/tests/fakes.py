# alunas/tests/fakes.py
"""
In-memory stand-in for the supabase-py query builder. Supports the subset
AlunasRepository uses and evaluates it against a list of dict rows.
"""
from __future__ import annotations

import copy
import fnmatch
import itertools
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional


def _split_or(expr: str) -> List[str]:
    """Split a PostgREST or-expression on top-level commas (respecting quotes)."""
    parts, buf, quoted, escaped = [], [], False, False
    for ch in expr:
        if escaped:
            buf.append(ch)
            escaped = False
        elif ch == "\\" and quoted:
            buf.append(ch)
            escaped = True
        elif ch == '"':
            quoted = not quoted
            buf.append(ch)
        elif ch == "," and not quoted:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))
    return parts


def _unquote(val: str) -> str:
    if len(val) >= 2 and val[0] == '"' and val[-1] == '"':
        inner, out, escaped = val[1:-1], [], False
        for ch in inner:
            if escaped:
                out.append(ch)
                escaped = False
            elif ch == "\\":
                escaped = True
            else:
                out.append(ch)
        return "".join(out)
    return val


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    glob = pattern.lower().replace("[", "[[]")
    return fnmatch.fnmatchcase(str(value).lower(), glob)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.calls: List[tuple] = []
        self._preds: List[Callable[[Dict[str, Any]], bool]] = []
        self._columns: Optional[List[str]] = None
        self._count: Optional[str] = None
        self._order: Optional[tuple] = None
        self._range: Optional[tuple] = None
        self._insert: Optional[Dict[str, Any]] = None
        self._negate = False

    def _record(self, *call) -> "FakeQuery":
        self.calls.append(call)
        return self

    # ---- builder API ----
    def select(self, *columns: str, count: Optional[str] = None) -> "FakeQuery":
        cols = ",".join(columns)
        self._columns = None if cols.strip() == "*" else [c.strip() for c in cols.split(",")]
        self._count = count
        return self._record("select", cols, count)

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self._record("order", column, desc)

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._preds.append(lambda r: r.get(column) == value)
        return self._record("eq", column, value)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._preds.append(lambda r: r.get(column) is not None and r[column] >= value)
        return self._record("gte", column, value)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self._preds.append(lambda r: r.get(column) is not None and r[column] <= value)
        return self._record("lte", column, value)

    def or_(self, filters: str) -> "FakeQuery":
        terms = []
        for part in _split_or(filters):
            col, op, raw = part.split(".", 2)
            if op != "ilike":
                raise NotImplementedError(op)
            terms.append((col, _unquote(raw)))
        self._preds.append(lambda r: any(_ilike(r.get(c), p) for c, p in terms))
        return self._record("or_", filters)

    @property
    def not_(self) -> "FakeQuery":
        self._negate = True
        return self

    def is_(self, column: str, value: Any) -> "FakeQuery":
        negate, self._negate = self._negate, False
        want_null = value in (None, "null")
        if negate:
            self._preds.append(lambda r: (r.get(column) is None) != want_null)
            return self._record("not.is_", column, value)
        self._preds.append(lambda r: (r.get(column) is None) == want_null)
        return self._record("is_", column, value)

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self._record("range", start, end)

    def insert(self, row: Dict[str, Any]) -> "FakeQuery":
        self._insert = row
        return self._record("insert", row)

    # ---- evaluation ----
    def execute(self):
        self.db.executions += 1
        if self.db.error is not None:
            raise self.db.error
        if self._insert is not None:
            row = {"id": next(self.db._ids), **copy.deepcopy(self._insert)}
            self.db.rows.append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)], count=None)

        rows = [r for r in self.db.rows if all(p(r) for p in self._preds)]
        if self._order:
            col, desc = self._order
            rows.sort(key=lambda r: (r.get(col) is None, r.get(col) or ""), reverse=desc)
        total = len(rows)
        if self._range:
            start, end = self._range
            rows = rows[start : end + 1]
        if self._columns is not None:
            rows = [{c: r.get(c) for c in self._columns} for r in rows]
        return SimpleNamespace(
            data=copy.deepcopy(rows),
            count=total if self._count == "exact" else None,
        )


class FakeSupabase:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.queries: List[FakeQuery] = []
        self.executions = 0
        self.error: Optional[BaseException] = None
        self._ids = itertools.count(1000)

    def table(self, name: str) -> FakeQuery:
        q = FakeQuery(self, name)
        self.queries.append(q)
        return q

    @property
    def last_query(self) -> FakeQuery:
        return self.queries[-1]


def student(**fields: Any) -> Dict[str, Any]:
    row = {
        "id": None,
        "nome": "",
        "email": "",
        "transacao": "",
        "curso": None,
        "data_compra": None,
        "discord_user_id": None,
        "status_acesso": None,
    }
    row.update(fields)
    return row
