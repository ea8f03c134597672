"""Shared fixtures: an in-memory stand-in for a SQLAlchemy engine."""

import copy
import re
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

import pytest
from sqlalchemy.exc import IntegrityError

from column_governance.databases.base import ColumnStoreAdapter


class FakeResult:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, rowcount: int = 0):
        self._rows = rows or []
        self.rowcount = rowcount

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def scalar(self):
        first = self.first()
        return None if first is None else next(iter(first.values()))

    def scalars(self):
        return FakeScalars([next(iter(r.values())) for r in self._rows])


class FakeScalars:
    def __init__(self, values: List[Any]):
        self._values = values

    def all(self):
        return list(self._values)


class FakeStore:
    """A column_classifications table kept in a dict, keyed by id.

    Understands the handful of statements the adapters issue against the
    table; every statement is recorded in ``statements``.
    """

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.statements: List[str] = []
        self.table_exists = False
        self.has_pci = True
        self.unique_constraints: List[str] = []
        self.fail_on: Optional[Callable[[str, Any], Optional[Exception]]] = None

    def execute(self, sql: str, params: Any) -> FakeResult:
        normalized = " ".join(sql.split())
        self.statements.append(normalized)
        if self.fail_on is not None:
            exc = self.fail_on(normalized, params)
            if exc is not None:
                raise exc
        upper = normalized.upper()

        if isinstance(params, list):
            for item in params:
                self._insert(item)
            return FakeResult(rowcount=len(params))
        if upper.startswith("CREATE TABLE"):
            self.table_exists = True
            return FakeResult()
        if "FROM USER_TABLES" in upper:
            return FakeResult([{"table_name": "COLUMN_CLASSIFICATIONS"}] if self.table_exists else [])
        if "FROM USER_CONSTRAINTS" in upper:
            return FakeResult([{"constraint_name": name} for name in self.unique_constraints])
        if "FROM USER_TAB_COLUMNS" in upper:
            return FakeResult([{"count": 1 if self.has_pci else 0}])
        if upper.startswith("ALTER TABLE") and "DROP CONSTRAINT" in upper:
            self.unique_constraints = [n for n in self.unique_constraints if n not in normalized]
            return FakeResult()
        if upper.startswith("ALTER TABLE") and ("ADD COLUMN" in upper or "ADD (PCI" in upper):
            self.has_pci = True
            return FakeResult()
        if upper.startswith("SELECT"):
            if isinstance(params, dict) and "id" in params:
                row = self.rows.get(params["id"])
                return FakeResult([dict(row)] if row is not None else [])
            ordered = sorted(self.rows.values(), key=lambda r: r["column_name"])
            return FakeResult([dict(r) for r in ordered])
        if upper.startswith("INSERT"):
            row = self._insert(params)
            return FakeResult([dict(row)] if "RETURNING" in upper else [], rowcount=1)
        if upper.startswith("UPDATE"):
            row = self.rows.get(params["id"])
            if row is None:
                return FakeResult(rowcount=0)
            for key in ("description", "ndmo_classification", "reason_ndmo", "pii", "phi", "pfi", "psi", "pci"):
                row[key] = params[key]
            return FakeResult([dict(row)] if "RETURNING" in upper else [], rowcount=1)
        if upper.startswith("DELETE"):
            removed = self.rows.pop(params["id"], None)
            return FakeResult(rowcount=1 if removed else 0)
        if upper.startswith("TRUNCATE"):
            count = len(self.rows)
            self.rows.clear()
            return FakeResult(rowcount=count)
        return FakeResult()

    def _insert(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if params["id"] in self.rows:
            raise IntegrityError("INSERT", params, Exception("duplicate key value violates unique constraint"))
        row = dict(params)
        self.rows[row["id"]] = row
        return row


class FakeConnection:
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine
        self.committed = False

    def execute(self, statement, params=None) -> FakeResult:
        return self.engine.store.execute(str(statement), params)

    def commit(self):
        self.committed = True
        self.engine.commits += 1

    @contextmanager
    def begin_nested(self):
        snapshot = copy.deepcopy(self.engine.store.rows)
        try:
            yield self
        except Exception:
            self.engine.store.rows = snapshot
            raise


class FakeEngine:
    def __init__(self, store: FakeStore, connect_error: Optional[Exception] = None):
        self.store = store
        self.connect_error = connect_error
        self.disposed = False
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        yield FakeConnection(self)

    @contextmanager
    def begin(self):
        if self.connect_error is not None:
            raise self.connect_error
        snapshot = copy.deepcopy(self.store.rows)
        conn = FakeConnection(self)
        try:
            yield conn
        except Exception:
            self.store.rows = snapshot
            self.rollbacks += 1
            raise
        self.commits += 1

    def dispose(self):
        self.disposed = True


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def engines(monkeypatch, store) -> List[FakeEngine]:
    """Route every adapter's create_engine to a FakeEngine over ``store``."""
    created: List[FakeEngine] = []

    def fake_create_engine(self, connection_string):
        # Still parse the string so malformed input fails the same way.
        self.engine_options(connection_string)
        engine = FakeEngine(store)
        created.append(engine)
        return engine

    monkeypatch.setattr(ColumnStoreAdapter, "create_engine", fake_create_engine)
    return created


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "OPENAI_BASE_URL",
        "OPENAI_TIMEOUT_SECONDS",
        "CLASSIFY_MAX_WORKERS",
        "API_AUTH_TOKEN",
        "KEYVAULT_NAME",
    ):
        monkeypatch.delenv(name, raising=False)


def statements_matching(store: FakeStore, pattern: str) -> List[str]:
    regex = re.compile(pattern, re.IGNORECASE)
    return [s for s in store.statements if regex.search(s)]
