import os

# Settings are read at import time by app.core.*
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import uuid
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from postgrest import APIError

from app.core.cart_storage import MemoryCartPersistence
from app.repositories.cart_repo import CartRepository
from app.schemas.jam import Jam
from app.services.cart_mirror import CartMirror
from app.services.cart_store import CartStore

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Supabase fake
# =============================================================================


class FakeQuery:
    """
    Minimal stand-in for the postgrest request builder.

    Supports the subset the repositories use; filters are evaluated in
    Python over the rows of FakeSupabase.tables.
    """

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = ""
        self.filters = []
        self.ordering = []
        self.row_limit = None

    def _record(self, method, *args):
        self.db.calls.append((self.table, method, args))
        return self

    # ---- operations ----

    def select(self, columns="*", count=None):
        self.op = "select"
        self.columns = columns
        return self._record("select", columns)

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self._record("insert", rows)

    def upsert(self, rows, on_conflict=""):
        self.op = "upsert"
        self.payload = rows
        self.on_conflict = on_conflict
        return self._record("upsert", rows, on_conflict)

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self._record("update", values)

    def delete(self):
        self.op = "delete"
        return self._record("delete")

    # ---- filters ----

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self._record("eq", column, value)

    def neq(self, column, value):
        self.filters.append(lambda r: r.get(column) != value)
        return self._record("neq", column, value)

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self._record("in_", column, values)

    def lte(self, column, value):
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) <= value)
        return self._record("lte", column, value)

    def ilike(self, column, pattern):
        needle = pattern.strip("%").casefold()
        self.filters.append(lambda r: needle in (r.get(column) or "").casefold())
        return self._record("ilike", column, pattern)

    def overlaps(self, column, values):
        wanted = set(values)
        self.filters.append(lambda r: bool(wanted & set(r.get(column) or [])))
        return self._record("overlaps", column, list(values))

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self._record("order", column, desc)

    def limit(self, n):
        self.row_limit = n
        return self._record("limit", n)

    # ---- execution ----

    def _matching(self):
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]

    def execute(self):
        error = self.db.failures.get(self.table)
        if error is not None:
            raise error

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            batch = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.new_row(row) for row in batch]
            rows.extend(created)
            if self.table in self.db.unreturned:
                return SimpleNamespace(data=[], count=None)
            return SimpleNamespace(data=[dict(r) for r in created], count=None)

        if self.op == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()]
            result = []
            for row in self.payload:
                existing = next(
                    (r for r in rows if keys and all(r.get(k) == row.get(k) for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(row)
                    result.append(dict(existing))
                else:
                    created = self.db.new_row(row)
                    rows.append(created)
                    result.append(dict(created))
            return SimpleNamespace(data=result, count=None)

        matched = self._matching()

        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not any(r is m for m in matched)]
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        for column, desc in reversed(self.ordering):
            matched = sorted(
                matched,
                key=lambda r: (r.get(column) is not None, r.get(column)),
                reverse=desc,
            )
        if self.row_limit is not None:
            matched = matched[: self.row_limit]

        data = [self.db.embed(self.table, self.columns, dict(r)) for r in matched]
        return SimpleNamespace(data=data, count=len(data))


class FakeSupabase:
    """In-memory tables + a call log, shaped like supabase.Client.table()."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        # tables whose inserted rows are not returned (row level security)
        self.unreturned: set[str] = set()
        self._clock = 0

    def table(self, name):
        self.calls.append((name, "table", ()))
        return FakeQuery(self, name)

    def fail(self, table, message="boom"):
        self.failures[table] = APIError({"message": message, "code": "500"})

    def new_row(self, row):
        self._clock += 1
        created = dict(row)
        created.setdefault("id", str(uuid.uuid4()))
        created.setdefault(
            "created_at", (_BASE_TIME + timedelta(seconds=self._clock)).isoformat()
        )
        return created

    def embed(self, table, columns, row):
        # cart_items -> jams (...) is the only embedding the repositories rely on
        if table == "cart_items" and "jams (" in columns:
            row["jams"] = next(
                (dict(j) for j in self.tables.get("jams", []) if j["id"] == row.get("jam_id")),
                None,
            )
        return row

    def called(self, table, method):
        return [args for t, m, args in self.calls if t == table and m == method]


# =============================================================================
# Executors
# =============================================================================


class InlineExecutor(Executor):
    """Runs submitted callables immediately on the caller's thread."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future


class ManualExecutor(Executor):
    """Queues callables until the test runs them."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as e:
                future.set_exception(e)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def inline_mirror():
    return CartMirror(InlineExecutor(), max_attempts=3)


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def make_jam():
    """Factory for Jam listings with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Jam:
        counter["n"] += 1
        data = {
            "id": f"jam-{counter['n']}",
            "name": f"Jam {counter['n']}",
            "creator_id": "maker-1",
            "price_credits": 10,
        }
        data.update(overrides)
        return Jam.model_validate(data)

    return _make


@pytest.fixture
def guest_store(inline_mirror):
    return CartStore(
        MemoryCartPersistence(),
        repo=CartRepository(),
        client=None,
        mirror=inline_mirror,
    )


@pytest.fixture
def user_store(fake_db, inline_mirror):
    return CartStore(
        MemoryCartPersistence(),
        repo=CartRepository(),
        client=fake_db,
        mirror=inline_mirror,
        user_id="user-1",
    )
