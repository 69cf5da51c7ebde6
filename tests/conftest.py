"""
Shared fixtures: test environment, an in-memory Supabase double and an API client.
"""

import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from valeris.app.common.config import reset_config

TEST_USER_ID = "user-1"
TEST_EMAIL = "trader@example.com"
TEST_TOKEN = "test-token"


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Enough of the postgrest builder for the services under test."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.orders = []
        self.row_limit = None

    # filters
    def select(self, *columns, **kwargs):
        return self

    def eq(self, col, val):
        self.filters.append(lambda r: r.get(col) == val)
        return self

    def neq(self, col, val):
        self.filters.append(lambda r: r.get(col) != val)
        return self

    def gt(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) > val)
        return self

    def gte(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) >= val)
        return self

    def lt(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) < val)
        return self

    def lte(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and r.get(col) <= val)
        return self

    def in_(self, col, values):
        self.filters.append(lambda r: r.get(col) in values)
        return self

    def order(self, col, desc=False):
        self.orders.append((col, desc))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    # writes
    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict="id", **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _new_row(self, row):
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        return row

    def execute(self):
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"{self.table} unavailable")

        rows = self.db.tables.setdefault(self.table, [])
        self.db.calls.append((self.table, self.op, copy.deepcopy(self.payload)))

        if self.op == "select":
            result = [copy.deepcopy(r) for r in rows if self._matches(r)]
            for col, desc in reversed(self.orders):
                result.sort(key=lambda r: (r.get(col) is None, r.get(col)), reverse=desc)
            if self.row_limit is not None:
                result = result[: self.row_limit]
            return FakeResponse(result)

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self._new_row(r) for r in payload]
            rows.extend(created)
            return FakeResponse(copy.deepcopy(created))

        if self.op == "update":
            updated = []
            for r in rows:
                if self._matches(r):
                    r.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(r))
            return FakeResponse(updated)

        if self.op == "upsert":
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in payload:
                existing = next(
                    (r for r in rows if all(r.get(k) == item.get(k) for k in keys)), None
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
                else:
                    created = self._new_row(item)
                    rows.append(created)
                    out.append(copy.deepcopy(created))
            return FakeResponse(out)

        removed = [r for r in rows if self._matches(r)]
        self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        return FakeResponse(removed)


class FakeSupabase:
    """In-memory stand-in for a supabase Client."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failing_tables = set()
        self.rpc_calls = []
        self.rpc_results = {}
        self.tokens = {}
        self.auth = MagicMock()
        self.auth.get_user.side_effect = self._get_user

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        self.rpc_calls.append((name, params or {}))
        return SimpleNamespace(execute=lambda: FakeResponse(self.rpc_results.get(name)))

    def seed(self, table, *rows):
        created = []
        for row in rows:
            row = copy.deepcopy(row)
            row.setdefault("id", str(uuid.uuid4()))
            self.tables.setdefault(table, []).append(row)
            created.append(row)
        return created[0] if len(created) == 1 else created

    def rows(self, table):
        return self.tables.get(table, [])

    def _get_user(self, token):
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        user_id, email = self.tokens[token]
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email))


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    monkeypatch.setenv("VALERIS_ENV", "test")
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    for var in ("SCHWAB_APP_KEY", "SCHWAB_APP_SECRET", "ETRADE_CONSUMER_KEY",
                "ETRADE_CONSUMER_SECRET", "OPENAI_API_KEY", "STRIPE_PUBLISHABLE_KEY"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def profile(db):
    return db.seed(
        "profiles",
        {
            "id": TEST_USER_ID,
            "email": TEST_EMAIL,
            "starting_capital": 100000,
            "current_capital": 100000,
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "best_trade": 0,
            "worst_trade": 0,
            "subscription_tier": "free",
        },
    )


@pytest.fixture
def api(db):
    from fastapi.testclient import TestClient

    from valeris.app.api.auth import get_supabase
    from valeris.app.main import app

    db.tokens[TEST_TOKEN] = (TEST_USER_ID, TEST_EMAIL)
    app.dependency_overrides[get_supabase] = lambda: db
    client = TestClient(app, headers={"Authorization": f"Bearer {TEST_TOKEN}"})
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return db.seed("admin_users", {"user_id": TEST_USER_ID, "role": "admin"})
