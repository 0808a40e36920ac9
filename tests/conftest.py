# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.

Routers talk to Supabase through `get_supabase_client()`. The tests swap
the client factory for `FakeSupabase`, an in-memory stand-in for the
subset of the supabase-py query builder this API uses. Column lists in
`select()` are ignored: every query returns whole rows.
"""

import copy
import re
import uuid
from types import SimpleNamespace
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch

from main import create_app
from core.config import settings
from dependencies.auth import CurrentUser, get_current_user


# ============================================================
# In-memory Supabase
# ============================================================
class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


def _ilike(value, pattern) -> bool:
    if value is None:
        return False
    regex = "^" + ".*".join(re.escape(part) for part in str(pattern).split("%")) + "$"
    return re.match(regex, str(value), re.IGNORECASE | re.DOTALL) is not None


def _compare(op):
    def check(value, other):
        if value is None:
            return False
        try:
            return op(value, other)
        except TypeError:
            return False
    return check


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.payload = None
        self.on_conflict = "id"
        self.filters = []
        self.orders = []
        self.start = None
        self.end = None
        self.max_rows = None
        self.count_mode = None

    # ---- actions ----
    def select(self, *columns, count=None):
        self.count_mode = count
        return self

    def insert(self, rows):
        self.action, self.payload = "insert", rows
        return self

    def update(self, values):
        self.action, self.payload = "update", values
        return self

    def upsert(self, rows, on_conflict="id"):
        self.action, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def delete(self):
        self.action = "delete"
        return self

    # ---- filters ----
    def _where(self, predicate):
        self.filters.append(predicate)
        return self

    def eq(self, column, value):
        return self._where(lambda r: r.get(column) == value)

    def neq(self, column, value):
        return self._where(lambda r: r.get(column) != value)

    def in_(self, column, values):
        values = list(values)
        return self._where(lambda r: r.get(column) in values)

    def ilike(self, column, pattern):
        return self._where(lambda r: _ilike(r.get(column), pattern))

    def gte(self, column, value):
        return self._where(lambda r: _compare(lambda a, b: a >= b)(r.get(column), value))

    def gt(self, column, value):
        return self._where(lambda r: _compare(lambda a, b: a > b)(r.get(column), value))

    def lte(self, column, value):
        return self._where(lambda r: _compare(lambda a, b: a <= b)(r.get(column), value))

    def lt(self, column, value):
        return self._where(lambda r: _compare(lambda a, b: a < b)(r.get(column), value))

    def contains(self, column, values):
        return self._where(lambda r: all(v in (r.get(column) or []) for v in values))

    def or_(self, expression):
        """Only `col.ilike.pattern` and `col.eq.value` terms."""
        terms = []
        for part in expression.split(","):
            column, op, value = part.split(".", 2)
            terms.append((column, op, value))

        def match(row):
            for column, op, value in terms:
                if op == "ilike" and _ilike(row.get(column), value):
                    return True
                if op == "eq" and str(row.get(column)) == value:
                    return True
            return False

        return self._where(match)

    # ---- shaping ----
    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def range(self, start, end):
        self.start, self.end = start, end
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    # ---- execution ----
    def _matching(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        table = self.db.tables.setdefault(self.table_name, [])

        if self.action == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.add(self.table_name, row) for row in rows]
            return FakeResponse(copy.deepcopy(created))

        if self.action == "upsert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in self.on_conflict.split(",")]
            result = []
            for row in rows:
                existing = next(
                    (r for r in table if all(k in row and r.get(k) == row[k] for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(copy.deepcopy(row))
                    result.append(existing)
                else:
                    result.append(self.db.add(self.table_name, row))
            return FakeResponse(copy.deepcopy(result))

        matching = self._matching()

        if self.action == "update":
            for row in matching:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matching))

        if self.action == "delete":
            ids = {id(r) for r in matching}
            self.db.tables[self.table_name] = [r for r in table if id(r) not in ids]
            return FakeResponse(copy.deepcopy(matching))

        rows = list(matching)
        total = len(rows)
        for column, desc in reversed(self.orders):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r.get(column), reverse=desc)
            rows = present + missing

        if self.start is not None:
            rows = rows[self.start:self.end + 1]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]

        return FakeResponse(copy.deepcopy(rows), total if self.count_mode else None)


class FakeAuth:
    def __init__(self):
        self.tokens = {}

    def get_user(self, token):
        user = self.tokens.get(token)
        if user is None:
            raise Exception("Invalid JWT")
        return SimpleNamespace(user=user)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add(self, table: str, row: dict) -> dict:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self.tables.setdefault(table, []).append(stored)
        return stored

    def seed(self, table: str, *rows: dict):
        created = [copy.deepcopy(self.add(table, row)) for row in rows]
        return created[0] if len(created) == 1 else created

    def rows(self, table: str, **filters):
        return [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]


# ============================================================
# Fixtures
# ============================================================
@pytest.fixture
def db(monkeypatch) -> Generator[FakeSupabase, None, None]:
    fake = FakeSupabase()
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setattr(settings, "SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    with patch("core.supabase_client.create_client", return_value=fake):
        yield fake


@pytest.fixture(scope="function")
def app(db):
    """Create a test FastAPI application instance."""
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def owner_user():
    return CurrentUser(id="user-owner", email="owner@example.com", name="Olivia Owner")


@pytest.fixture
def contractor_user():
    return CurrentUser(id="user-contractor", email="contractor@example.com", name="Carl Contractor")


@pytest.fixture
def outsider_user():
    return CurrentUser(id="user-outsider", email="outsider@example.com", name="Otto Outsider")


@pytest.fixture
def login(app):
    """`login(user)` makes every following request run as `user`."""
    def _login(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


@pytest.fixture
def as_owner(login, db, owner_user):
    db.seed("users", {"id": owner_user.id, "email": owner_user.email, "name": owner_user.name})
    return login(owner_user)


@pytest.fixture
def permit_setup(db, owner_user, contractor_user):
    """A property, its permit (created by the owner) and the contractor as a party."""
    db.seed("users", {"id": contractor_user.id, "email": contractor_user.email, "name": contractor_user.name})
    prop = db.seed("properties", {
        "id": "prop-1",
        "owner_id": owner_user.id,
        "name": "Main Street House",
        "address": "12 Main Street",
        "city": "Princeton",
        "state": "NJ",
        "zip_code": "08540",
        "block_lot": "Block 5 Lot 12",
    })
    permit = db.seed("permits", {
        "id": "permit-1",
        "creator_id": owner_user.id,
        "property_id": prop["id"],
        "title": "Kitchen Renovation",
        "status": "DRAFT",
        "internal_ref": "PRM-ABCDEF12",
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    })
    db.seed("permit_parties", {
        "id": "party-1",
        "permit_id": permit["id"],
        "user_id": contractor_user.id,
        "role": "CONTRACTOR",
        "added_at": "2026-01-02T00:00:00+00:00",
    })
    return SimpleNamespace(property=prop, permit=permit)


@pytest.fixture(autouse=True)
def reset_cache():
    """Reset cache and rate limits before each test."""
    from core.cache import cache_clear
    from core.rate_limiter import reset_rate_limits
    cache_clear()
    reset_rate_limits()
    yield
    cache_clear()


@pytest.fixture(autouse=True)
def no_outbound_delivery():
    """No real email or push leaves the test run."""
    with patch("core.notifications.smtplib.SMTP_SSL") as smtp, patch("core.notifications.requests.post") as push:
        yield SimpleNamespace(smtp=smtp, push=push)
