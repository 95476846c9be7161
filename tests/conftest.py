"""Shared fixtures: an in-memory stand-in for the Supabase client."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError as PostgrestError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coachdash.config import FeatureFlags, Settings
from coachdash.deliverability import DeliverabilityResult
from coachdash.gateway import SupabaseGateway
from coachdash.service import create_app


COACH_TOKEN = "coach-token"
ADMIN_TOKEN = "admin-token"
COACH_ID = "coach-1"
ADMIN_ID = "admin-1"


def postgrest_error(message: str, code: str = "P0001") -> PostgrestError:
    return PostgrestError({"message": message, "code": code, "hint": None, "details": None})


class FakeDatabase:
    """Tables, RPC results and auth users shared by every fake client."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {"profiles": [], "message_drafts": [], "competitors": []}
        self.rpc_results: Dict[str, Any] = {}
        self.failures: Dict[str, Any] = {}
        self.users: Dict[str, SimpleNamespace] = {}
        self.passwords: Dict[str, tuple[str, str]] = {}
        self.calls: List[tuple] = []
        self._next_id = 1

    def add_user(self, token: str, user_id: str, email: str, *, role: Optional[str] = None, password: Optional[str] = None) -> None:
        self.users[token] = SimpleNamespace(id=user_id, email=email, user_metadata={"full_name": email.split("@")[0]})
        if role is not None:
            self.tables["profiles"].append({"id": user_id, "role": role})
        if password is not None:
            self.passwords[email] = (password, token)

    def next_id(self) -> str:
        value = f"row-{self._next_id}"
        self._next_id += 1
        return value

    def fail_if_requested(self, name: str) -> None:
        failure = self.failures.get(name)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            raise postgrest_error(failure)


_OR_CLAUSE = re.compile(r'(\w+)\.eq\.("(?:[^"\\]|\\.)*"|[^,]*)')


def _matches(row: Dict[str, Any], filters: List[tuple], alternatives: List[tuple]) -> bool:
    if any(row.get(column) != value for column, value in filters):
        return False
    if alternatives and not any(row.get(column) == value for column, value in alternatives):
        return False
    return True


class FakeQuery:
    def __init__(self, db: FakeDatabase, table: str, token: Optional[str]) -> None:
        self._db = db
        self._table = table
        self._token = token
        self._action = "select"
        self._payload: Any = None
        self._filters: List[tuple] = []
        self._alternatives: List[tuple] = []
        self._single = False
        self._limit: Optional[int] = None
        self._order: Optional[tuple] = None

    def select(self, *_columns: str) -> "FakeQuery":
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def or_(self, expression: str) -> "FakeQuery":
        for match in _OR_CLAUSE.finditer(expression):
            column, value = match.group(1), match.group(2)
            if value.startswith('"'):
                value = re.sub(r"\\(.)", r"\1", value[1:-1])
            self._alternatives.append((column, value))
        return self

    def order(self, column: str, *, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, size: int) -> "FakeQuery":
        self._limit = size
        return self

    def single(self) -> "FakeQuery":
        self._single = True
        return self

    def insert(self, record: Dict[str, Any]) -> "FakeQuery":
        self._action, self._payload = "insert", record
        return self

    def update(self, record: Dict[str, Any]) -> "FakeQuery":
        self._action, self._payload = "update", record
        return self

    def upsert(self, record: Dict[str, Any], on_conflict: str = "") -> "FakeQuery":
        self._action, self._payload = "upsert", record
        return self

    def delete(self) -> "FakeQuery":
        self._action = "delete"
        return self

    def execute(self) -> SimpleNamespace:
        self._db.calls.append(("table", self._table, self._action, self._token))
        self._db.fail_if_requested(self._table)
        rows = self._db.tables.setdefault(self._table, [])

        if self._action == "insert":
            record = dict(self._payload, id=self._db.next_id())
            rows.append(record)
            return SimpleNamespace(data=[record])

        if self._action == "upsert":
            record = dict(self._payload)
            record.setdefault("id", self._db.next_id())
            record["updated_at"] = "2024-05-01T12:00:00Z"
            rows[:] = [row for row in rows if row.get("id") != record["id"]]
            rows.append(record)
            return SimpleNamespace(data=[record])

        matched = [row for row in rows if _matches(row, self._filters, self._alternatives)]

        if self._action == "update":
            for row in matched:
                row.update(self._payload)
            return SimpleNamespace(data=matched)

        if self._action == "delete":
            rows[:] = [row for row in rows if row not in matched]
            return SimpleNamespace(data=matched)

        if self._order is not None:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        if self._single:
            if len(matched) != 1:
                raise postgrest_error("JSON object requested, multiple (or no) rows returned", "PGRST116")
            return SimpleNamespace(data=matched[0])
        return SimpleNamespace(data=matched)


class FakeRPC:
    def __init__(self, db: FakeDatabase, name: str, params: Dict[str, Any], token: Optional[str]) -> None:
        self._db = db
        self._name = name
        self._params = params
        self._token = token

    def execute(self) -> SimpleNamespace:
        self._db.calls.append(("rpc", self._name, self._params, self._token))
        self._db.fail_if_requested(self._name)
        result = self._db.rpc_results.get(self._name)
        if callable(result):
            result = result(self._params)
        return SimpleNamespace(data=result)


class FakeAuth:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_user(self, token: str) -> Optional[SimpleNamespace]:
        self._db.calls.append(("auth.get_user", token))
        user = self._db.users.get(token)
        if user is None:
            return None
        return SimpleNamespace(user=user)

    def sign_in_with_password(self, credentials: Dict[str, str]) -> SimpleNamespace:
        expected = self._db.passwords.get(credentials["email"])
        if expected is None or expected[0] != credentials["password"]:
            return SimpleNamespace(session=None, user=None)
        return SimpleNamespace(session=SimpleNamespace(access_token=expected[1]))


class FakePostgrest:
    def __init__(self, owner: "FakeClient") -> None:
        self._owner = owner

    def auth(self, token: str) -> None:
        self._owner.token = token


class FakeClient:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self.token: Optional[str] = None
        self.auth = FakeAuth(db)
        self.postgrest = FakePostgrest(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self._db, name, self.token)

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> FakeRPC:
        return FakeRPC(self._db, name, params or {}, self.token)


class StubChecker:
    def __init__(self, result: Optional[DeliverabilityResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result or DeliverabilityResult(is_valid=True, deliverability="deliverable", was_checked=True)
        self.error = error
        self.checked: List[str] = []

    def check(self, email: str) -> DeliverabilityResult:
        self.checked.append(email)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture()
def fake_db() -> FakeDatabase:
    db = FakeDatabase()
    db.add_user(COACH_TOKEN, COACH_ID, "coach@example.com", role="coach", password="coach-password")
    db.add_user(ADMIN_TOKEN, ADMIN_ID, "admin@example.com", role="admin", password="admin-password")
    return db


@pytest.fixture()
def gateway(fake_db: FakeDatabase) -> SupabaseGateway:
    return SupabaseGateway(
        "https://project.supabase.co",
        "anon-key",
        client_factory=lambda url, key: FakeClient(fake_db),
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        admin_creation_key_hash="expected-hash",
        auth_url="https://dashboard.example.com",
        session_secret="tests-secret-key",
        supabase_url="https://project.supabase.co",
        supabase_anon_key="anon-key",
        features=FeatureFlags(message_threading=True),
    )


@pytest.fixture()
def checker() -> StubChecker:
    return StubChecker()


@pytest.fixture()
def make_client(settings: Settings, gateway: SupabaseGateway, checker: StubChecker) -> Callable[..., TestClient]:
    def factory(**overrides: Any) -> TestClient:
        app = create_app(
            settings=overrides.pop("settings", settings),
            gateway=overrides.pop("gateway", gateway),
            email_checker=overrides.pop("email_checker", checker),
            **overrides,
        )
        return TestClient(app)

    return factory


@pytest.fixture()
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
