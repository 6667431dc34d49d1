"""Shared fixtures: settings from env and an in-memory PostgREST stand-in."""

from __future__ import annotations

import json
import os
import uuid
from typing import Any

import httpx
import pytest

# Handler modules configure logging at import time, which reads settings.
os.environ.setdefault("BOT_TOKEN", "123456:TEST")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")

from gymstudio.core import get_settings  # noqa: E402
from gymstudio.db.supabase import SupabaseClient  # noqa: E402

BASE_URL = "https://project.supabase.co"


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BOT_TOKEN", "123456:TEST")
    monkeypatch.setenv("SUPABASE_URL", BASE_URL)
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")
    monkeypatch.setenv("TIMEZONE", "America/Sao_Paulo")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _as_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _compare(stored: Any, op: str, raw: str) -> bool:
    if op == "is":
        return _as_text(stored) == raw
    if op == "not.is":
        return _as_text(stored) != raw
    if op == "in":
        return _as_text(stored) in raw.strip("()").split(",")
    if op == "eq":
        return _as_text(stored) == raw
    if op == "neq":
        return _as_text(stored) != raw
    if stored is None:
        return False

    left: Any = _as_text(stored)
    right: Any = raw
    if _number(left) is not None and _number(right) is not None:
        left, right = _number(left), _number(right)
    return {
        "gt": left > right,
        "gte": left >= right,
        "lt": left < right,
        "lte": left <= right,
    }[op]


def _matches(row: dict[str, Any], filters: list[tuple[str, str]]) -> bool:
    for column, expression in filters:
        if "." in column:
            # Embedded resource filters are not modelled
            continue
        if expression.startswith("not.is."):
            op, raw = "not.is", expression[len("not.is."):]
        else:
            op, _, raw = expression.partition(".")
        if not _compare(row.get(column), op, raw):
            return False
    return True


class FakePostgrest:
    """
    In-memory tables served over `httpx.MockTransport`.

    Embedded columns (`lead:leads(...)`) are not resolved: seed rows with
    the nested dicts already in place. Every request is kept in
    `requests` for assertions.
    """

    CONTROL_PARAMS = {"select", "order", "limit", "grant_type"}
    # Columns the database fills in on insert
    DEFAULTS: dict[str, dict[str, Any]] = {
        "check_ins": {"checked_in_at": "2024-06-15T09:30:00+00:00"},
    }

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.auth_responses: dict[str, httpx.Response] = {}
        self.fail_tables: set[str] = set()
        # Timestamp stamped on inserted rows
        self.now = "2024-06-10T12:00:00+00:00"

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(row) for row in rows)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.get(table, [])

    def requests_for(self, path_suffix: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.path.endswith(path_suffix) and (method is None or r.method == method)
        ]

    def _filters(self, request: httpx.Request) -> list[tuple[str, str]]:
        return [(k, v) for k, v in request.url.params.multi_items() if k not in self.CONTROL_PARAMS]

    def _select(self, request: httpx.Request, table: str) -> list[dict[str, Any]]:
        rows = [row for row in self.rows(table) if _matches(row, self._filters(request))]
        order = request.url.params.get("order")
        if order:
            for part in reversed(order.split(",")):
                column, _, direction = part.partition(".")
                rows.sort(key=lambda r, c=column: _as_text(r.get(c)), reverse=direction == "desc")
        limit = request.url.params.get("limit")
        if limit is not None:
            rows = rows[: int(limit)]
        return rows

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/auth/v1"):
            key = path[len("/auth/v1"):]
            return self.auth_responses.get(key, httpx.Response(404, json={"msg": "not found"}))
        if path.startswith("/storage/v1"):
            return httpx.Response(200, json={"Key": path})

        table = path[len("/rest/v1/"):]
        if table in self.fail_tables:
            return httpx.Response(500, json={"message": f"{table} unavailable"})

        if request.method == "GET":
            return httpx.Response(200, json=self._select(request, table))
        if request.method == "HEAD":
            total = len(self._select(request, table))
            return httpx.Response(200, headers={"content-range": f"0-{max(total - 1, 0)}/{total}"})
        if request.method == "POST":
            payload = json.loads(request.content)
            items = payload if isinstance(payload, list) else [payload]
            created = []
            for item in items:
                row = {
                    "id": str(uuid.uuid4()),
                    "created_at": self.now,
                    **self.DEFAULTS.get(table, {}),
                    **item,
                }
                self.seed(table, row)
                created.append(row)
            return httpx.Response(201, json=created)
        if request.method == "PATCH":
            payload = json.loads(request.content)
            updated = []
            for row in self.rows(table):
                if _matches(row, self._filters(request)):
                    row.update(payload)
                    updated.append(row)
            return httpx.Response(200, json=updated)
        if request.method == "DELETE":
            filters = self._filters(request)
            kept, removed = [], []
            for row in self.rows(table):
                (removed if _matches(row, filters) else kept).append(row)
            self.tables[table] = kept
            return httpx.Response(200, json=removed)
        return httpx.Response(405)


@pytest.fixture
def fake_db() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture
async def supabase(fake_db: FakePostgrest):
    client = SupabaseClient(get_settings(), transport=httpx.MockTransport(fake_db.handler))
    yield client
    await client.close()


