import itertools
import json
from datetime import datetime, timezone

import httpx
import pytest

from telehealth_api import client as cl
from telehealth_api import recaptcha, session

STORE_URL = "http://store.test/rest/v1"
RECAPTCHA_URL = "https://recaptcha.test/siteverify"


@pytest.fixture(autouse=True)
def _service_env(monkeypatch):
    monkeypatch.setattr(cl, "_REST_URL", STORE_URL)
    monkeypatch.setattr(cl, "_SERVICE_KEY", "service-key")
    monkeypatch.setattr(recaptcha, "_SECRET_KEY", "recaptcha-secret")
    monkeypatch.setattr(recaptcha, "_VERIFY_URL", RECAPTCHA_URL)
    monkeypatch.setattr(session, "_SECRET", "test-session-secret")


def _split_select(expr):
    """Split a PostgREST select on top-level commas."""
    parts, depth, current = [], 0, ""
    for ch in expr:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        depth += ch == "("
        depth -= ch == ")"
        current += ch
    if current:
        parts.append(current)
    return parts


class FakeStore:
    """In-memory stand-in for the PostgREST endpoints the service uses."""

    UNIQUE = {"Users": "email", "Doctors": "email"}

    def __init__(self):
        self.tables = {"Users": [], "Doctors": [], "Bookings": []}
        self._ids = itertools.count(1)

    def handle(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        if request.method == "POST":
            return self._insert(table, json.loads(request.content))
        return self._select(table, request.url.params)

    def _insert(self, table, rows):
        created = []
        for row in rows:
            column = self.UNIQUE.get(table)
            if column and any(r[column] == row.get(column) for r in self.tables[table]):
                return httpx.Response(409, json={
                    "code": "23505",
                    "message": f'duplicate key value violates unique constraint "{table}_{column}_key"',
                })
            stored = dict(row, id=next(self._ids), created_at=datetime.now(timezone.utc).isoformat())
            self.tables[table].append(stored)
            created.append(dict(stored))
        return httpx.Response(201, json=created)

    def _select(self, table, params):
        filters = {k: v[len("eq."):] for k, v in params.items() if k not in ("select", "order")}
        rows = [r for r in self.tables[table] if all(str(r.get(k)) == v for k, v in filters.items())]
        for term in reversed(params.get("order", "").split(",") if params.get("order") else []):
            column, _, direction = term.partition(".")
            rows = sorted(rows, key=lambda r: str(r.get(column)), reverse=direction == "desc")
        return httpx.Response(200, json=[self._project(r, params.get("select", "*")) for r in rows])

    def _project(self, row, select):
        out = {}
        for item in _split_select(select):
            if item == "*":
                out.update(row)
            elif "(" in item:
                head, cols = item[:-1].split("(", 1)
                alias, _, fk = head.partition(":")
                related = next((r for r in self.tables[alias] if r["id"] == row.get(fk)), None)
                out[alias] = None if related is None else {c: related.get(c) for c in cols.split(",")}
            else:
                out[item] = row.get(item)
        return out


@pytest.fixture
def store():
    return FakeStore()
