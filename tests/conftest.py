from __future__ import annotations

import pytest

import db


class FakeDatabase:
    """Stands in for ``db.query``: records statements and answers from canned rows."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.total = 0
        self.rows: list[dict] = []
        self.one: dict | None = None
        self.connected = True

    def query(self, sql, params=None, retries=None, base_delay=None):
        self.calls.append((sql, dict(params or {})))
        if "total_count" in sql:
            return [{"total_count": self.total}]
        return list(self.rows)

    def query_one(self, sql, params=None):
        self.calls.append((sql, dict(params or {})))
        return self.one

    def check_connection(self):
        return self.connected

    def ping(self):
        if not self.connected:
            raise RuntimeError("Can't connect to MySQL server on 'db' (timed out)")


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeDatabase()
    monkeypatch.setattr(db, "query", fake.query)
    monkeypatch.setattr(db, "query_one", fake.query_one)
    monkeypatch.setattr(db, "check_connection", fake.check_connection)
    monkeypatch.setattr(db, "ping", fake.ping)
    return fake


@pytest.fixture
def client(fake_db):
    from app import app

    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client
