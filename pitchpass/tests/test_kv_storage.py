from __future__ import annotations

import pytest

from pitchpass.app.subscriptions import storage as storage_module
from pitchpass.app.subscriptions import PostgresKeyValueStorage


class FakeCursor:
    def __init__(self, *, fetchone_result=None, fail=False):
        self.fetchone_result = fetchone_result
        self.fail = fail
        self.execute_calls = []
        self.closed = False

    def execute(self, query, params=None):
        self.execute_calls.append((" ".join(query.split()), params))
        if self.fail:
            raise RuntimeError("database unavailable")

    def fetchone(self):
        return self.fetchone_result

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, *cursors):
        self._cursors = list(cursors)
        self.cursor_calls = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, *args, **kwargs):
        self.cursor_calls.append((args, kwargs))
        if not self._cursors:
            raise AssertionError("No cursor configured")
        return self._cursors.pop(0)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


def test_get_returns_stored_value():
    cursor = FakeCursor(fetchone_result={"value": '{"status": "active"}'})
    conn = FakeConnection(cursor)
    storage = PostgresKeyValueStorage(conn=conn)

    assert storage.get("pitchpass-subscription-1") == '{"status": "active"}'

    query, params = cursor.execute_calls[0]
    assert query == "SELECT value FROM account_storage WHERE storage_key = %s"
    assert params == ("pitchpass-subscription-1",)
    assert cursor.closed is True
    assert conn.commits == 0


def test_get_missing_key_returns_none():
    storage = PostgresKeyValueStorage(conn=FakeConnection(FakeCursor(fetchone_result=None)))

    assert storage.get("missing") is None


def test_set_upserts_value():
    cursor = FakeCursor()
    storage = PostgresKeyValueStorage(conn=FakeConnection(cursor))

    storage.set("key", "payload")

    query, params = cursor.execute_calls[0]
    assert query.startswith("INSERT INTO account_storage (storage_key, value, updated_at)")
    assert "ON CONFLICT (storage_key) DO UPDATE" in query
    assert params == ("key", "payload")


def test_delete_removes_key():
    cursor = FakeCursor()
    storage = PostgresKeyValueStorage(conn=FakeConnection(cursor))

    storage.delete("key")

    assert cursor.execute_calls == [("DELETE FROM account_storage WHERE storage_key = %s", ("key",))]


def test_managed_connection_commits_and_closes(monkeypatch):
    conn = FakeConnection(FakeCursor())
    monkeypatch.setattr(storage_module, "get_conn", lambda: conn)

    PostgresKeyValueStorage().set("key", "payload")

    assert conn.commits >= 1
    assert conn.rollbacks == 0
    assert conn.closed is True


def test_managed_connection_rolls_back_on_failure(monkeypatch):
    conn = FakeConnection(FakeCursor(fail=True))
    monkeypatch.setattr(storage_module, "get_conn", lambda: conn)

    with pytest.raises(RuntimeError):
        PostgresKeyValueStorage().set("key", "payload")

    assert conn.commits == 0
    assert conn.rollbacks >= 1
    assert conn.closed is True
