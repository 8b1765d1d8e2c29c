"""Key-value persistence used by the account-scoped stores."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, Optional, Protocol

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn


class KeyValueStorage(Protocol):
    """Durable string storage keyed by account-scoped keys.

    Implementations raise on failure; callers decide how failures surface.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def subscription_storage_key(namespace: str, account_id: str) -> str:
    return f"{namespace}-subscription-{account_id}"


def preferences_storage_key(namespace: str, account_id: str) -> str:
    return f"{namespace}-user-preferences-{account_id}"


class InMemoryKeyValueStorage:
    """Simple in-memory storage suitable for tests and local development."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._values)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresKeyValueStorage:
    """Stores serialized account records in the ``account_storage`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def get(self, key: str) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT value FROM account_storage WHERE storage_key = %s",
                (key,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO account_storage (storage_key, value, updated_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (storage_key) DO UPDATE
                SET value = EXCLUDED.value,
                    updated_at = NOW()
                """,
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM account_storage WHERE storage_key = %s", (key,))


__all__ = [
    "InMemoryKeyValueStorage",
    "KeyValueStorage",
    "PostgresKeyValueStorage",
    "managed_connection",
    "preferences_storage_key",
    "subscription_storage_key",
]
