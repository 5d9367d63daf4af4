# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: client-state key-value storage.

The port every client-side component persists through (sessions, identity
selection, visited teams, collapsed groups). Values are strings; JSON
helpers treat missing or malformed data as absence.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from collabtime.core.logging import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store, used by default and in tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._store)

    def clear(self) -> None:
        self._store.clear()


class ScopedKeyValueStore:
    """View of another store with every key prefixed (one per client device)."""

    def __init__(self, inner: KeyValueStore, prefix: str) -> None:
        self._inner = inner
        self._prefix = prefix

    def get(self, key: str) -> Optional[str]:
        return self._inner.get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        self._inner.set(self._prefix + key, value)

    def delete(self, key: str) -> None:
        self._inner.delete(self._prefix + key)


class SqlKeyValueStore:
    """SQLAlchemy-backed store (SQLite or PostgreSQL) in a single table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str) -> "SqlKeyValueStore":
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(url, pool_pre_ping=True)
        store = cls(engine)
        store.init_schema()
        return store

    def init_schema(self) -> None:
        with self._engine.begin() as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS client_state (
                    key        VARCHAR(512) PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at VARCHAR(64) NOT NULL
                )
            """))

    def get(self, key: str) -> Optional[str]:
        with self._engine.connect() as conn:
            return conn.execute(
                text("SELECT value FROM client_state WHERE key = :key"),
                {"key": key},
            ).scalar()

    def set(self, key: str, value: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO client_state (key, value, updated_at)
                    VALUES (:key, :value, :updated_at)
                    ON CONFLICT (key) DO UPDATE
                    SET value = excluded.value, updated_at = excluded.updated_at
                """),
                {
                    "key": key,
                    "value": value,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
            )

    def delete(self, key: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(text("DELETE FROM client_state WHERE key = :key"), {"key": key})

    def verify_connection(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error("Client-state database unreachable: %s", exc)
            return False

    def dispose(self) -> None:
        self._engine.dispose()


# ── JSON helpers ──

def read_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed client state under key=%s", key)
        return default


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value))


def read_model(
    store: KeyValueStore, key: str, model: type[M], default: Callable[[], M]
) -> M:
    """Parse a stored model, falling back to default() on anything unusable."""
    raw = read_json(store, key)
    if raw is None:
        return default()
    try:
        return model.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring invalid %s under key=%s", model.__name__, key)
        return default()


def write_model(store: KeyValueStore, key: str, value: BaseModel) -> None:
    store.set(key, value.model_dump_json(by_alias=True))
