"""SQLAlchemy implementation of the SnapshotStore port.

Each snapshot is a single row keyed by its storage key, so a write replaces
the previous snapshot in one statement.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from domain.ports import SnapshotStore
from reconquest.adapters.outbound.sqlalchemy_models import Snapshot
from reconquest.data.db import init_db


class SqlAlchemySnapshotStore(SnapshotStore):
    """SnapshotStore backed by a ``snapshots`` table (SQLite by default)."""

    def __init__(self, engine: Engine, create_schema: bool = True) -> None:
        self._engine = engine
        if create_schema:
            init_db(engine)

    # ── SnapshotStore interface ──────────────────────────────────────────

    def get(self, key: str) -> str | None:
        with Session(self._engine) as session:
            return session.scalar(select(Snapshot.payload).where(Snapshot.key == key))

    def set(self, key: str, payload: str) -> None:
        size = len(payload.encode("utf-8"))
        with Session(self._engine) as session, session.begin():
            row = session.get(Snapshot, key)
            if row is None:
                session.add(Snapshot(key=key, payload=payload, size_bytes=size))
            else:
                row.payload = payload
                row.size_bytes = size

    def delete(self, key: str) -> None:
        with Session(self._engine) as session, session.begin():
            session.execute(delete(Snapshot).where(Snapshot.key == key))

    def close(self) -> None:
        self._engine.dispose()
