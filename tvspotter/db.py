"""Database session management and the tracking repository."""

from __future__ import annotations

import dataclasses
import os
from typing import Any, Iterable, Iterator

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from tvspotter.models import Base, TrackedMovieRow, TrackedShowRow
from tvspotter.services.models import MediaKind, TrackedRecord


def _database_url() -> str:
    """Return the SQLAlchemy URL from env (defaults to local SQLite for dev)."""
    return os.getenv("DATABASE_URL", "sqlite:///./tvspotter.db")


engine = create_engine(_database_url(), future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

_TABLES: dict[str, type[TrackedShowRow] | type[TrackedMovieRow]] = {
    "tv": TrackedShowRow,
    "movie": TrackedMovieRow,
}


def init_models() -> None:
    """Create tables if they do not exist (handy for local dev)."""
    Base.metadata.create_all(bind=engine)


def drop_models() -> None:
    Base.metadata.drop_all(bind=engine)


def get_session() -> Iterator[Session]:
    """FastAPI-friendly dependency that manages commits/rollbacks."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def row_model(kind: MediaKind) -> type[TrackedShowRow] | type[TrackedMovieRow]:
    try:
        return _TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown media kind: {kind}") from None


def record_values(record: TrackedRecord) -> dict[str, Any]:
    """Column values for a tracked record (drops the non-column ``kind``)."""
    values = dataclasses.asdict(record)
    values.pop("kind", None)
    return values


class TrackingRepository:
    """Data access helpers for tracked shows and movies.

    ``upsert`` is a single insert-or-update statement per row keyed by
    external id, so checking and writing never race under sequential use.
    """

    def is_tracked(self, session: Session, external_id: int | str, kind: MediaKind) -> bool:
        model = row_model(kind)
        query = select(model.external_id).where(model.external_id == str(external_id))
        return session.execute(query).first() is not None

    def get(
        self, session: Session, external_id: int | str, kind: MediaKind
    ) -> TrackedShowRow | TrackedMovieRow | None:
        return session.get(row_model(kind), str(external_id), populate_existing=True)

    def upsert(
        self,
        session: Session,
        kind: MediaKind,
        records: TrackedRecord | Iterable[TrackedRecord],
    ) -> int:
        """Insert new rows or overwrite existing ones; returns the row count."""

        if dataclasses.is_dataclass(records):
            records = [records]
        model = row_model(kind)
        insert = postgresql.insert if session.get_bind().dialect.name == "postgresql" else sqlite.insert
        count = 0
        for record in records:
            if record.kind != kind:
                raise ValueError(f"Cannot store a {record.kind} record as {kind}")
            values = record_values(record)
            stmt = insert(model).values(**values)
            updates = {key: stmt.excluded[key] for key in values if key != "external_id"}
            updates["last_updated"] = func.now()
            session.execute(
                stmt.on_conflict_do_update(index_elements=[model.external_id], set_=updates)
            )
            count += 1
        session.flush()
        return count

    def list_all(
        self,
        session: Session,
        kind: MediaKind,
        *,
        order_by: str = "name",
        descending: bool = False,
    ) -> list[TrackedShowRow | TrackedMovieRow]:
        model = row_model(kind)
        columns = model.__table__.columns
        if order_by not in columns:
            raise ValueError(f"Cannot order {kind} rows by {order_by!r}")
        column = columns[order_by]
        query = (
            select(model)
            .order_by(column.desc() if descending else column.asc())
            .execution_options(populate_existing=True)
        )
        return list(session.execute(query).scalars())

    def delete(self, session: Session, external_id: int | str, kind: MediaKind) -> bool:
        model = row_model(kind)
        result = session.execute(delete(model).where(model.external_id == str(external_id)))
        return result.rowcount > 0
