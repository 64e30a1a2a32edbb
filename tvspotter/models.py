"""SQLAlchemy ORM models.

One table per media kind, keyed by the TMDb id. Each row holds the latest
evaluation of that item; re-checking overwrites it.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class _TrackedColumns:
    external_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_release: Mapped[date | None] = mapped_column(Date, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    backdrop_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    status: Mapped[str] = mapped_column(String(64), default="")
    status_code: Mapped[int] = mapped_column(Integer, default=-1)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TrackedShowRow(_TrackedColumns, Base):
    """A tv show whose next episode is being watched for."""

    __tablename__ = "tv_shows"
    kind = "tv"

    next_episode_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_episode: Mapped[str] = mapped_column(String(16), default="")

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"TrackedShowRow(external_id={self.external_id}, name={self.name}, status={self.status})"


class TrackedMovieRow(_TrackedColumns, Base):
    """A movie whose theatrical and digital/physical releases are watched for."""

    __tablename__ = "movies"
    kind = "movie"

    theatrical_release: Mapped[date] = mapped_column(Date)
    digital_physical_release: Mapped[date] = mapped_column(Date)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"TrackedMovieRow(external_id={self.external_id}, name={self.name}, status={self.status})"
