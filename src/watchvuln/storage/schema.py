"""SQLAlchemy Schema Module for the WatchVuln record store.

Tables:
    - vuln_informations: One row per reconciled vulnerability record.

Usage:
    from watchvuln.storage.schema import Base, create_all_tables

    engine = create_engine("sqlite:///watchvuln.sqlite")
    create_all_tables(engine)
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


class VulnInformation(Base):
    """Reconciled vulnerability record.

    List-valued fields are stored as JSON arrays. ``reasons`` is append-only
    by convention of the store; nothing in the schema enforces it.
    """

    __tablename__ = "vuln_informations"
    __table_args__ = (
        Index("idx_vuln_from", "origin"),
        Index("idx_vuln_pushed", "pushed"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    cve: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    disclosure: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    solutions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    references: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    github_search: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    origin: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    is_valuable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pushed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


def create_all_tables(engine: Engine) -> None:
    """Create all schema tables.

    Args:
        engine: SQLAlchemy engine to create tables on.
    """
    Base.metadata.create_all(engine)


def enable_sqlite_pragmas(engine: Engine) -> None:
    """Enable WAL journaling for SQLite engines.

    Registers a connect listener so every pooled connection gets the pragmas.

    Args:
        engine: SQLAlchemy engine to configure.
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        """Set SQLite pragmas on connection."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()
