"""Durable record store for reconciled vulnerabilities.

Every public operation runs in its own SQLAlchemy transaction scoped to a
single record (read-modify-write), so a failure never leaves a record
half-updated and never affects other records.

Usage:
    from watchvuln.storage import VulnStore

    store = VulnStore.from_path(Path("~/.watchvuln/watchvuln.sqlite"))
    result = store.upsert(raw_record)
    if result.needs_notification:
        ...
    store.set_pushed(result.record.unique_key, True)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Optional

import structlog
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from watchvuln.core.diff import REASON_CREATED, diff_record
from watchvuln.core.exceptions import RecordNotFoundError, StoreError
from watchvuln.core.models import RawRecord, ReconcileOutcome, Record, Severity, UpsertResult
from watchvuln.storage.schema import VulnInformation, create_all_tables, enable_sqlite_pragmas

log = structlog.get_logger()

MEMORY_URL = "sqlite://"

# Record attribute -> column name, where they differ.
_COLUMN_NAMES = {
    "unique_key": "key",
    "enrichment_links": "github_search",
}


def _column(name: str) -> str:
    return _COLUMN_NAMES.get(name, name)


class VulnStore:
    """SQLite-backed keyed table of Record.

    Attributes:
        engine: Underlying SQLAlchemy engine.
    """

    def __init__(
        self,
        url: str = MEMORY_URL,
        echo: bool = False,
        strict_contracts: bool = False,
    ) -> None:
        """Initialize the store and create the schema if needed.

        Args:
            url: SQLAlchemy database URL. Defaults to a private in-memory DB.
            echo: Log emitted SQL.
            strict_contracts: Raise on unknown stored severities instead of
                degrading them to Low.

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        self._url = url
        self._strict = strict_contracts
        self._engine = self._create_engine(url, echo)
        try:
            create_all_tables(self._engine)
        except SQLAlchemyError as e:
            self._engine.dispose()
            log.error("store_open_failed", url=url, error=str(e))
            raise StoreError(operation="open", message=f"Cannot open store at {url}: {e}") from e
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    @classmethod
    def from_path(cls, path: Path, **kwargs: Any) -> VulnStore:
        """Open (or create) a store backed by a SQLite file.

        Args:
            path: Database file path; ``~`` is expanded and parents created.

        Raises:
            StoreError: If the directory or database cannot be created.
        """
        db_path = Path(path).expanduser()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.error("store_open_failed", path=str(db_path), error=str(e))
            raise StoreError(operation="open", message=f"Cannot create {db_path.parent}: {e}") from e
        return cls(url=f"sqlite:///{db_path}", **kwargs)

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url == MEMORY_URL:
            # One shared connection so every session sees the same database.
            engine = create_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine = create_engine(url, echo=echo)
        if engine.dialect.name == "sqlite":
            enable_sqlite_pragmas(engine)
        return engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        """Dispose of pooled connections."""
        self._engine.dispose()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _to_record(self, row: VulnInformation) -> Record:
        return Record(
            unique_key=row.key,
            title=row.title,
            description=row.description,
            severity=Severity.parse(row.severity, strict=self._strict),
            cve=row.cve,
            disclosure=row.disclosure,
            references=list(row.references or []),
            solutions=row.solutions,
            origin=row.origin,
            tags=list(row.tags or []),
            is_valuable=row.is_valuable,
            reasons=list(row.reasons or []),
            pushed=row.pushed,
            enrichment_links=list(row.github_search or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _get_row(session: Session, key: str) -> Optional[VulnInformation]:
        return session.scalars(
            select(VulnInformation).where(VulnInformation.key == key)
        ).one_or_none()

    @staticmethod
    def _apply(row: VulnInformation, name: str, value: Any) -> None:
        if isinstance(value, Severity):
            value = value.value
        elif isinstance(value, list):
            # Assign a fresh list so the JSON column is flagged dirty.
            value = list(value)
        setattr(row, _column(name), value)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_by_key(self, key: str) -> Optional[Record]:
        """Look up a record by unique key.

        Returns:
            The Record, or None if the key was never seen.

        Raises:
            StoreError: If the database cannot be queried.
        """
        try:
            with self._session_factory() as session:
                row = self._get_row(session, key)
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(operation="find_by_key", key=key, message=str(e)) from e

    def find_pending(self) -> List[Record]:
        """Return every valuable record not yet delivered to all channels.

        Ordered by insertion so older backlog is retried first.
        """
        try:
            with self._session_factory() as session:
                rows = session.scalars(
                    select(VulnInformation)
                    .where(VulnInformation.is_valuable.is_(True))
                    .where(VulnInformation.pushed.is_(False))
                    .order_by(VulnInformation.id)
                ).all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(operation="find_pending", message=str(e)) from e

    def count(self) -> int:
        """Number of records in the store."""
        try:
            with self._session_factory() as session:
                return session.scalar(select(func.count()).select_from(VulnInformation)) or 0
        except SQLAlchemyError as e:
            raise StoreError(operation="count", message=str(e)) from e

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def upsert(self, raw: RawRecord) -> UpsertResult:
        """Create or merge a record from a fresh sighting, atomically.

        - Unknown key: insert with reasons ["created"] and pushed False (NEW).
        - Severity changed or new tags: refresh all fields, append reasons,
          reset pushed (CHANGED).
        - Otherwise: refresh cosmetic fields only, leaving reasons and pushed
          untouched (UNCHANGED).

        Args:
            raw: Sighting produced by a source.

        Returns:
            UpsertResult with the persisted Record and the outcome.

        Raises:
            StoreError: If the transaction fails; nothing is written.
        """
        try:
            with self._session_factory.begin() as session:
                row = self._get_row(session, raw.unique_key)

                if row is None:
                    row = VulnInformation(
                        key=raw.unique_key,
                        title=raw.title,
                        description=raw.description,
                        severity=raw.severity.value,
                        cve=raw.cve,
                        disclosure=raw.disclosure,
                        solutions=raw.solutions,
                        references=list(raw.references),
                        tags=list(raw.tags),
                        github_search=[],
                        reasons=[REASON_CREATED],
                        origin=raw.origin,
                        is_valuable=raw.is_valuable,
                        pushed=False,
                    )
                    session.add(row)
                    session.flush()
                    log.info("store_record_created", key=raw.unique_key, origin=raw.origin)
                    return UpsertResult(self._to_record(row), ReconcileOutcome.NEW)

                diff = diff_record(self._to_record(row), raw)

                for name, value in diff.updates.items():
                    self._apply(row, name, value)

                if not diff.changed:
                    if diff.updates:
                        session.flush()
                        log.debug(
                            "store_record_refreshed",
                            key=raw.unique_key,
                            fields=sorted(diff.updates),
                        )
                    return UpsertResult(self._to_record(row), ReconcileOutcome.UNCHANGED)

                row.reasons = list(row.reasons or []) + diff.reasons
                row.pushed = False
                session.flush()
                log.info(
                    "store_record_changed",
                    key=raw.unique_key,
                    origin=raw.origin,
                    reasons=diff.reasons,
                    new_tags=diff.new_tags,
                )
                return UpsertResult(self._to_record(row), ReconcileOutcome.CHANGED)
        except SQLAlchemyError as e:
            raise StoreError(operation="upsert", key=raw.unique_key, message=str(e)) from e

    def set_pushed(self, key: str, pushed: bool = True) -> None:
        """Set the delivery flag of a record.

        Raises:
            RecordNotFoundError: If the key does not exist.
            StoreError: If the transaction fails.
        """
        try:
            with self._session_factory.begin() as session:
                row = self._get_row(session, key)
                if row is None:
                    raise RecordNotFoundError(operation="set_pushed", key=key)
                row.pushed = pushed
        except SQLAlchemyError as e:
            raise StoreError(operation="set_pushed", key=key, message=str(e)) from e

    def merge_enrichment(self, key: str, links: Iterable[str]) -> Record:
        """Merge enrichment links into a record, keeping order and dropping duplicates.

        Does not touch pushed or reasons.

        Raises:
            RecordNotFoundError: If the key does not exist.
            StoreError: If the transaction fails.
        """
        try:
            with self._session_factory.begin() as session:
                row = self._get_row(session, key)
                if row is None:
                    raise RecordNotFoundError(operation="merge_enrichment", key=key)
                merged = list(row.github_search or [])
                for link in links:
                    if link not in merged:
                        merged.append(link)
                row.github_search = merged
                session.flush()
                return self._to_record(row)
        except SQLAlchemyError as e:
            raise StoreError(operation="merge_enrichment", key=key, message=str(e)) from e
