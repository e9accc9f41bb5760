"""Unit tests for the SQLAlchemy schema."""

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchvuln.storage.schema import VulnInformation, create_all_tables, enable_sqlite_pragmas


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'schema.sqlite'}")
    enable_sqlite_pragmas(eng)
    create_all_tables(eng)
    yield eng
    eng.dispose()


@pytest.mark.unit
def test_table_and_indexes(engine):
    inspector = inspect(engine)
    assert "vuln_informations" in inspector.get_table_names()
    index_names = {idx["name"] for idx in inspector.get_indexes("vuln_informations")}
    assert {"idx_vuln_from", "idx_vuln_pushed"} <= index_names


@pytest.mark.unit
def test_wal_enabled(engine):
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"


@pytest.mark.unit
def test_key_is_unique(engine):
    with Session(engine) as session:
        session.add(VulnInformation(key="K", severity="Low"))
        session.add(VulnInformation(key="K", severity="High"))
        with pytest.raises(IntegrityError):
            session.commit()


@pytest.mark.unit
def test_defaults(engine):
    with Session(engine) as session:
        session.add(VulnInformation(key="K", severity="Low"))
        session.commit()
        row = session.query(VulnInformation).one()
        assert row.tags == []
        assert row.reasons == []
        assert row.pushed is False
        assert row.is_valuable is False
        assert row.created_at is not None
