"""Unit tests for database.py, init_db.py, and models.py."""

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from backend.services.database.database import Base, engine, SessionLocal, DATABASE_URL, get_session
from backend.services.database.init_db import init_db
from backend.services.database.models import (
    BikeType,
    Facility,
    Section,
    SectionBikeType,
    TariffTier,
)


# ── Test-only in-memory engine & session ─────────────────────────────────────

_test_engine = create_engine("sqlite:///:memory:", echo=False, future=True)
_TestSession = sessionmaker(bind=_test_engine, autoflush=False, autocommit=False, future=True)

TABLES = {"facilities", "bike_types", "sections", "section_bike_types", "tariff_tiers"}


@pytest.fixture(autouse=True)
def _setup_tables():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=_test_engine)
    yield
    Base.metadata.drop_all(bind=_test_engine)


@pytest.fixture()
def session():
    """Provide a transactional test session that rolls back after each test."""
    s = _TestSession()
    yield s
    s.rollback()
    s.close()


def _facility(session, facility_id="fac-1"):
    facility = Facility(id=facility_id, title="Station garage")
    session.add(facility)
    session.commit()
    return facility


# ═══════════════════════════════════════════════════════════════════════════════
# database.py
# ═══════════════════════════════════════════════════════════════════════════════

class TestDatabaseModule:

    def test_engine_exists(self):
        assert engine is not None

    def test_session_local_creates_session(self):
        s = SessionLocal()
        assert s is not None
        s.close()

    def test_base_has_metadata(self):
        assert Base.metadata is not None

    def test_database_url_default_is_sqlite(self):
        assert isinstance(DATABASE_URL, str)
        assert "sqlite" in DATABASE_URL

    def test_get_session_yields_and_closes(self):
        gen = get_session()
        s = next(gen)
        assert s is not None
        with pytest.raises(StopIteration):
            next(gen)


# ═══════════════════════════════════════════════════════════════════════════════
# init_db.py
# ═══════════════════════════════════════════════════════════════════════════════

class TestInitDb:

    def test_metadata_creates_all_tables(self):
        test_eng = create_engine("sqlite:///:memory:", echo=False, future=True)
        Base.metadata.create_all(bind=test_eng)
        assert TABLES <= set(inspect(test_eng).get_table_names())

    def test_create_all_idempotent(self):
        test_eng = create_engine("sqlite:///:memory:", echo=False, future=True)
        Base.metadata.create_all(bind=test_eng)
        Base.metadata.create_all(bind=test_eng)
        assert TABLES <= set(inspect(test_eng).get_table_names())

    def test_init_db_callable(self):
        """init_db is callable and runs without error (uses production engine)."""
        init_db()


# ═══════════════════════════════════════════════════════════════════════════════
# models.py
# ═══════════════════════════════════════════════════════════════════════════════

class TestFacilityModel:

    def test_flags_default_to_uniform(self, session):
        facility = _facility(session)
        fetched = session.get(Facility, facility.id)
        assert fetched.uniform_across_sections is True
        assert fetched.uniform_across_bike_types is True

    def test_sections_relationship_ordered_by_id(self, session):
        _facility(session)
        session.add_all([
            Section(id=5, facility_id="fac-1", title="B"),
            Section(id=2, facility_id="fac-1", title="A"),
        ])
        session.commit()
        fetched = session.get(Facility, "fac-1")
        assert [s.id for s in fetched.sections] == [2, 5]
        assert fetched.sections[0].is_active is True


class TestSectionBikeTypeModel:

    def test_bike_types_ordered_by_bike_type(self, session):
        _facility(session)
        session.add_all([
            BikeType(id=1, name="Bicycle"),
            BikeType(id=2, name="E-bike"),
            Section(id=1, facility_id="fac-1"),
        ])
        session.flush()
        session.add_all([
            SectionBikeType(id=20, section_id=1, bike_type_id=2),
            SectionBikeType(id=10, section_id=1, bike_type_id=1, allowed=False),
        ])
        session.commit()
        section = session.get(Section, 1)
        assert [sbt.bike_type_id for sbt in section.bike_types] == [1, 2]
        assert section.bike_types[0].allowed is False
        assert section.bike_types[1].allowed is True
        assert section.bike_types[0].section.id == 1


class TestTariffTierModel:

    def test_nullable_scope_columns(self):
        cols = TariffTier.__table__.c
        for name in ("section_id", "section_bike_type_id", "duration_hours", "cost", "tier_order"):
            assert cols[name].nullable is True

    def test_create_and_read_back(self, session):
        _facility(session)
        tier = TariffTier(facility_id="fac-1", tier_order=1, duration_hours=24, cost=1.5)
        session.add(tier)
        session.commit()
        fetched = session.get(TariffTier, tier.id)
        assert fetched.duration_hours == 24
        assert fetched.cost == 1.5
        assert fetched.section_id is None

    def test_delete(self, session):
        _facility(session)
        tier = TariffTier(facility_id="fac-1", tier_order=1, duration_hours=1, cost=0)
        session.add(tier)
        session.commit()
        tid = tier.id
        session.delete(tier)
        session.commit()
        assert session.get(TariffTier, tid) is None
