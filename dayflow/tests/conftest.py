"""
Shared fixtures: in-memory database session, fixed dates and data builders.
"""
import pytest
from datetime import date, timedelta
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy import create_engine

from dayflow.database import enable_sqlite_savepoints, init_db
from dayflow.models import UserProfile
from dayflow.schemas import CompletionEntry
from dayflow.services.ritual_service import RitualService


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    enable_sqlite_savepoints(test_engine)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    # Wednesday
    return date(2024, 1, 10)


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


def build_history(pattern, end, ritual_id="r1"):
    """
    History ending on `end` from a pattern like "TTTFTT" (oldest first).
    """
    start = end - timedelta(days=len(pattern) - 1)
    return [
        CompletionEntry(ritual_id=ritual_id, date=start + timedelta(days=i), completed=flag == "T")
        for i, flag in enumerate(pattern)
    ]


def ritual_payload(name="Morning pages", frequency=None, default_time=None, steps=None):
    """Minimal valid ritual definition"""
    return {
        "name": name,
        "category": "wellness",
        "default_time": default_time,
        "frequency": frequency or {"frequency_type": "daily"},
        "step_definitions": steps or [{"type": "boolean", "name": "Done", "order_index": 0}],
    }


def create_ritual(db, user_id="alice", created_on=date(2024, 1, 1), **kwargs):
    return RitualService(db).create_ritual(user_id, ritual_payload(**kwargs), created_on=created_on)


def create_profile(db, user_id, score=1.0, streak=0, joined_on=date(2024, 1, 1), last_scored_date=None):
    profile = UserProfile(
        user_id=user_id,
        proof_score=score,
        current_streak=streak,
        joined_on=joined_on,
        last_scored_date=last_scored_date
    )
    db.add(profile)
    db.commit()
    return profile
