"""
Pytest configuration and fixtures for the ensemble events backend.
"""
import os
import sys
from datetime import date, datetime, time

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from database import Database, Settings
from schemas import EventCreate
from models import EventType
from core.event_manager import EventManager
from core.team_manager import TeamManager


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file (threads can share it)."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        scheduler_enabled=False,
        scheduler_interval_seconds=0.05,
        db_pool_timeout=30,
    )


@pytest.fixture
def database(settings):
    """Isolated database handle per test."""
    database = Database(settings)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db_session(database):
    """Session bound to the isolated database."""
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def event_day():
    return date(2024, 5, 10)


@pytest.fixture
def make_event(db_session, event_day):
    """Factory creating events in Programado state."""
    counter = {'n': 0}

    def _make(start=time(10, 0), end=time(12, 0), day=None, **kwargs):
        counter['n'] += 1
        data = EventCreate(
            name=kwargs.pop('name', f"Rehearsal {counter['n']}"),
            date=day or event_day,
            start_time=start,
            end_time=end,
            event_type=kwargs.pop('event_type', EventType.FULL_REHEARSAL),
            **kwargs
        )
        return EventManager.create_event(db_session, data)

    return _make


@pytest.fixture
def sample_event(make_event):
    """Event dated 2024-05-10, window 10:00-12:00."""
    return make_event()


@pytest.fixture
def make_team(db_session):
    """Factory creating teams."""
    def _make(name='Strings', max_members=0, responsible_user_id=None, members=()):
        team = TeamManager.create_team(
            db_session,
            name=name,
            responsible_user_id=responsible_user_id,
            max_members=max_members
        )
        for user_id in members:
            TeamManager.add_member(db_session, team.id, user_id)
        return team

    return _make


@pytest.fixture
def at():
    """Build a datetime on the default event day."""
    def _at(hour, minute=0, day=date(2024, 5, 10)):
        return datetime.combine(day, time(hour, minute))
    return _at


@pytest.fixture
def client(settings, database):
    """FastAPI test client wired to the isolated database."""
    from fastapi.testclient import TestClient
    from main import create_app

    app = create_app(settings, database=database)
    with TestClient(app) as test_client:
        yield test_client
