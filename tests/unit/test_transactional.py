"""
Unit tests for the @transactional decorator and Database handle.
"""
import pytest
from sqlalchemy.exc import OperationalError

from database import Database, Settings, transactional
from models import Team
from core.exceptions import TransientStorageError


@transactional
def _add_team_then_fail(db, exc):
    db.add(Team(name="Percussion"))
    db.flush()
    raise exc


class TestTransactional:
    """Tests for commit / rollback behaviour."""

    def test_commits_on_success(self, database, db_session):
        @transactional
        def add_team(db):
            team = Team(name="Woodwinds")
            db.add(team)
            return team

        add_team(db_session)

        with database.session() as session:
            assert session.query(Team).filter(Team.name == "Woodwinds").count() == 1

    def test_storage_error_becomes_transient(self, database, db_session):
        error = OperationalError("INSERT INTO teams", {}, Exception("database is locked"))

        with pytest.raises(TransientStorageError):
            _add_team_then_fail(db_session, error)

        with database.session() as session:
            assert session.query(Team).count() == 0

    def test_other_errors_propagate_after_rollback(self, database, db_session):
        with pytest.raises(KeyError):
            _add_team_then_fail(db_session, KeyError("boom"))

        with database.session() as session:
            assert session.query(Team).count() == 0

    def test_requires_session(self):
        @transactional
        def no_session(value):
            return value

        with pytest.raises(ValueError):
            no_session(1)


class TestSettings:
    """Tests for configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "SCHEDULER_ENABLED", "SCHEDULER_INTERVAL_SECONDS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.scheduler_enabled is True
        assert settings.scheduler_interval_seconds == 60.0
        assert settings.log_level == "INFO"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SCHEDULER_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("SCHEDULER_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.scheduler_interval_seconds == 5.0
        assert settings.scheduler_enabled is False

    def test_database_creates_tables(self, settings):
        database = Database(settings)
        database.create_all()
        try:
            with database.session() as session:
                assert session.query(Team).count() == 0
        finally:
            database.dispose()
