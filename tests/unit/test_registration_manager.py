"""
Unit tests for RegistrationManager.
"""
from datetime import datetime

import pytest

from models import Registration, RegistrationStatus
from core.registration_manager import RegistrationManager
from core.exceptions import (
    Conflict,
    InvalidStateTransition,
    InvalidStatus,
    RegistrationAlreadyExists,
    RegistrationNotFound,
)


@pytest.fixture
def registration(db_session, sample_event):
    return RegistrationManager.create_registration(db_session, "musician-1", sample_event.id)


class TestCreateRegistration:
    """Tests for create_registration."""

    def test_defaults_to_pending(self, registration):
        assert registration.status == RegistrationStatus.PENDING
        assert registration.cancellation_reason is None
        assert registration.registered_at is not None

    def test_initial_status_from_value(self, db_session, sample_event):
        created = RegistrationManager.create_registration(
            db_session, "musician-2", sample_event.id, initial_status="Confirmada"
        )
        assert created.status == RegistrationStatus.CONFIRMED

    def test_reason_kept_only_when_cancelled(self, db_session, sample_event):
        cancelled = RegistrationManager.create_registration(
            db_session, "musician-2", sample_event.id,
            initial_status=RegistrationStatus.CANCELLED, cancellation_reason="Sick"
        )
        pending = RegistrationManager.create_registration(
            db_session, "musician-3", sample_event.id, cancellation_reason="Ignored"
        )

        assert cancelled.cancellation_reason == "Sick"
        assert pending.cancellation_reason is None

    def test_duplicate_rejected(self, db_session, sample_event, registration):
        with pytest.raises(RegistrationAlreadyExists) as exc_info:
            RegistrationManager.create_registration(db_session, "musician-1", sample_event.id)

        assert isinstance(exc_info.value, Conflict)
        assert len(RegistrationManager.list_registrations(db_session, event_id=sample_event.id)) == 1

    def test_same_user_other_event(self, db_session, make_event, registration):
        other = make_event(name="Sectional")

        created = RegistrationManager.create_registration(db_session, "musician-1", other.id)

        assert created.event_id == other.id

    def test_unknown_status_rejected(self, db_session, sample_event):
        with pytest.raises(InvalidStatus):
            RegistrationManager.create_registration(
                db_session, "musician-2", sample_event.id, initial_status="Aprovada"
            )

        assert RegistrationManager.list_registrations(db_session) == []

    def test_keeps_given_timestamp(self, db_session, sample_event):
        registered_at = datetime(2024, 5, 1, 9, 30)
        created = RegistrationManager.create_registration(
            db_session, "musician-2", sample_event.id, registered_at=registered_at
        )
        assert created.registered_at == registered_at


class TestUpdateStatus:
    """Tests for update_status."""

    def test_cancel_with_reason(self, db_session, registration):
        """Pending registration cancelled with a reason keeps the reason."""
        updated = RegistrationManager.update_status(
            db_session, registration.id, "Cancelada", "Conflito de agenda"
        )

        assert updated.status == RegistrationStatus.CANCELLED
        assert updated.cancellation_reason == "Conflito de agenda"

    def test_reason_ignored_when_not_cancelling(self, db_session, registration):
        updated = RegistrationManager.update_status(
            db_session, registration.id, RegistrationStatus.CONFIRMED, "not a cancellation"
        )

        assert updated.status == RegistrationStatus.CONFIRMED
        assert updated.cancellation_reason is None

    def test_reconfirm_clears_reason(self, db_session, registration):
        RegistrationManager.update_status(db_session, registration.id, "Cancelada", "Sick")

        updated = RegistrationManager.update_status(db_session, registration.id, "Confirmada")

        assert updated.status == RegistrationStatus.CONFIRMED
        assert updated.cancellation_reason is None

    def test_cannot_return_to_pending(self, db_session, registration):
        RegistrationManager.update_status(db_session, registration.id, "Confirmada")

        with pytest.raises(InvalidStateTransition):
            RegistrationManager.update_status(db_session, registration.id, "Pendente")

        assert RegistrationManager.get_registration(
            db_session, registration.id
        ).status == RegistrationStatus.CONFIRMED

    def test_unknown_status(self, db_session, registration):
        with pytest.raises(InvalidStatus):
            RegistrationManager.update_status(db_session, registration.id, "Aprovada")

    def test_unknown_registration(self, db_session):
        with pytest.raises(RegistrationNotFound):
            RegistrationManager.update_status(db_session, "missing", "Confirmada")


class TestDeleteRegistration:
    """Tests for delete."""

    def test_delete(self, database, db_session, registration):
        registration_id = registration.id

        RegistrationManager.delete(db_session, registration_id)

        with database.session() as session:
            assert session.get(Registration, registration_id) is None

    def test_user_can_register_again_after_delete(self, db_session, sample_event, registration):
        RegistrationManager.delete(db_session, registration.id)

        created = RegistrationManager.create_registration(db_session, "musician-1", sample_event.id)

        assert created.status == RegistrationStatus.PENDING

    def test_unknown_registration(self, db_session):
        with pytest.raises(RegistrationNotFound):
            RegistrationManager.delete(db_session, "missing")


class TestListRegistrations:
    """Tests for list_registrations."""

    def test_filters(self, db_session, make_event):
        first = make_event(name="Tutti")
        second = make_event(name="Sectional")
        RegistrationManager.create_registration(db_session, "u1", first.id)
        RegistrationManager.create_registration(db_session, "u2", first.id, initial_status="Confirmada")
        RegistrationManager.create_registration(db_session, "u1", second.id)

        assert len(RegistrationManager.list_registrations(db_session, event_id=first.id)) == 2
        assert len(RegistrationManager.list_registrations(db_session, user_id="u1")) == 2

        confirmed = RegistrationManager.list_registrations(db_session, status="Confirmada")
        assert [r.user_id for r in confirmed] == ["u2"]

    def test_unknown_status_filter(self, db_session):
        with pytest.raises(InvalidStatus):
            RegistrationManager.list_registrations(db_session, status="Aprovada")
