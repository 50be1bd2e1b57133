"""
Integration tests for the HTTP API.
Tests status code mapping and request validation end to end.
"""
from datetime import datetime

import pytest

from core.scheduler import EventStatusScheduler


EVENT_BODY = {
    "name": "Ensaio Geral de Maio",
    "date": "2024-05-10",
    "start_time": "10:00:00",
    "end_time": "12:00:00",
    "event_type": "Ensaio Geral",
}


@pytest.fixture
def event_id(client):
    response = client.post("/api/events", json=EVENT_BODY)
    assert response.status_code == 201
    return response.json()["id"]


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health_reports_scheduler(self, client):
        body = client.get("/health").json()
        assert body == {"status": "healthy", "scheduler_running": False}


class TestEventRoutes:
    """Tests for /api/events."""

    def test_create_event(self, client):
        response = client.post("/api/events", json=EVENT_BODY)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Programado"
        assert body["mean_score"] == 0
        assert body["event_type"] == "Ensaio Geral"

    def test_invalid_window_is_400(self, client):
        response = client.post("/api/events", json={**EVENT_BODY, "end_time": "09:00:00"})
        assert response.status_code == 400

    def test_unknown_event_type_is_422(self, client):
        response = client.post("/api/events", json={**EVENT_BODY, "event_type": "Concerto"})
        assert response.status_code == 422

    def test_get_unknown_event_is_404(self, client):
        assert client.get("/api/events/missing").status_code == 404

    def test_patch_rejects_status_field(self, client, event_id):
        response = client.patch(f"/api/events/{event_id}", json={"status": "Concluído"})

        assert response.status_code == 422
        assert client.get(f"/api/events/{event_id}").json()["status"] == "Programado"

    def test_patch_event(self, client, event_id):
        response = client.patch(f"/api/events/{event_id}", json={"location": "Sala 2"})

        assert response.status_code == 200
        assert response.json()["location"] == "Sala 2"

    def test_cancel_event(self, client, event_id):
        response = client.post(f"/api/events/{event_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "Cancelado"
        assert client.post(f"/api/events/{event_id}/cancel").status_code == 400

    def test_list_by_status(self, client, event_id, database):
        EventStatusScheduler(database).tick(now=datetime(2024, 5, 10, 10, 5))

        in_progress = client.get("/api/events", params={"status": "Em Andamento"}).json()

        assert [e["id"] for e in in_progress] == [event_id]
        assert client.get("/api/events", params={"status": "Programado"}).json() == []


class TestTeamRoutes:
    """Tests for /api/teams."""

    def test_full_team_is_409(self, client):
        team = client.post("/api/teams", json={"name": "Cellos", "max_members": 1}).json()
        assert client.post(f"/api/teams/{team['id']}/members", json={"user_id": "u1"}).status_code == 200

        response = client.post(f"/api/teams/{team['id']}/members", json={"user_id": "u2"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Team is full"
        assert client.get(f"/api/teams/{team['id']}").json()["member_ids"] == ["u1"]

    def test_create_with_responsible(self, client):
        response = client.post("/api/teams", json={"name": "Violas", "responsible_user_id": "lead"})

        assert response.status_code == 201
        assert response.json()["member_ids"] == ["lead"]

    def test_negative_capacity_is_422(self, client):
        assert client.post("/api/teams", json={"name": "x", "max_members": -1}).status_code == 422

    def test_remove_member(self, client):
        team = client.post("/api/teams", json={"name": "Horns"}).json()
        client.post(f"/api/teams/{team['id']}/members", json={"user_id": "u1"})

        response = client.delete(f"/api/teams/{team['id']}/members/u1")

        assert response.status_code == 200
        assert response.json()["member_ids"] == []

    def test_link_event(self, client, event_id):
        team = client.post("/api/teams", json={"name": "Horns"}).json()

        response = client.post(f"/api/teams/{team['id']}/events", json={"event_id": event_id})

        assert response.json()["event_ids"] == [event_id]

    def test_unknown_team_is_404(self, client):
        response = client.post("/api/teams/missing/members", json={"user_id": "u1"})
        assert response.status_code == 404

    def test_list_and_delete(self, client):
        kept = client.post("/api/teams", json={"name": "Violas"}).json()
        removed = client.post("/api/teams", json={"name": "Basses", "responsible_user_id": "lead"}).json()

        assert client.delete(f"/api/teams/{removed['id']}").status_code == 204

        assert [t["id"] for t in client.get("/api/teams").json()] == [kept["id"]]
        assert client.get(f"/api/teams/{removed['id']}").status_code == 404
        assert client.delete(f"/api/teams/{removed['id']}").status_code == 404


class TestEvaluationRoutes:
    """Tests for evaluation endpoints."""

    def test_mean_and_duplicate(self, client, event_id):
        url = f"/api/events/{event_id}/evaluations"
        assert client.post(url, json={"evaluator_id": "a", "score": 8}).status_code == 201
        assert client.post(url, json={"evaluator_id": "b", "score": 6}).status_code == 201

        duplicate = client.post(url, json={"evaluator_id": "a", "score": 10})

        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "Evaluation already exists"
        assert client.get(f"/api/events/{event_id}").json()["mean_score"] == 7.0

    def test_out_of_range_score_is_400(self, client, event_id):
        response = client.post(
            f"/api/events/{event_id}/evaluations", json={"evaluator_id": "a", "score": 11}
        )
        assert response.status_code == 400

    def test_unknown_event_is_404(self, client):
        response = client.post("/api/events/missing/evaluations", json={"evaluator_id": "a", "score": 5})
        assert response.status_code == 404

    def test_update_and_delete(self, client, event_id):
        created = client.post(
            f"/api/events/{event_id}/evaluations", json={"evaluator_id": "a", "score": 8}
        ).json()

        patched = client.patch(f"/api/evaluations/{created['id']}", json={"score": 4})
        assert patched.status_code == 200
        assert client.get(f"/api/events/{event_id}").json()["mean_score"] == 4.0

        assert client.delete(f"/api/evaluations/{created['id']}").status_code == 204
        assert client.get(f"/api/events/{event_id}").json()["mean_score"] == 0
        assert client.get(f"/api/events/{event_id}/evaluations").json() == []

    def test_patch_unknown_field_is_422(self, client, event_id):
        created = client.post(
            f"/api/events/{event_id}/evaluations", json={"evaluator_id": "a", "score": 8}
        ).json()

        response = client.patch(f"/api/evaluations/{created['id']}", json={"event_id": "other"})

        assert response.status_code == 422

    def test_average_route_matches_stored_mean(self, client, event_id):
        url = f"/api/events/{event_id}/evaluations"
        client.post(url, json={"evaluator_id": "a", "score": 7.25})
        client.post(url, json={"evaluator_id": "b", "score": 7})

        response = client.get(f"{url}/average")

        assert response.status_code == 200
        assert response.json() == {"event_id": event_id, "mean_score": 7.13}
        assert client.get(f"/api/events/{event_id}").json()["mean_score"] == 7.13

    def test_average_unknown_event_is_404(self, client):
        assert client.get("/api/events/missing/evaluations/average").status_code == 404

    def test_get_evaluation(self, client, event_id):
        created = client.post(
            f"/api/events/{event_id}/evaluations", json={"evaluator_id": "a", "score": 8}
        ).json()

        response = client.get(f"/api/evaluations/{created['id']}")

        assert response.status_code == 200
        assert response.json()["score"] == 8
        assert client.get("/api/evaluations/missing").status_code == 404


class TestRegistrationRoutes:
    """Tests for /api/registrations."""

    def test_cancel_with_reason(self, client, event_id):
        created = client.post(
            "/api/registrations", json={"user_id": "u1", "event_id": event_id}
        ).json()
        assert created["status"] == "Pendente"

        response = client.patch(
            f"/api/registrations/{created['id']}/status",
            json={"status": "Cancelada", "reason": "Conflito de agenda"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "Cancelada"
        assert response.json()["cancellation_reason"] == "Conflito de agenda"

    def test_duplicate_is_409(self, client, event_id):
        body = {"user_id": "u1", "event_id": event_id}
        client.post("/api/registrations", json=body)

        response = client.post("/api/registrations", json=body)

        assert response.status_code == 409
        assert response.json()["detail"] == "Registration already exists"

    def test_unknown_status_is_400(self, client, event_id):
        created = client.post(
            "/api/registrations", json={"user_id": "u1", "event_id": event_id}
        ).json()

        response = client.patch(
            f"/api/registrations/{created['id']}/status", json={"status": "Aprovada"}
        )

        assert response.status_code == 400

    def test_back_to_pending_is_400(self, client, event_id):
        created = client.post(
            "/api/registrations",
            json={"user_id": "u1", "event_id": event_id, "status": "Confirmada"}
        ).json()

        response = client.patch(
            f"/api/registrations/{created['id']}/status", json={"status": "Pendente"}
        )

        assert response.status_code == 400

    def test_delete_and_missing(self, client, event_id):
        created = client.post(
            "/api/registrations", json={"user_id": "u1", "event_id": event_id}
        ).json()

        assert client.delete(f"/api/registrations/{created['id']}").status_code == 204
        assert client.get(f"/api/registrations/{created['id']}").status_code == 404

    def test_list_filter(self, client, event_id):
        client.post("/api/registrations", json={"user_id": "u1", "event_id": event_id})
        client.post(
            "/api/registrations",
            json={"user_id": "u2", "event_id": event_id, "status": "Confirmada"}
        )

        confirmed = client.get("/api/registrations", params={"status": "Confirmada"}).json()

        assert [r["user_id"] for r in confirmed] == ["u2"]
        assert client.get("/api/registrations", params={"status": "x"}).status_code == 400
