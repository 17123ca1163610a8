"""End-to-end tests for the SafetyHub HTTP API.

Each test builds a fresh app on an in-memory record store, a seeded
audience directory and the logging notification channel, so nothing
touches Redis or the network.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from src.main import create_app
from src.models.actor import (
    ACTOR_DEPARTMENT_HEADER,
    ACTOR_REF_HEADER,
    ACTOR_ROLE_HEADER,
    ActorContext,
)
from src.services.api_client import actor_headers
from src.services.directory import Account, InMemoryDirectory
from src.services.notifications import LoggingNotificationChannel
from src.services.store import InMemoryRecordStore

STUDENT = {"X-Actor-Ref": "S1", "X-Actor-Role": "reporter", "X-Actor-Department": "CSE"}
OTHER_STUDENT = {"X-Actor-Ref": "S2", "X-Actor-Role": "reporter", "X-Actor-Department": "ECE"}
REVIEWER = {"X-Actor-Ref": "F1", "X-Actor-Role": "reviewer", "X-Actor-Department": "CSE"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def channel() -> LoggingNotificationChannel:
    return LoggingNotificationChannel()


@pytest.fixture
def client(channel: LoggingNotificationChannel) -> Iterator[TestClient]:
    """Test client with the lifespan run, so every service is wired."""
    directory = InMemoryDirectory(
        [
            Account("S1", department="CSE"),
            Account("S2", department="ECE"),
            Account("F1", department="CSE", is_faculty=True),
        ],
    )
    app = create_app(store=InMemoryRecordStore(), directory=directory, notifier=channel)
    with TestClient(app) as test_client:
        yield test_client


def _raise_sos(client: TestClient, headers: dict = STUDENT) -> dict:
    response = client.post("/api/v1/safety/sos", json={"latitude": 12.97, "longitude": 77.59}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _file_complaint(client: TestClient, **overrides) -> dict:
    payload = {
        "category": "Harassment",
        "severity": "High",
        "description": "Harassment near the hostel gate",
        "anonymous": True,
        **overrides,
    }
    response = client.post("/api/v1/safety/complaints", json=payload, headers=STUDENT)
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Health and identity
# ---------------------------------------------------------------------------


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client: TestClient) -> None:
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["store"].startswith("ok")


class TestActorHeaders:
    def test_missing_headers(self, client: TestClient) -> None:
        response = client.get("/api/v1/safety/sos/mine")
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHENTICATED"

    def test_invalid_role(self, client: TestClient) -> None:
        response = client.get("/api/v1/safety/sos/mine", headers={"X-Actor-Ref": "S1", "X-Actor-Role": "admin"})
        assert response.status_code == 422

    def test_client_headers_accepted(self, client: TestClient) -> None:
        headers = actor_headers(ActorContext.reviewer("F1", department="CSE"))
        assert set(headers) == {ACTOR_REF_HEADER, ACTOR_ROLE_HEADER, ACTOR_DEPARTMENT_HEADER}
        response = client.get("/api/v1/safety/sos/active", headers=headers)
        assert response.status_code == 200, "server and client must agree on the gateway headers"

    def test_reviewer_only_endpoint(self, client: TestClient) -> None:
        response = client.get("/api/v1/safety/sos/active", headers=STUDENT)
        assert response.status_code == 403
        body = response.json()
        assert body["error"] is True
        assert body["error_code"] == "ACCESS_DENIED"
        assert "timestamp" in body


# ---------------------------------------------------------------------------
# SOS
# ---------------------------------------------------------------------------


class TestSosApi:
    def test_raise_and_respond(self, client: TestClient, channel: LoggingNotificationChannel) -> None:
        alert = _raise_sos(client)
        assert alert["status"] == "ACTIVE"
        assert alert["reporter_ref"] == "S1"
        assert len(channel.outbox) == 1, "monitoring reviewers are notified"

        active = client.get("/api/v1/safety/sos/active", headers=REVIEWER).json()
        assert [a["id"] for a in active] == [alert["id"]]

        response = client.post(
            f"/api/v1/safety/sos/{alert['id']}/transition",
            json={"status": "RESPONDING", "note": "Guard on the way"},
            headers=REVIEWER,
        )
        assert response.status_code == 200
        assert response.json()["responder_ref"] == "F1"

    def test_invalid_transition_is_conflict(self, client: TestClient) -> None:
        alert = _raise_sos(client)
        client.post(f"/api/v1/safety/sos/{alert['id']}/transition", json={"status": "RESPONDING"}, headers=REVIEWER)

        response = client.post(
            f"/api/v1/safety/sos/{alert['id']}/transition",
            json={"status": "ACTIVE"},
            headers=REVIEWER,
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "INVALID_TRANSITION"
        assert body["details"]["allowed_states"] == ["CANCELLED", "RESOLVED"]

        stored = client.get(f"/api/v1/safety/sos/{alert['id']}", headers=REVIEWER).json()
        assert stored["status"] == "RESPONDING"

    def test_sos_without_body(self, client: TestClient) -> None:
        response = client.post("/api/v1/safety/sos", headers=STUDENT)
        assert response.status_code == 201
        assert response.json()["coordinates"] is None

    def test_reporter_cancel_and_history(self, client: TestClient) -> None:
        alert = _raise_sos(client)
        response = client.post(f"/api/v1/safety/sos/{alert['id']}/cancel", headers=STUDENT)
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        mine = client.get("/api/v1/safety/sos/mine", headers=STUDENT).json()
        assert [a["id"] for a in mine] == [alert["id"]]
        assert client.get("/api/v1/safety/sos/active", headers=REVIEWER).json() == []

    def test_unknown_alert(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/safety/sos/SOS-NOPE/transition",
            json={"status": "RESPONDING"},
            headers=REVIEWER,
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


# ---------------------------------------------------------------------------
# Complaints and investigation trail
# ---------------------------------------------------------------------------


class TestComplaintsApi:
    def test_anonymous_complaint_flow(self, client: TestClient) -> None:
        complaint = _file_complaint(client)
        assert complaint["status"] == "Submitted"

        listed = client.get("/api/v1/safety/complaints", headers=REVIEWER).json()
        assert listed[0]["id"] == complaint["id"]
        assert listed[0]["reporter_ref"] is None

        assigned = client.post(
            f"/api/v1/safety/complaints/{complaint['id']}/assign",
            json={"assigneeRef": "F1"},
            headers=REVIEWER,
        ).json()
        assert assigned["status"] == "Submitted"
        assert assigned["assigned_to_ref"] == "F1"

        closed_early = client.post(
            f"/api/v1/safety/complaints/{complaint['id']}/transition",
            json={"status": "Closed"},
            headers=REVIEWER,
        )
        assert closed_early.status_code == 409

    def test_validation_error_envelope(self, client: TestClient) -> None:
        response = client.post("/api/v1/safety/complaints", json={"category": "Theft"}, headers=STUDENT)
        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"]["field"] == "description"

    def test_filters(self, client: TestClient) -> None:
        _file_complaint(client)
        theft = _file_complaint(client, category="Theft", severity="Low", anonymous=False)
        listed = client.get("/api/v1/safety/complaints?category=theft", headers=REVIEWER).json()
        assert [c["id"] for c in listed] == [theft["id"]]
        assert listed[0]["reporter_ref"] == "S1"

    def test_trail(self, client: TestClient) -> None:
        complaint = _file_complaint(client)
        base = f"/api/v1/safety/complaints/{complaint['id']}"

        note = client.post(f"{base}/logs", json={"content": "Checked CCTV"}, headers=REVIEWER)
        assert note.status_code == 201
        assert note.json()["seq"] == 1
        assert client.get(f"{base}/logs", headers=STUDENT).status_code == 403

        client.post(f"{base}/messages", json={"content": "Which day was it?"}, headers=REVIEWER)
        reply = client.post(f"{base}/messages", json={"content": "Last Monday"}, headers=STUDENT).json()
        assert reply["sender_ref"] is None
        assert reply["sender_role"] == "reporter"

        newer = client.get(f"{base}/messages?after_seq=1", headers=STUDENT).json()
        assert [m["content"] for m in newer] == ["Last Monday"]
        assert client.get(f"{base}/messages", headers=OTHER_STUDENT).status_code == 403

    def test_negative_after_seq(self, client: TestClient) -> None:
        complaint = _file_complaint(client)
        response = client.get(
            f"/api/v1/safety/complaints/{complaint['id']}/messages?after_seq=-1",
            headers=STUDENT,
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Counseling
# ---------------------------------------------------------------------------


class TestCounselingApi:
    def test_submit_and_schedule(self, client: TestClient) -> None:
        created = client.post(
            "/api/v1/safety/counseling",
            json={"type": "psychological", "reason": "Feeling overwhelmed", "preferredDate": "2026-03-05"},
            headers=STUDENT,
        )
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["status"] == "Pending"

        missing = client.post(
            f"/api/v1/safety/counseling/{request_id}/update",
            json={"status": "Scheduled"},
            headers=REVIEWER,
        )
        assert missing.status_code == 422

        scheduled = client.post(
            f"/api/v1/safety/counseling/{request_id}/update",
            json={"status": "Scheduled", "counselorRef": "C7"},
            headers=REVIEWER,
        ).json()
        assert scheduled["assigned_counselor_ref"] == "C7"

        pending = client.get("/api/v1/safety/counseling?status=pending", headers=REVIEWER).json()
        assert pending == []


# ---------------------------------------------------------------------------
# Broadcasts and analytics
# ---------------------------------------------------------------------------


class TestBroadcastsApi:
    def test_department_broadcast(self, client: TestClient, channel: LoggingNotificationChannel) -> None:
        response = client.post(
            "/api/v1/safety/broadcasts",
            json={
                "title": "CSE block evacuation",
                "description": "Fire drill in the CSE block at 3pm",
                "severity": "Critical",
                "target": "departments",
                "departments": ["CSE"],
            },
            headers=REVIEWER,
        )
        assert response.status_code == 201
        alert = response.json()
        assert alert["color"] == "red"
        assert sorted(channel.outbox[-1].recipients) == ["F1", "S1"]

        assert [a["id"] for a in client.get("/api/v1/safety/broadcasts/visible", headers=STUDENT).json()] == [alert["id"]]
        assert client.get("/api/v1/safety/broadcasts/visible", headers=OTHER_STUDENT).json() == []

        ack = client.post(f"/api/v1/safety/broadcasts/{alert['id']}/acknowledge", headers=STUDENT).json()
        assert ack["view_count"] == 1

        closed = client.post(
            f"/api/v1/safety/broadcasts/{alert['id']}/deactivate",
            json={"reason": "Drill over"},
            headers=REVIEWER,
        )
        assert closed.status_code == 200
        assert closed.json()["is_active"] is False

        again = client.post(f"/api/v1/safety/broadcasts/{alert['id']}/deactivate", headers=REVIEWER)
        assert again.status_code == 409

    def test_student_cannot_broadcast(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/safety/broadcasts",
            json={"title": "Fake", "description": "Not allowed to do this"},
            headers=STUDENT,
        )
        assert response.status_code == 403


class TestAnalyticsApi:
    def test_analytics_and_dashboard(self, client: TestClient) -> None:
        _raise_sos(client)
        _file_complaint(client)
        _file_complaint(client, anonymous=False)

        analytics = client.get("/api/v1/safety/analytics", headers=REVIEWER).json()
        assert analytics["total_incidents"] == 2
        assert analytics["pending_count"] == 2
        assert analytics["sos_total"] == 1
        assert analytics["by_severity"]["High"] == 2

        dashboard = client.get("/api/v1/safety/dashboard", headers=REVIEWER).json()
        assert dashboard["active_sos"] == 1
        assert dashboard["pending_complaints"] == 2

    def test_reviewer_only(self, client: TestClient) -> None:
        assert client.get("/api/v1/safety/analytics", headers=STUDENT).status_code == 403
