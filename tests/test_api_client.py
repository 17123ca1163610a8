"""Tests for the reviewer-side HTTP client, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from src.models import ActorContext, SosAlert, SosStatus
from src.models.actor import (
    ACTOR_DEPARTMENT_HEADER,
    ACTOR_REF_HEADER,
    ACTOR_ROLE_HEADER,
)
from src.services.api_client import SafetyApiClient, error_from_response
from src.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    TransportError,
    ValidationError,
)


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {
        "error": True,
        "error_code": code,
        "message": message,
        "details": details or {},
        "timestamp": "2026-03-01T09:00:00+00:00",
    }


def _client(handler, actor: ActorContext | None = None) -> SafetyApiClient:
    return SafetyApiClient(
        "http://safety.test/",
        actor or ActorContext.reviewer("F1", department="CSE"),
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    async def test_list_active_sos_sends_actor_headers(self) -> None:
        alert = SosAlert(reporter_ref="S1")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[alert.model_dump(mode="json")])

        async with _client(handler) as client:
            alerts = await client.list_active_sos()

        assert [a.id for a in alerts] == [alert.id]
        request = seen[0]
        assert request.url.path == "/api/v1/safety/sos/active"
        assert request.headers[ACTOR_REF_HEADER] == "F1"
        assert request.headers[ACTOR_ROLE_HEADER] == "reviewer"
        assert request.headers[ACTOR_DEPARTMENT_HEADER] == "CSE"

    async def test_transition_posts_body(self) -> None:
        alert = SosAlert(reporter_ref="S1", status=SosStatus.RESPONDING)
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=alert.model_dump(mode="json"))

        async with _client(handler) as client:
            result = await client.transition_sos(alert.id, "RESPONDING", note="en route")

        assert result.status == SosStatus.RESPONDING
        assert bodies == [{"status": "RESPONDING", "note": "en route"}]

    async def test_none_params_dropped(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with _client(handler) as client:
            assert await client.list_complaints(severity="High") == []

        assert dict(seen[0].url.params) == {"severity": "High"}

    async def test_get_retried_on_connection_error(self) -> None:
        attempts = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=[])

        async with _client(handler) as client:
            assert await client.list_sos() == []
        assert attempts["n"] == 2

    async def test_post_not_retried(self) -> None:
        attempts = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransportError):
                await client.append_log("CMP-1", "note")
        assert attempts["n"] == 1, "writes must not be retried automatically"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    async def test_conflict_becomes_invalid_transition(self) -> None:
        details = {
            "resource": "SOS alert",
            "current_state": "RESPONDING",
            "requested_state": "ACTIVE",
            "allowed_states": ["CANCELLED", "RESOLVED"],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json=_error_body("INVALID_TRANSITION", "Cannot move", details))

        async with _client(handler) as client:
            with pytest.raises(InvalidTransitionError) as exc_info:
                await client.transition_sos("SOS-1", "ACTIVE")

        assert exc_info.value.current == "RESPONDING"
        assert exc_info.value.allowed == ["CANCELLED", "RESOLVED"]

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (404, NotFoundError),
            (422, ValidationError),
            (403, AccessDeniedError),
            (401, AccessDeniedError),
            (500, TransportError),
        ],
    )
    def test_status_codes(self, status: int, expected: type) -> None:
        request = httpx.Request("GET", "http://safety.test/api/v1/safety/complaints/CMP-1")
        response = httpx.Response(status, json=_error_body("X", "failed"), request=request)
        assert isinstance(error_from_response(response), expected)

    def test_non_json_body(self) -> None:
        request = httpx.Request("GET", "http://safety.test/x")
        response = httpx.Response(502, text="Bad gateway", request=request)
        error = error_from_response(response)
        assert isinstance(error, TransportError)
        assert "HTTP 502" in error.message
