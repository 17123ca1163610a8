"""Async client for the SafetyHub HTTP API, used by reviewer tooling.

Wraps the reviewer-side endpoints under ``/api/v1/safety`` and turns HTTP
failures back into the service error taxonomy, so code written against
the in-process services (e.g. :class:`SosMonitor`) works unchanged
against a remote deployment.

Idempotent reads are retried on connection failures (tenacity); writes
are never retried automatically.
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, TypeAdapter
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.actor import (
    ACTOR_DEPARTMENT_HEADER,
    ACTOR_REF_HEADER,
    ACTOR_ROLE_HEADER,
    ActorContext,
)
from src.models.analytics import AnalyticsSnapshot, DashboardOverview
from src.models.broadcast import BroadcastAlert
from src.models.incident import Complaint, CounselingRequest, SosAlert
from src.models.trail import InvestigationLogEntry, Message
from src.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    SafetyHubError,
    TransportError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

_PREFIX = "/api/v1/safety"


def actor_headers(actor: ActorContext) -> dict[str, str]:
    headers = {ACTOR_REF_HEADER: actor.actor_ref, ACTOR_ROLE_HEADER: actor.role.value}
    if actor.department:
        headers[ACTOR_DEPARTMENT_HEADER] = actor.department
    return headers


def error_from_response(response: httpx.Response) -> SafetyHubError:
    """Rebuild the service error an error response was rendered from."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = str(body.get("message") or f"HTTP {response.status_code}")
    details = body.get("details") or {}
    status = response.status_code

    if status == 404:
        return NotFoundError(
            str(details.get("resource", "Resource")),
            str(details.get("identifier", response.request.url.path)),
        )
    if status == 409:
        return InvalidTransitionError(
            resource=str(details.get("resource", "Resource")),
            current=str(details.get("current_state", "")),
            requested=str(details.get("requested_state", "")),
            allowed=details.get("allowed_states", []),
            message=message,
        )
    if status == 422:
        return ValidationError(message, field=details.get("field"), errors=details.get("errors"))
    if status in (401, 403):
        return AccessDeniedError(message, resource=details.get("resource"))
    return TransportError(f"SafetyHub API error: {message}", details={"status_code": status})


class SafetyApiClient:
    """Reviewer-side client for a SafetyHub deployment.

    Parameters
    ----------
    base_url:
        Root URL of the deployment, e.g. ``https://safety.example.edu``.
    actor:
        Identity sent with every request (normally set by the gateway).
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional ``httpx`` transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        actor: ActorContext,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._actor = actor
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "User-Agent": "SafetyHub-Client/1.0",
                "Accept": "application/json",
                **actor_headers(actor),
            },
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> SafetyApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        return await self._client.get(path, params=params)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        url = f"{_PREFIX}{path}"
        params = {k: v for k, v in (params or {}).items() if v is not None} or None
        try:
            if method == "GET":
                response = await self._get_with_retry(url, params)
            else:
                response = await self._client.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("api_client.request_failed", method=method, path=url, error=str(exc))
            raise TransportError(f"SafetyHub API unreachable ({method} {url})") from exc

        if response.is_error:
            error = error_from_response(response)
            logger.info(
                "api_client.error_response",
                method=method,
                path=url,
                status=response.status_code,
                error_code=error.error_code,
            )
            raise error
        return response.json()

    @staticmethod
    def _one(model: type[M], data: Any) -> M:
        return model.model_validate(data)

    @staticmethod
    def _many(model: type[M], data: Any) -> list[M]:
        return TypeAdapter(list[model]).validate_python(data)  # type: ignore[valid-type]

    # ------------------------------------------------------------------
    # SOS
    # ------------------------------------------------------------------

    async def list_active_sos(self) -> list[SosAlert]:
        return self._many(SosAlert, await self._request("GET", "/sos/active"))

    async def list_sos(self) -> list[SosAlert]:
        return self._many(SosAlert, await self._request("GET", "/sos"))

    async def transition_sos(self, sos_id: str, status: str, note: str | None = None) -> SosAlert:
        body = {"status": str(status), "note": note}
        return self._one(SosAlert, await self._request("POST", f"/sos/{sos_id}/transition", json=body))

    # ------------------------------------------------------------------
    # Complaints and investigation trail
    # ------------------------------------------------------------------

    async def list_complaints(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        severity: str | None = None,
    ) -> list[Complaint]:
        data = await self._request(
            "GET",
            "/complaints",
            params={"status": status, "category": category, "severity": severity},
        )
        return self._many(Complaint, data)

    async def get_complaint(self, complaint_id: str) -> Complaint:
        return self._one(Complaint, await self._request("GET", f"/complaints/{complaint_id}"))

    async def transition_complaint(self, complaint_id: str, status: str) -> Complaint:
        data = await self._request(
            "POST", f"/complaints/{complaint_id}/transition", json={"status": str(status)},
        )
        return self._one(Complaint, data)

    async def assign_complaint(self, complaint_id: str, assignee_ref: str) -> Complaint:
        data = await self._request(
            "POST", f"/complaints/{complaint_id}/assign", json={"assignee_ref": assignee_ref},
        )
        return self._one(Complaint, data)

    async def append_log(self, complaint_id: str, content: str) -> InvestigationLogEntry:
        data = await self._request("POST", f"/complaints/{complaint_id}/logs", json={"content": content})
        return self._one(InvestigationLogEntry, data)

    async def list_logs(self, complaint_id: str, after_seq: int = 0) -> list[InvestigationLogEntry]:
        data = await self._request("GET", f"/complaints/{complaint_id}/logs", params={"after_seq": after_seq})
        return self._many(InvestigationLogEntry, data)

    async def send_message(self, complaint_id: str, content: str) -> Message:
        data = await self._request("POST", f"/complaints/{complaint_id}/messages", json={"content": content})
        return self._one(Message, data)

    async def list_messages(self, complaint_id: str, after_seq: int = 0) -> list[Message]:
        data = await self._request(
            "GET", f"/complaints/{complaint_id}/messages", params={"after_seq": after_seq},
        )
        return self._many(Message, data)

    # ------------------------------------------------------------------
    # Counseling
    # ------------------------------------------------------------------

    async def list_counseling(self, status: str | None = None) -> list[CounselingRequest]:
        return self._many(CounselingRequest, await self._request("GET", "/counseling", params={"status": status}))

    async def update_counseling(
        self,
        request_id: str,
        status: str,
        counselor_ref: str | None = None,
    ) -> CounselingRequest:
        data = await self._request(
            "POST",
            f"/counseling/{request_id}/update",
            json={"status": str(status), "counselor_ref": counselor_ref},
        )
        return self._one(CounselingRequest, data)

    # ------------------------------------------------------------------
    # Broadcasts
    # ------------------------------------------------------------------

    async def broadcast_alert(self, payload: dict[str, Any]) -> BroadcastAlert:
        return self._one(BroadcastAlert, await self._request("POST", "/broadcasts", json=payload))

    async def list_broadcasts(self) -> list[BroadcastAlert]:
        return self._many(BroadcastAlert, await self._request("GET", "/broadcasts"))

    async def deactivate_broadcast(self, broadcast_id: str, reason: str | None = None) -> BroadcastAlert:
        data = await self._request("POST", f"/broadcasts/{broadcast_id}/deactivate", json={"reason": reason})
        return self._one(BroadcastAlert, data)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def get_analytics(self) -> AnalyticsSnapshot:
        return self._one(AnalyticsSnapshot, await self._request("GET", "/analytics"))

    async def get_dashboard(self) -> DashboardOverview:
        return self._one(DashboardOverview, await self._request("GET", "/dashboard"))
