"""Notification fan-out for SOS alerts and broadcasts.

When an SOS alert is raised, the reviewers currently monitoring need to
hear about it without waiting for their next refresh tick; when a
broadcast is published, every resolved recipient should be told. This
module builds :class:`Notification` objects and hands them to a
:class:`NotificationChannel`.

Channels:
    * :class:`LoggingNotificationChannel` -- structured log line per
      notification, the most recent ones kept in a bounded in-process
      outbox (development, tests).
    * :class:`WebhookNotificationChannel` -- POSTs each notification as
      JSON to the institution's push gateway.

This module does NOT deliver to devices (push tokens, SMS, e-mail); that
is the gateway's job. Delivery failure is never fatal to the operation
that triggered it: callers go through :func:`dispatch`, which logs and
swallows channel errors.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Any, Final, Protocol, runtime_checkable
from uuid import uuid4

import httpx
import orjson
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.broadcast import BroadcastAlert
from src.models.incident import SosAlert, utcnow
from src.services.errors import TransportError

logger = structlog.get_logger(__name__)

SOS_RAISED: Final = "sos_raised"
BROADCAST_PUBLISHED: Final = "broadcast_published"

# Recipient marker meaning "every reviewer currently on duty".
MONITORING_REVIEWERS: Final = "role:reviewer"

DEFAULT_OUTBOX_SIZE: Final = 100


# ---------------------------------------------------------------------------
# Notification model
# ---------------------------------------------------------------------------


class Notification(BaseModel):
    """A single fan-out message handed to a channel."""

    notification_id: str = Field(default_factory=lambda: uuid4().hex)
    event: str
    subject_id: str
    title: str
    body: str
    severity: str | None = None
    recipients: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


def sos_raised(alert: SosAlert) -> Notification:
    """Notification telling monitoring reviewers a new SOS is active."""
    who = alert.reporter_name or "A student"
    where = (
        f" at {alert.coordinates.latitude:.5f}, {alert.coordinates.longitude:.5f}"
        if alert.coordinates is not None
        else ""
    )
    return Notification(
        event=SOS_RAISED,
        subject_id=alert.id,
        title="SOS alert raised",
        body=f"{who} needs help{where}.",
        severity="Critical",
        recipients=[MONITORING_REVIEWERS],
        data={
            "status": alert.status.value,
            "created_at": alert.created_at.isoformat(),
            "coordinates": alert.coordinates.model_dump() if alert.coordinates else None,
        },
    )


def broadcast_published(alert: BroadcastAlert, recipients: list[str]) -> Notification:
    """Notification carrying a broadcast to its resolved audience."""
    return Notification(
        event=BROADCAST_PUBLISHED,
        subject_id=alert.id,
        title=alert.title,
        body=alert.description,
        severity=alert.severity.value,
        recipients=list(recipients),
        data={
            "category": alert.category,
            "color": alert.color,
            "target_audience": alert.target_audience.value,
            "location": alert.location,
        },
    )


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationChannel(Protocol):
    async def send(self, notification: Notification) -> None: ...

    async def close(self) -> None: ...


class LoggingNotificationChannel:
    """Logs every notification and keeps the latest *outbox_size* in memory."""

    __slots__ = ("_outbox",)

    def __init__(self, outbox_size: int = DEFAULT_OUTBOX_SIZE) -> None:
        if outbox_size < 1:
            raise ValueError("outbox_size must be at least 1")
        self._outbox: deque[Notification] = deque(maxlen=outbox_size)

    async def send(self, notification: Notification) -> None:
        self._outbox.append(notification)
        logger.info(
            "notifications.sent",
            channel="log",
            notification_event=notification.event,
            subject_id=notification.subject_id,
            recipient_count=len(notification.recipients),
        )

    async def close(self) -> None:
        return None

    @property
    def outbox(self) -> list[Notification]:
        """Most recent notifications, oldest first."""
        return list(self._outbox)


class WebhookNotificationChannel:
    """POSTs notifications to an HTTP push gateway.

    Parameters
    ----------
    url:
        Gateway endpoint receiving one JSON notification per request.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    __slots__ = ("_client", "_url")

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "User-Agent": "SafetyHub/1.0 (campus incident coordination)",
                "Content-Type": "application/json",
            },
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )
    async def _post(self, body: bytes) -> httpx.Response:
        response = await self._client.post(self._url, content=body)
        response.raise_for_status()
        return response

    async def send(self, notification: Notification) -> None:
        try:
            await self._post(orjson.dumps(notification.model_dump(mode="json")))
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Notification gateway rejected {notification.event} "
                f"(HTTP {exc.response.status_code})",
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError("Notification gateway unreachable") from exc

        logger.info(
            "notifications.sent",
            channel="webhook",
            notification_event=notification.event,
            subject_id=notification.subject_id,
            recipient_count=len(notification.recipients),
        )

    async def close(self) -> None:
        await self._client.aclose()


def build_notification_channel(
    webhook_url: str,
    *,
    timeout: float = 5.0,
    outbox_size: int = DEFAULT_OUTBOX_SIZE,
) -> NotificationChannel:
    if webhook_url:
        return WebhookNotificationChannel(webhook_url, timeout=timeout)
    return LoggingNotificationChannel(outbox_size)


async def dispatch(channel: NotificationChannel, notification: Notification) -> bool:
    """Send *notification*, logging instead of raising on failure.

    Returns ``True`` when the channel accepted it.
    """
    try:
        await channel.send(notification)
    except Exception:
        logger.exception(
            "notifications.dispatch_failed",
            notification_event=notification.event,
            subject_id=notification.subject_id,
        )
        return False
    return True
