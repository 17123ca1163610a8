"""Tests for notification building and delivery channels.

Covers the SOS and broadcast notification builders, the logging channel
outbox, webhook delivery over ``httpx.MockTransport`` and the
never-raising :func:`dispatch` helper.

All tests run WITHOUT network access.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.models import BroadcastAlert, Coordinates, Severity, SosAlert
from src.services.errors import TransportError
from src.services.notifications import (
    BROADCAST_PUBLISHED,
    DEFAULT_OUTBOX_SIZE,
    MONITORING_REVIEWERS,
    SOS_RAISED,
    LoggingNotificationChannel,
    WebhookNotificationChannel,
    broadcast_published,
    build_notification_channel,
    dispatch,
    sos_raised,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def alert() -> SosAlert:
    return SosAlert(
        reporter_ref="S1",
        reporter_name="Asha",
        coordinates=Coordinates(latitude=12.9716, longitude=77.5946),
    )


@pytest.fixture
def broadcast() -> BroadcastAlert:
    return BroadcastAlert(
        title="Gas leak",
        description="Evacuate chemistry block",
        severity=Severity.CRITICAL,
        created_by="F1",
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


class TestBuilders:
    def test_sos_raised(self, alert: SosAlert) -> None:
        note = sos_raised(alert)
        assert note.event == SOS_RAISED
        assert note.subject_id == alert.id
        assert note.recipients == [MONITORING_REVIEWERS]
        assert note.severity == "Critical"
        assert "Asha" in note.body
        assert "12.97160" in note.body
        assert note.data["status"] == "ACTIVE"

    def test_sos_raised_without_location(self) -> None:
        note = sos_raised(SosAlert(reporter_ref="S1"))
        assert note.body == "A student needs help."
        assert note.data["coordinates"] is None

    def test_broadcast_published(self, broadcast: BroadcastAlert) -> None:
        note = broadcast_published(broadcast, ["S1", "S2"])
        assert note.event == BROADCAST_PUBLISHED
        assert note.title == "Gas leak"
        assert note.recipients == ["S1", "S2"]
        assert note.data["color"] == "red"


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


class TestLoggingChannel:
    async def test_outbox_keeps_order(self, alert: SosAlert, broadcast: BroadcastAlert) -> None:
        channel = LoggingNotificationChannel()
        await channel.send(sos_raised(alert))
        await channel.send(broadcast_published(broadcast, []))
        assert [n.event for n in channel.outbox] == [SOS_RAISED, BROADCAST_PUBLISHED]

    async def test_outbox_is_bounded(self, alert: SosAlert) -> None:
        channel = LoggingNotificationChannel(outbox_size=3)
        sent = [sos_raised(alert.model_copy(update={"id": f"SOS-{i}"})) for i in range(10)]
        for note in sent:
            await channel.send(note)
        assert len(channel.outbox) == 3, "outbox must not grow past its bound"
        assert [n.subject_id for n in channel.outbox] == ["SOS-7", "SOS-8", "SOS-9"]

    async def test_default_outbox_bound(self, alert: SosAlert) -> None:
        channel = LoggingNotificationChannel()
        for _ in range(DEFAULT_OUTBOX_SIZE + 25):
            await channel.send(sos_raised(alert))
        assert len(channel.outbox) == DEFAULT_OUTBOX_SIZE

    def test_outbox_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            LoggingNotificationChannel(outbox_size=0)

    def test_factory_without_webhook(self) -> None:
        assert isinstance(build_notification_channel(""), LoggingNotificationChannel)

    async def test_factory_passes_outbox_size(self, alert: SosAlert) -> None:
        channel = build_notification_channel("", outbox_size=1)
        await channel.send(sos_raised(alert))
        await channel.send(sos_raised(alert))
        assert len(channel.outbox) == 1

    async def test_factory_with_webhook(self) -> None:
        channel = build_notification_channel("http://push.test/hook", timeout=1.0)
        assert isinstance(channel, WebhookNotificationChannel)
        await channel.close()


class TestWebhookChannel:
    async def test_posts_json(self, alert: SosAlert) -> None:
        received: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(202)

        channel = WebhookNotificationChannel("http://push.test/hook", transport=httpx.MockTransport(handler))
        await channel.send(sos_raised(alert))
        await channel.close()

        assert received[0]["event"] == SOS_RAISED
        assert received[0]["subject_id"] == alert.id

    async def test_rejection_raises_transport_error(self, alert: SosAlert) -> None:
        channel = WebhookNotificationChannel(
            "http://push.test/hook",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(TransportError) as exc_info:
            await channel.send(sos_raised(alert))
        assert "HTTP 500" in exc_info.value.message
        await channel.close()


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    async def test_success(self, alert: SosAlert) -> None:
        channel = LoggingNotificationChannel()
        assert await dispatch(channel, sos_raised(alert)) is True

    async def test_failure_is_swallowed(self, alert: SosAlert) -> None:
        channel = AsyncMock()
        channel.send.side_effect = TransportError("gateway down")
        assert await dispatch(channel, sos_raised(alert)) is False
        channel.send.assert_awaited_once()
