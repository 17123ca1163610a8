"""Active-SOS monitoring loop for the reviewing side.

While a reviewer is looking at the SOS view, :class:`SosMonitor` keeps a
snapshot of the open alerts fresh by re-fetching it on a fixed cadence
(10 seconds by default). The loop is bound to the viewing context::

    async with SosMonitor(client.list_active_sos, on_new_alerts=ring) as monitor:
        ...  # monitor.snapshot is kept current

Leaving the context cancels the background task and waits for it, so no
refresh or callback fires afterwards.

Refresh rules
-------------
- Every refresh replaces the snapshot wholesale.
- Refreshes are coalesced: a refresh requested while another is in flight
  joins it instead of issuing a second fetch, and the periodic tick never
  overlaps a slow fetch.
- ``ACTIVE`` alerts absent from the previous snapshot are handed to
  ``on_new_alerts``. The first snapshot after start is the baseline and is
  not announced.
- A :class:`TransportError` is logged and recorded in ``last_error``; the
  previous snapshot is kept and the next tick retries. Any other error
  stops the loop and is logged with its traceback.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from config.settings import settings
from src.models.enums import SosStatus
from src.models.incident import SosAlert, utcnow
from src.services.errors import TransportError

logger = structlog.get_logger(__name__)

Fetcher = Callable[[], Awaitable[list[SosAlert]]]
NewAlertsCallback = Callable[[list[SosAlert]], Awaitable[None] | None]

_STOP_TIMEOUT_SECONDS = 10.0


class SosMonitor:
    """Periodically refreshed view of open SOS alerts.

    Parameters
    ----------
    fetch:
        Coroutine function returning the current open alerts, e.g.
        :meth:`SosService.list_active` or
        :meth:`SafetyApiClient.list_active_sos`.
    interval:
        Seconds between the starts of consecutive refreshes. Defaults to
        ``settings.sos_refresh_interval_seconds``.
    on_new_alerts:
        Called with newly seen ``ACTIVE`` alerts. May be sync or async.
    """

    def __init__(
        self,
        fetch: Fetcher,
        *,
        interval: float | None = None,
        on_new_alerts: NewAlertsCallback | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval is None:
            interval = settings.sos_refresh_interval_seconds
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self._interval = interval
        self._on_new_alerts = on_new_alerts
        self._clock = clock
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._inflight: asyncio.Task | None = None  # type: ignore[type-arg]
        self._running = False
        self._has_baseline = False
        self._snapshot: list[SosAlert] = []
        self._last_refreshed_at: datetime | None = None
        self._last_error: TransportError | None = None
        self._refresh_count = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> list[SosAlert]:
        """Open alerts as of the last successful refresh."""
        return list(self._snapshot)

    @property
    def last_refreshed_at(self) -> datetime | None:
        return self._last_refreshed_at

    @property
    def last_error(self) -> TransportError | None:
        """Transport failure of the most recent refresh, if it failed."""
        return self._last_error

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def refresh_count(self) -> int:
        """Number of fetches that completed successfully."""
        return self._refresh_count

    @property
    def interval(self) -> float:
        return self._interval

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SosMonitor:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(self) -> None:
        """Start the background loop; the first refresh runs immediately."""
        if self._task is not None and not self._task.done():
            return
        self._has_baseline = False
        self._running = True
        self._task = asyncio.create_task(self._run(), name="sos-monitor")

    async def stop(self) -> None:
        """Cancel the loop and any in-flight refresh, and wait for both."""
        self._running = False
        for task in (self._task, self._inflight):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=_STOP_TIMEOUT_SECONDS)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._task = None
        self._inflight = None
        logger.info("monitor.stopped")

    async def join(self) -> None:
        """Wait until the loop ends on its own (after a fatal error)."""
        if self._task is not None:
            await self._task

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> list[SosAlert]:
        """Refresh now, joining an in-flight refresh if there is one."""
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._refresh_once())
            self._inflight = task
            task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        if self._inflight is task:
            self._inflight = None

    async def _refresh_once(self) -> list[SosAlert]:
        try:
            alerts = list(await self._fetch())
        except TransportError as exc:
            self._last_error = exc
            logger.warning(
                "monitor.refresh_failed",
                error=exc.message,
                retained_alerts=len(self._snapshot),
            )
            return self.snapshot

        previous_ids = {alert.id for alert in self._snapshot}
        announce = self._has_baseline
        self._snapshot = alerts
        self._last_refreshed_at = self._clock()
        self._last_error = None
        self._has_baseline = True
        self._refresh_count += 1

        fresh = [a for a in alerts if a.status == SosStatus.ACTIVE and a.id not in previous_ids]
        logger.debug("monitor.refreshed", open_alerts=len(alerts), new_alerts=len(fresh) if announce else 0)
        if announce and fresh and self._on_new_alerts is not None:
            await self._announce(fresh)
        return list(alerts)

    async def _announce(self, alerts: list[SosAlert]) -> None:
        logger.info("monitor.new_alerts", sos_ids=[a.id for a in alerts])
        try:
            result = self._on_new_alerts(alerts)  # type: ignore[misc]
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("monitor.callback_failed", sos_ids=[a.id for a in alerts])

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info("monitor.started", interval_seconds=self._interval)
        try:
            while self._running:
                started = loop.time()
                await self.refresh()
                await asyncio.sleep(max(0.0, self._interval - (loop.time() - started)))
        except asyncio.CancelledError:
            logger.info("monitor.cancelled")
        except Exception:
            logger.error("monitor.loop_failed", exc_info=True)
        finally:
            self._running = False
