from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import replace
from typing import Optional

import httpx

from server.src.core.logging import get_logger

from ..config import Settings
from ..core.time import isoformat_utc, utc_now
from ..models import PollOutcome, PollSnapshot
from .classifier import classify
from .errors import MalformedResultError, RpcProtocolError, TransportError, UpstreamHttpError
from .groups import GroupResolver
from .rpc import RpcClient
from .snapshot_store import SnapshotStore
from .status_fetcher import StatusFetcher

logger = get_logger(__name__)


class PollService:
    """Background poller that publishes the aggregated node status.

    Fires once on start and then on a fixed cadence. At most one poll cycle
    runs at a time: a tick that arrives while a cycle is still in flight is
    skipped and counted in `skipped_ticks`. Every cycle, successful or not,
    ends by replacing the snapshot in the store.
    """

    def __init__(
        self,
        settings: Settings,
        store: SnapshotStore,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._store = store
        # Tests inject httpx.MockTransport here; a fresh client is built per cycle.
        self._transport = transport
        self._task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._poll_lock = asyncio.Lock()
        self.skipped_ticks = 0
        self.completed_cycles = 0

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        logger.info("Starting polling every %dms...", self._settings.poll_interval_ms)
        self._task = asyncio.create_task(self._run(), name="status-poller")

    async def stop(self) -> None:
        self._stop_event.set()
        for task in (self._task, self._cycle_task):
            if task is None:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        self._cycle_task = None
        logger.info("Stopped polling")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._settings.poll_interval_seconds
        next_tick = loop.time()
        while not self._stop_event.is_set():
            self.trigger()
            # Ticks are spaced from the schedule, not from when the cycle ended.
            next_tick += interval
            delay = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

    def trigger(self) -> bool:
        """Start a poll cycle in the background unless one is already running.

        Returns True when a cycle was started.
        """
        if self._cycle_task is not None and not self._cycle_task.done():
            self.skipped_ticks += 1
            logger.debug("Previous poll still in flight, skipping tick (skipped=%d)", self.skipped_ticks)
            return False
        self._cycle_task = asyncio.create_task(self.poll_once(), name="status-poll-cycle")
        return True

    async def poll_once(self) -> PollSnapshot:
        """Run one full cycle, publish its snapshot and return it.

        Concurrent callers are serialized; cycles never overlap.
        """
        async with self._poll_lock:
            started_at = utc_now()
            previous = self._store.read()
            try:
                snapshot = await self._run_cycle(previous, isoformat_utc(started_at))
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unhandled error during poll cycle")
                snapshot = replace(
                    previous,
                    last_checked_at=isoformat_utc(started_at),
                    rpc_error=None,
                    fetch_error=str(exc) or exc.__class__.__name__,
                    computed_base_status=503,
                    outcome=PollOutcome.FETCH_ERROR,
                )
            self._store.replace(snapshot)
            self.completed_cycles += 1
            self._log_result(snapshot)
            return snapshot

    async def _run_cycle(self, previous: PollSnapshot, checked_at: str) -> PollSnapshot:
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._settings.rpc_timeout_seconds,
            follow_redirects=True,
        ) as client:
            rpc = RpcClient(client, self._settings)
            # Groups must be known before the status result can be classified.
            lookup = await GroupResolver(rpc).resolve()

            try:
                response = await StatusFetcher(rpc).fetch()
                classification = classify(response.body, lookup.groups, self._settings.ignore_group_set)
            except TransportError as exc:
                # The previous summary and upstream status stay as they were.
                return replace(
                    previous,
                    last_checked_at=checked_at,
                    upstream_http_status=exc.http_status if exc.http_status is not None else previous.upstream_http_status,
                    rpc_error=None,
                    fetch_error=str(exc),
                    computed_base_status=exc.computed_status,
                    outcome=exc.outcome,
                )
            except UpstreamHttpError as exc:
                return replace(
                    previous,
                    last_checked_at=checked_at,
                    upstream_http_status=exc.http_status,
                    rpc_error=None,
                    fetch_error=None,
                    computed_base_status=exc.computed_status,
                    outcome=exc.outcome,
                )
            except (RpcProtocolError, MalformedResultError) as exc:
                return replace(
                    previous,
                    last_checked_at=checked_at,
                    upstream_http_status=200,
                    rpc_error=exc.error,
                    fetch_error=None,
                    computed_base_status=exc.computed_status,
                    outcome=exc.outcome,
                )

        return PollSnapshot(
            last_checked_at=checked_at,
            upstream_http_status=response.http_status,
            rpc_error=None,
            fetch_error=None,
            nodes_online_summary=classification.summary,
            computed_base_status=classification.computed_status,
            outcome=classification.outcome,
        )

    def _log_result(self, snapshot: PollSnapshot) -> None:
        summary = snapshot.nodes_online_summary
        error: Optional[str] = snapshot.fetch_error
        if error is None and snapshot.rpc_error is not None:
            error = json.dumps(snapshot.rpc_error, default=str)
        outcome = snapshot.outcome.value if snapshot.outcome else "unknown"
        level = logging.INFO if snapshot.outcome is PollOutcome.ALL_ONLINE else logging.WARNING
        logger.log(
            level,
            "[%s] Poll completed: status=%s upstreamHttpStatus=%s nodes=%d/%d online computedBaseStatus=%d error=%s",
            snapshot.last_checked_at,
            outcome,
            snapshot.upstream_http_status,
            summary.online_count,
            summary.total_nodes,
            snapshot.computed_base_status,
            error,
        )
