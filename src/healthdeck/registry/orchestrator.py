"""Sequential health-check orchestrator.

Services are probed strictly one at a time, in the order given, with a short
pause between probes. Every transition of every entry is published before the
next one starts, so an observer (callback, :meth:`stream` consumer, or a
reader polling :attr:`HealthCheckOrchestrator.current_run`) sees a total
order: entry ``i`` goes ``pending -> testing -> up/down/error`` before entry
``i + 1`` leaves ``pending``.

At most one run is in flight per orchestrator. :meth:`run`, :meth:`start` and
:meth:`stream` all go through :meth:`start`, so a new run always cancels the
previous one and ``current_run`` is always the run being driven.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Optional

import httpx

from healthdeck.config.models import ProbeConfig
from healthdeck.events.emitter import EventEmitter, HealthEvent
from healthdeck.registry.errors import InvalidServiceError
from healthdeck.registry.health import probe as default_probe
from healthdeck.registry.models import (
    HealthCheckRun,
    ProbeOutcome,
    Service,
    ServiceStatus,
    StatusUpdate,
)

logger = logging.getLogger(__name__)

ProbeFn = Callable[..., Awaitable[ProbeOutcome]]
UpdateCallback = Callable[[int, ServiceStatus], Any]

_DONE = object()


def validate_services(services: Sequence[Any]) -> list[Service]:
    """Reject the whole run up front if any record cannot be probed."""
    checked: list[Service] = []
    for index, item in enumerate(services):
        if not isinstance(item, Service):
            raise InvalidServiceError(f"Entry {index} is not a Service: {type(item).__name__}")
        if not item.url:
            raise InvalidServiceError(f"Service {item.id!r} has no URL")
        checked.append(item)
    return checked


class RunStream:
    """Async iterator over the transitions of one run.

    ``run`` is the run being streamed, so its summary can be read once
    iteration ends even if another run has started since. Iteration also ends
    when the run is cancelled or superseded. :meth:`aclose` (or leaving an
    ``async with`` block) cancels the run if it is still going.
    """

    def __init__(
        self,
        run: HealthCheckRun,
        task: asyncio.Task[HealthCheckRun],
        queue: asyncio.Queue[Any],
    ) -> None:
        self.run = run
        self._task = task
        self._queue = queue
        task.add_done_callback(lambda _: queue.put_nowait(_DONE))

    def __aiter__(self) -> RunStream:
        return self

    async def __anext__(self) -> StatusUpdate:
        item = await self._queue.get()
        if item is _DONE:
            self._queue.put_nowait(_DONE)
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        if not self._task.done():
            self._task.cancel()
            await asyncio.wait([self._task])

    async def __aenter__(self) -> RunStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class HealthCheckOrchestrator:
    """Drives one health-check run at a time over an ordered list of services."""

    def __init__(
        self,
        config: ProbeConfig | None = None,
        emitter: EventEmitter | None = None,
        probe: ProbeFn | None = None,
    ) -> None:
        self._config = config or ProbeConfig()
        self._emitter = emitter
        self._probe = probe or default_probe
        self._task: Optional[asyncio.Task[HealthCheckRun]] = None
        self.current_run: Optional[HealthCheckRun] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _emit(self, run: HealthCheckRun, event_type: str, **data: Any) -> None:
        if self._emitter is not None:
            await self._emitter.emit(HealthEvent(
                event_type=event_type,
                timestamp=datetime.now(UTC),
                run_id=run.run_id,
                data=data,
            ))

    async def _publish(
        self,
        run: HealthCheckRun,
        index: int,
        status: ServiceStatus,
        on_update: UpdateCallback | None,
    ) -> StatusUpdate:
        update = run.publish(index, status)
        if on_update is not None:
            result = on_update(index, status)
            if inspect.isawaitable(result):
                await result
        return update

    async def run(
        self,
        services: Sequence[Service],
        on_update: UpdateCallback | None = None,
    ) -> HealthCheckRun:
        """Probe every service once, in order, and return the run.

        ``on_update(index, status)`` is called (and awaited when it returns an
        awaitable) after every transition. An empty input returns an empty,
        finished run whose summary reports ``nothing_to_test``. If another
        run supersedes this one before it ends, the returned run has
        ``cancelled`` set and is not finished.
        """
        run = self.start(services, on_update)
        task = self._task
        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            return run
        return task.result()

    async def _execute(self, run: HealthCheckRun, on_update: UpdateCallback | None) -> HealthCheckRun:
        run.started_at = datetime.now(UTC)
        services = run.services

        if not services:
            run.completed_at = run.started_at
            logger.info("No services to test")
            return run

        await self._emit(run, "check.started", service_count=len(services))
        pause = self._config.pacing_ms / 1000
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_ms / 1000, follow_redirects=True
            ) as client:
                for index, service in enumerate(services):
                    testing = run.statuses[index].begin()
                    await self._publish(run, index, testing, on_update)
                    await self._emit(run, "service.testing", index=index, service_id=service.id)

                    outcome = await self._probe(
                        service, timeout_ms=self._config.timeout_ms, client=client
                    )
                    done = testing.finish(outcome)
                    await self._publish(run, index, done, on_update)
                    await self._emit(
                        run,
                        "service.checked",
                        index=index,
                        service_id=service.id,
                        name=service.name,
                        state=done.state.value,
                        response_time_ms=done.response_time_ms,
                        error_message=done.error_message,
                    )

                    if index < len(services) - 1 and pause:
                        await asyncio.sleep(pause)
        except asyncio.CancelledError:
            run.cancelled = True
            logger.info("Health-check run %s cancelled at entry %s", run.run_id, run.current_index)
            await self._emit(run, "check.cancelled", index=run.current_index)
            raise

        run.completed_at = datetime.now(UTC)
        summary = run.summary()
        logger.info("Health-check run %s: %d up, %d down", run.run_id, summary.up, summary.down)
        await self._emit(run, "check.completed", **summary.to_dict())
        return run

    def start(
        self,
        services: Sequence[Service],
        on_update: UpdateCallback | None = None,
    ) -> HealthCheckRun:
        """Run in the background, superseding any run still in flight.

        Returns the new run immediately (all entries ``pending``) so callers
        can hand it to observers before the first probe begins. Invalid input
        raises before the previous run is touched.
        """
        # A fresh run every time; nothing carries over from the previous one.
        run = HealthCheckRun(services=validate_services(services))
        self.cancel()
        task = asyncio.create_task(self._execute(run, on_update), name=f"health-check-{run.run_id}")
        task.add_done_callback(self._log_task_failure)
        self._task = task
        self.current_run = run
        return run

    async def wait(self) -> Optional[HealthCheckRun]:
        """Wait for the background run, if any, to settle; return the latest run."""
        if self._task is not None:
            await asyncio.wait([self._task])
        return self.current_run

    def cancel(self) -> bool:
        """Abort the in-flight request of the current run and stop iterating."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            return True
        return False

    @staticmethod
    def _log_task_failure(task: asyncio.Task[HealthCheckRun]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Health-check run failed", exc_info=task.exception())

    def stream(self, services: Sequence[Service]) -> RunStream:
        """Start a run and return an async iterator of its :class:`StatusUpdate` s.

        One update per transition; the first is entry 0 going to ``testing``.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()

        def _push(index: int, status: ServiceStatus) -> None:
            queue.put_nowait(StatusUpdate(index=index, status=status))

        run = self.start(services, on_update=_push)
        return RunStream(run, self._task, queue)
