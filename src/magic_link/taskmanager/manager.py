"""Periodic background jobs for the claim engine.

Each registered ``CronJob`` gets its own asyncio task that waits ``period``
seconds between runs.  Jobs flagged ``run_on_start`` fire once as soon as the
manager starts, so a restarted process clears expired claims without waiting
a full period.  Every run updates the job's ``JobState``; a failed run is
logged and recorded there, and the job stays scheduled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from magic_link.metrics.collector import ClaimMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[None]]
    period: float  # seconds
    name: str = ""
    run_on_start: bool = False


@dataclass
class JobState:
    """Run bookkeeping for one registered job."""

    runs: int = 0
    failures: int = 0
    last_run_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "runs": self.runs,
            "failures": self.failures,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }


class TaskManager:
    """Schedules cron jobs on the running event loop.

    Usage::

        tm = TaskManager(metrics=claim_metrics)
        tm.register(
            "expired_claim_sweep",
            CronJob(handler=sweep, period=60, run_on_start=True),
        )
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: ClaimMetrics | None = None) -> None:
        self._metrics = metrics
        self._jobs: dict[str, CronJob] = {}
        self._states: dict[str, JobState] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether jobs are currently scheduled."""
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        """Registered jobs by name."""
        return dict(self._jobs)

    def state(self, name: str) -> JobState:
        """Run bookkeeping for job *name*.

        Raises:
            KeyError: If no job with that name is registered.
        """
        return self._states[name]

    def status(self) -> dict[str, dict[str, Any]]:
        """Serialized ``JobState`` of every registered job."""
        return {name: state.to_dict() for name, state in self._states.items()}

    def register(self, name: str, job: CronJob) -> None:
        """Register *job* under *name*, replacing any job with that name.

        A job registered while the manager runs is scheduled right away.
        """
        if name in self._tasks:
            self._tasks.pop(name).cancel()
        self._jobs[name] = CronJob(
            handler=job.handler,
            period=job.period,
            name=name,
            run_on_start=job.run_on_start,
        )
        self._states.setdefault(name, JobState())
        if self._running:
            self._schedule(name)

    async def run_now(self, name: str) -> None:
        """Run job *name* once, outside its schedule.

        Errors propagate to the caller and are recorded on the job state.

        Raises:
            KeyError: If no job with that name is registered.
        """
        await self._run_once(self._jobs[name])

    async def start(self) -> None:
        """Schedule every registered job."""
        if self._running:
            return
        self._running = True
        for name in self._jobs:
            self._schedule(name)
        logger.info("TaskManager started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Cancel every job and wait for the tasks to unwind."""
        if not self._running:
            return
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for outcome in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error("Job raised during shutdown: %s", outcome)
        logger.info("TaskManager stopped")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule(self, name: str) -> None:
        self._tasks[name] = asyncio.create_task(
            self._loop(self._jobs[name]), name=f"cron:{name}"
        )

    async def _run_once(self, job: CronJob) -> None:
        state = self._states[job.name]
        try:
            if self._metrics is not None:
                with self._metrics.track_cron(job.name):
                    await job.handler()
            else:
                await job.handler()
        except Exception as exc:
            state.failures += 1
            state.last_error = str(exc) or type(exc).__name__
            raise
        else:
            state.last_error = None
        finally:
            state.runs += 1
            state.last_run_at = datetime.now(tz=UTC)

    async def _loop(self, job: CronJob) -> None:
        wait = 0.0 if job.run_on_start else job.period
        while self._running:
            await asyncio.sleep(wait)
            wait = job.period
            if not self._running:
                return
            try:
                await self._run_once(job)
            except Exception:
                logger.exception("Cron job %r failed", job.name)
