"""Event-loop timers: periodic jobs and trailing debounces."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

Job = Callable[[], Awaitable[Any] | Any]


async def _invoke(job: Job) -> None:
    result = job()
    if inspect.isawaitable(result):
        await result


class PeriodicTimer:
    """Run a job every ``interval`` seconds until cancelled.

    The job is started after each full interval; a slow job delays the next
    tick instead of overlapping with it. Cancelling stops future ticks only:
    a job already running completes its round trip.
    """

    def __init__(self, name: str, interval: float, job: Job):
        self.name = name
        self.interval = interval
        self.job = job
        self._task: asyncio.Task | None = None
        self._jobs: set[asyncio.Task] = set()
        self.logger = logger.bind(timer=name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"timer-{self.name}"
        )

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)
            job = loop.create_task(self._run_job(), name=f"timer-{self.name}-job")
            self._jobs.add(job)
            job.add_done_callback(self._jobs.discard)
            # Cancelling the timer must not cancel the job it is waiting on
            await asyncio.shield(job)

    async def _run_job(self) -> None:
        try:
            await _invoke(self.job)
        except Exception as e:
            self.logger.warning("Periodic job failed", error=str(e))

    def cancel(self) -> None:
        """Stop future ticks; a job in progress is left to finish."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            self.logger.debug("Cleared periodic timer")

    async def wait_jobs(self) -> None:
        """Wait for jobs still running after cancellation."""
        if self._jobs:
            await asyncio.gather(*list(self._jobs), return_exceptions=True)


class Debouncer:
    """Trailing debounce: run the job once calls stop for ``delay`` seconds."""

    def __init__(self, name: str, delay: float, job: Job):
        self.name = name
        self.delay = delay
        self.job = job
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self.logger = logger.bind(debouncer=name)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """Restart the quiet period."""
        if self._handle is not None:
            self._handle.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop, debounce dropped")
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"debounce-{self.name}"
        )

    async def _run(self) -> None:
        try:
            await _invoke(self.job)
        except Exception as e:
            self.logger.warning("Debounced job failed", error=str(e))

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
