"""
In-process job queue for background pipeline work.

Handlers are registered by name and consume jobs from an asyncio.Queue.
Delivery is at-least-once: a job whose handler raises is retried with
tenacity backoff until its retry policy is exhausted, so handlers must be
idempotent (ingestion is, thanks to the URL unique key).

The queue knows nothing about ingestion; the server registers the
pipeline entry points as handlers.
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

JobHandler = Callable[[dict], Awaitable[Any]]


@dataclass(frozen=True)
class JobRetryPolicy:
    """How often and how patiently a failed job is retried."""
    max_attempts: int = 3
    base_delay: float = 60.0
    max_delay: float = 900.0


@dataclass
class Job:
    id: int
    name: str
    payload: dict = field(default_factory=dict)
    attempts: int = 0
    status: str = "queued"  # queued, running, completed, retrying, failed
    result: Any = None
    error: str | None = None
    enqueued_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None


@dataclass
class _Registration:
    handler: JobHandler
    policy: JobRetryPolicy
    no_retry: tuple[type[BaseException], ...]

    def should_retry(self, error: BaseException) -> bool:
        return isinstance(error, Exception) and not isinstance(error, self.no_retry)


class JobQueue:
    """Named-handler job queue with bounded, backed-off retries."""

    def __init__(
        self,
        default_policy: JobRetryPolicy | None = None,
        history_size: int = 50,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.default_policy = default_policy or JobRetryPolicy()
        self._queue: asyncio.Queue[Job] = asyncio.Queue()
        self._handlers: dict[str, _Registration] = {}
        self._ids = itertools.count(1)
        self._sleep = sleep
        self._worker: asyncio.Task | None = None
        self.history: deque[Job] = deque(maxlen=history_size)

    def register(
        self,
        name: str,
        handler: JobHandler,
        policy: JobRetryPolicy | None = None,
        no_retry: tuple[type[BaseException], ...] = (),
    ):
        """Register a handler. Exceptions listed in `no_retry` fail the job immediately."""
        self._handlers[name] = _Registration(handler, policy or self.default_policy, no_retry)

    async def enqueue(self, name: str, payload: dict | None = None) -> Job:
        if name not in self._handlers:
            raise KeyError(f"No handler registered for job '{name}'")
        job = Job(id=next(self._ids), name=name, payload=payload or {})
        await self._queue.put(job)
        logger.debug(f"Enqueued job {job.id} ({name})")
        return job

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self):
        """Start the background worker."""
        if self._worker is None:
            self._worker = asyncio.create_task(self._work_loop())
            logger.info("Job queue worker started")

    async def stop(self):
        """Stop the worker, abandoning any job waiting out a backoff."""
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            logger.info("Job queue worker stopped")

    async def drain(self):
        """Process queued jobs, retries included, until the queue is empty."""
        while not self._queue.empty():
            await self._process(self._queue.get_nowait())

    async def _work_loop(self):
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Unexpected error processing job {job.id}")

    async def _process(self, job: Job):
        registration = self._handlers[job.name]
        policy = registration.policy

        def before_sleep(retry_state: RetryCallState):
            error = retry_state.outcome.exception()
            job.status = "retrying"
            job.error = str(error)
            logger.warning(
                f"Job {job.id} ({job.name}) failed (attempt {retry_state.attempt_number}/"
                f"{policy.max_attempts}), retrying in {retry_state.upcoming_sleep}s: {error}"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
            retry=retry_if_exception(registration.should_retry),
            sleep=self._sleep,
            before_sleep=before_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    job.attempts = attempt.retry_state.attempt_number
                    job.status = "running"
                    job.result = await registration.handler(job.payload)
        except registration.no_retry as e:
            self._finish(job, "failed", error=str(e))
            logger.warning(f"Job {job.id} ({job.name}) skipped: {e}")
            return
        except Exception as e:
            self._finish(job, "failed", error=str(e))
            logger.error(f"Job {job.id} ({job.name}) failed after {job.attempts} attempts: {e}")
            return

        self._finish(job, "completed")
        logger.info(f"Job {job.id} ({job.name}) completed successfully")

    def _finish(self, job: Job, status: str, error: str | None = None):
        job.status = status
        job.error = error
        job.finished_at = datetime.now()
        self.history.append(job)
