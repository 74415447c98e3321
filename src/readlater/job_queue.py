"""In-process job queue with a bounded worker pool.

Jobs live only in memory. A restart loses everything queued or running; the
article rows keep their own extraction status and the stuck-job reaper is what
recovers work after a crash.
"""
from __future__ import annotations

import logging
import queue as queue_lib
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable

import jsonschema

from .models import EXTRACT_ARTICLE, Job, QueueNotStartedError
from .utils import log_event, utc_now_iso

JobHandler = Callable[[Job], Any]
Listener = Callable[[Job, Any], None]

TASK_FINISH = "task_finish"
TASK_FAILED = "task_failed"

PAYLOAD_SCHEMAS: dict[str, dict[str, Any]] = {
    EXTRACT_ARTICLE: {
        "type": "object",
        "required": ["articleId", "url", "userId"],
        "properties": {
            "articleId": {"type": "string", "minLength": 1},
            "url": {"type": "string", "minLength": 1},
            "userId": {"type": "string"},
        },
        "additionalProperties": False,
    },
}

_STOP = object()


class JobQueue:
    def __init__(
        self,
        *,
        concurrency: int = 2,
        max_attempts: int = 3,
        retry_delay_seconds: float = 5.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.concurrency = max(1, concurrency)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self.logger = logger or logging.getLogger("readlater.queue")
        self._handlers: dict[str, JobHandler] = {}
        self._listeners: dict[str, list[Listener]] = {TASK_FINISH: [], TASK_FAILED: []}
        self._pending: queue_lib.Queue = queue_lib.Queue()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._active: dict[str, str] = {}
        self._timers: dict[str, threading.Timer] = {}
        self._outstanding = 0
        self._running = 0
        self._executor: ThreadPoolExecutor | None = None
        self._started = False

    def register(self, kind: str, handler: JobHandler) -> None:
        self._handlers[kind] = handler

    def add_listener(self, event: str, callback: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown queue event: {event}")
        self._listeners[event].append(callback)

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._executor = ThreadPoolExecutor(
                max_workers=self.concurrency, thread_name_prefix="readlater-worker"
            )
            for _ in range(self.concurrency):
                self._executor.submit(self._worker_loop)
            self._started = True
        log_event(self.logger, logging.INFO, "queue_started", concurrency=self.concurrency)

    def stop(self, wait: bool = True) -> None:
        with self._lock:
            if not self._started:
                return
            self._started = False
            timers = list(self._timers.items())
            self._timers.clear()
            executor = self._executor
            self._executor = None
        for job_id, timer in timers:
            timer.cancel()
            log_event(self.logger, logging.WARNING, "job_retry_cancelled", job_id=job_id)
        discarded = self._drain_pending()
        if discarded:
            log_event(self.logger, logging.WARNING, "jobs_discarded", count=discarded)
        for _ in range(self.concurrency):
            self._pending.put(_STOP)
        if executor is not None:
            executor.shutdown(wait=wait)
        with self._idle:
            self._outstanding = 0
            self._active.clear()
            self._idle.notify_all()
        log_event(self.logger, logging.INFO, "queue_stopped")

    def enqueue(self, kind: str, payload: dict[str, object]) -> str:
        """Accept a job and return its id without waiting for it to run.

        A second job for an article that is already queued, waiting for a
        retry, or running is coalesced into the existing one.
        """
        if kind not in self._handlers:
            raise ValueError(f"Unknown job kind: {kind}")
        schema = PAYLOAD_SCHEMAS.get(kind)
        if schema is not None:
            try:
                jsonschema.validate(payload, schema)
            except jsonschema.ValidationError as exc:
                raise ValueError(f"Invalid {kind} payload: {exc.message}") from exc
        with self._lock:
            if not self._started:
                raise QueueNotStartedError("Queue not initialized")
            job = Job(
                id=_new_job_id(),
                kind=kind,
                payload=dict(payload),
                requested_at=utc_now_iso(),
                max_attempts=self.max_attempts,
            )
            key = job.article_id
            if key is not None and key in self._active:
                existing = self._active[key]
                log_event(self.logger, logging.INFO, "job_coalesced", job_id=existing, article_id=key)
                return existing
            if key is not None:
                self._active[key] = job.id
            self._outstanding += 1
            self._pending.put(job)
        log_event(self.logger, logging.INFO, "job_enqueued", job_id=job.id, kind=kind, article_id=key)
        return job.id

    def is_active(self, article_id: str) -> bool:
        with self._lock:
            return article_id in self._active

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "length": self._pending.qsize(),
                "running": self._running,
                "waiting_retry": len(self._timers),
            }

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)

    def _worker_loop(self) -> None:
        while True:
            item = self._pending.get()
            if item is _STOP:
                return
            try:
                self._run(item)
            except Exception as exc:  # noqa: BLE001
                log_event(self.logger, logging.ERROR, "queue_worker_error", job_id=item.id, error=str(exc))

    def _run(self, job: Job) -> None:
        attempt = replace(job, attempts=job.attempts + 1)
        with self._lock:
            self._running += 1
        log_event(
            self.logger,
            logging.INFO,
            "job_started",
            job_id=attempt.id,
            kind=attempt.kind,
            attempt=attempt.attempts,
        )
        retrying = False
        try:
            handler = self._handlers.get(attempt.kind)
            if handler is None:
                raise ValueError(f"Unknown job kind: {attempt.kind}")
            result = handler(attempt)
        except Exception as exc:  # noqa: BLE001
            retrying = self._on_failure(replace(attempt, last_error=str(exc)), exc)
        else:
            log_event(self.logger, logging.INFO, "job_succeeded", job_id=attempt.id, attempt=attempt.attempts)
            self._emit(TASK_FINISH, attempt, result)
        finally:
            with self._lock:
                self._running -= 1
            if not retrying:
                self._settle(attempt)

    def _on_failure(self, job: Job, exc: Exception) -> bool:
        """Schedule a retry, or report the job as failed. True when a retry is pending."""
        if job.attempts < job.max_attempts:
            with self._lock:
                if self._started:
                    timer = threading.Timer(self.retry_delay_seconds, self._requeue, args=(job,))
                    timer.daemon = True
                    self._timers[job.id] = timer
                    timer.start()
                    scheduled = True
                else:
                    scheduled = False
            if scheduled:
                log_event(
                    self.logger,
                    logging.WARNING,
                    "job_retry_scheduled",
                    job_id=job.id,
                    attempt=job.attempts,
                    max_attempts=job.max_attempts,
                    delay=self.retry_delay_seconds,
                    error=job.last_error,
                )
                return True
        log_event(
            self.logger,
            logging.ERROR,
            "job_dropped",
            job_id=job.id,
            attempts=job.attempts,
            error=job.last_error,
        )
        self._emit(TASK_FAILED, job, exc)
        return False

    def _drain_pending(self) -> int:
        discarded = 0
        while True:
            try:
                item = self._pending.get_nowait()
            except queue_lib.Empty:
                return discarded
            if item is not _STOP:
                discarded += 1

    def _requeue(self, job: Job) -> None:
        with self._lock:
            if self._timers.pop(job.id, None) is None:
                return
            self._pending.put(job)

    def _settle(self, job: Job) -> None:
        with self._idle:
            self._outstanding = max(0, self._outstanding - 1)
            key = job.article_id
            if key is not None and self._active.get(key) == job.id:
                del self._active[key]
            self._idle.notify_all()

    def _emit(self, event: str, job: Job, detail: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(job, detail)
            except Exception as exc:  # noqa: BLE001
                log_event(self.logger, logging.WARNING, "queue_listener_failed", queue_event=event, error=str(exc))


def _new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"
