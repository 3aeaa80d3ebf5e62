"""
Bounded background delivery for notifications.

Tasks go onto a fixed-size queue served by a fixed number of worker threads.
Each task is retried with exponential backoff until it succeeds or runs out of
attempts. Outcomes are counted (Prometheus + stats()) and logged; they never
reach the request that enqueued the task.
"""
from __future__ import annotations

import queue
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from watchclub.core.logging import get_logger
from watchclub.metrics import (
    NOTIFICATION_QUEUE_DEPTH,
    NOTIFICATION_RETRIES,
    NOTIFICATIONS_DROPPED,
    NOTIFICATIONS_SENT,
)

logger = get_logger(__name__)


@dataclass
class NotificationTask:
    kind: str  # e.g. "club_started", used as metric label
    fn: Callable[[], Any]
    description: str = ""


_STOP = object()


class NotificationDispatcher:
    """Worker pool with its own retry/backoff policy."""

    def __init__(
        self,
        workers: int = 2,
        queue_size: int = 100,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._sleep = sleep
        self._stats: Counter[str] = Counter()
        self._stats_lock = threading.Lock()
        self._closed = False
        self._submit_lock = threading.Lock()
        self._threads = [
            threading.Thread(target=self._run, name=f"watchclub-notify-{i}", daemon=True)
            for i in range(workers)
        ]
        for t in self._threads:
            t.start()

    def submit(self, kind: str, fn: Callable[[], Any], description: str = "") -> bool:
        """Enqueue fn. Returns False (and counts a drop) if the queue is full or closed."""
        # Held across the check and the put so no task lands behind the stop markers
        with self._submit_lock:
            if self._closed:
                reason = "dispatcher closed"
            else:
                try:
                    self._queue.put_nowait(NotificationTask(kind, fn, description))
                except queue.Full:
                    reason = "notification queue full"
                else:
                    NOTIFICATION_QUEUE_DEPTH.inc()
                    return True
        self._count("dropped")
        NOTIFICATIONS_DROPPED.labels(kind=kind).inc()
        logger.warning("%s, dropping %s task %s", reason, kind, description)
        return False

    def join(self) -> None:
        """Block until every submitted task has finished (succeeded or given up)."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks; workers exit after draining what is queued."""
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
        for _ in self._threads:
            self._queue.put(_STOP)
        if wait:
            for t in self._threads:
                t.join()

    def stats(self) -> dict[str, int]:
        """Snapshot of succeeded / failed / retried / dropped counts."""
        with self._stats_lock:
            return {k: self._stats[k] for k in ("succeeded", "failed", "retried", "dropped")}

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                NOTIFICATION_QUEUE_DEPTH.dec()
                self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, task: NotificationTask) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                task.fn()
            except Exception as exc:  # delivery errors are counted, never propagated
                if attempt == self._max_attempts:
                    self._count("failed")
                    NOTIFICATIONS_SENT.labels(kind=task.kind, status="failed").inc()
                    logger.error(
                        "%s task %s failed after %d attempts: %s",
                        task.kind, task.description, attempt, exc,
                        extra={"task": task.kind, "attempt": attempt},
                    )
                    return
                self._count("retried")
                NOTIFICATION_RETRIES.labels(kind=task.kind).inc()
                delay = self._backoff * (2 ** (attempt - 1))
                logger.warning(
                    "%s task %s attempt %d failed (%s); retrying in %.2fs",
                    task.kind, task.description, attempt, exc, delay,
                    extra={"task": task.kind, "attempt": attempt},
                )
                self._sleep(delay)
            else:
                self._count("succeeded")
                NOTIFICATIONS_SENT.labels(kind=task.kind, status="sent").inc()
                logger.info("%s task %s delivered", task.kind, task.description)
                return
