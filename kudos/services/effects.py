"""
kudos.services.effects — Fire-and-forget side-effect queue
===========================================================

Badge evaluation, badge notifications and cache invalidation run after the
award response is built.  They go through :class:`SideEffectQueue`: a
bounded queue drained by daemon worker threads, each task retried with
exponential backoff + jitter and finally dropped with a log line.  Nothing
here ever propagates into the award path.

``workers=0`` runs every task inline on ``submit`` with the same retry
semantics, for scripts and tests.
"""

from __future__ import annotations

import logging
import queue
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

__all__ = ["SideEffectQueue"]

_MAX_BACKOFF = 30.0


@dataclass
class _Task:
    name: str
    func: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class SideEffectQueue:
    """Bounded background executor for side effects.

    Parameters
    ----------
    workers : daemon threads draining the queue (0 = run inline).
    maxsize : queue capacity; a full queue drops new tasks with a warning.
    max_attempts : tries per task before it is dropped.
    base_backoff : first retry delay in seconds, doubled per attempt.
    """

    def __init__(
        self,
        workers: int = 2,
        maxsize: int = 1000,
        max_attempts: int = 3,
        base_backoff: float = 0.5,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.base_backoff = base_backoff
        self._queue: queue.Queue[_Task | None] = queue.Queue(maxsize=maxsize)
        self._shutdown_event = threading.Event()
        self._threads: list[threading.Thread] = []

        for i in range(workers):
            thread = threading.Thread(
                target=self._worker, daemon=True, name=f"kudos-effects-{i}"
            )
            thread.start()
            self._threads.append(thread)

    @property
    def inline(self) -> bool:
        return not self._threads

    def submit(self, name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """Schedule *func*; never blocks and never raises.

        Returns False when the task was dropped (queue full or shut down).
        """
        if self._shutdown_event.is_set():
            logger.warning("Side effect %s submitted after shutdown — dropped", name)
            return False

        task = _Task(name=name, func=func, args=args, kwargs=kwargs)
        if self.inline:
            self._run(task)
            return True

        try:
            self._queue.put_nowait(task)
        except queue.Full:
            logger.warning("Side-effect queue full — dropping %s", name)
            return False
        return True

    def join(self) -> None:
        """Block until every queued task has been processed."""
        if not self.inline:
            self._queue.join()

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop the workers after they drain what is already queued."""
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        for _ in self._threads:
            self._queue.put(None)
        if wait:
            for thread in self._threads:
                thread.join()
        logger.debug("Side-effect queue stopped")

    # -- internals ---------------------------------------------------------

    def _worker(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is None:
                    return
                self._run(task)
            finally:
                self._queue.task_done()

    def _run(self, task: _Task) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                task.func(*task.args, **task.kwargs)
                return
            except Exception:
                if attempt >= self.max_attempts:
                    logger.exception(
                        "Side effect %s failed after %d attempts — dropped",
                        task.name, attempt,
                    )
                    return
                backoff = min(self.base_backoff * (2 ** (attempt - 1)), _MAX_BACKOFF)
                wait = backoff + random.uniform(0, backoff * 0.5)
                logger.warning(
                    "Side effect %s failed (attempt %d/%d); retrying in %.2fs",
                    task.name, attempt, self.max_attempts, wait, exc_info=True,
                )
                # Interruptible sleep: a shutdown stops further retries
                if self._shutdown_event.wait(timeout=wait):
                    logger.warning("Side effect %s abandoned on shutdown", task.name)
                    return
