"""Strictly sequential queue for optimistic mutations.

Every mutating operation of a collection view goes through one of these
queues. Actions run one at a time in submission order on a worker task that
lives only as long as there is work; a failing action has its compensation
applied and is dropped. Once the queue runs empty the drain callback runs,
still inside the same cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationTask:
    """An action paired with the closure that undoes its optimistic effect.

    Both callables are captured when the task is built and never change; the
    queue does not look at anything else except for logging.
    """

    action: Callable[[], Awaitable[None]]
    compensate: Callable[[], None]
    name: str = "mutation"
    correlation_id: str = ""
    failure_notice: str | None = None


class MutationQueue:
    """Runs :class:`MutationTask` actions one after another.

    Usage::

        queue = MutationQueue(on_drain=hooks.run)

        # From UI code -- returns immediately, no await needed:
        queue.enqueue(MutationTask(action=save, compensate=undo, name="create_page"))

        # Wait for the current cycle (actions + drain callback) to finish:
        await queue.join()
    """

    def __init__(
        self,
        *,
        on_drain: Callable[[], Awaitable[None]] | None = None,
        on_failure: Callable[[MutationTask, Exception], Awaitable[None]] | None = None,
        name: str = "mutation-queue",
    ) -> None:
        """Initialize the queue.

        Args:
            on_drain: Awaited every time the queue runs empty. Failures are
                      logged and never block later enqueues.
            on_failure: Awaited after a failed action has been compensated,
                        e.g. to publish a user-facing notice.
            name: Label used for the worker task and in logs.
        """
        self._tasks: deque[MutationTask] = deque()
        self._on_drain = on_drain
        self._on_failure = on_failure
        self._name = name
        self._worker_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True from the first queued action until the drain callback returns."""
        return self._worker_task is not None

    @property
    def pending(self) -> int:
        """Number of tasks not yet settled, including the one in flight."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, task: MutationTask) -> None:
        """Append a task and start a drain cycle if none is running.

        Safe to call from inside a running action or drain callback: the task
        simply extends the current cycle.

        Raises:
            RuntimeError: If called without a running event loop. Nothing is
                queued in that case.
        """
        loop = asyncio.get_running_loop()
        self._tasks.append(task)
        logger.debug(
            "mutation_enqueued",
            extra={
                "queue": self._name,
                "operation": task.name,
                "correlation_id": task.correlation_id,
                "pending": len(self._tasks),
            },
        )
        if self._worker_task is None:
            self._worker_task = loop.create_task(self._worker(), name=f"{self._name}-worker")

    async def join(self) -> None:
        """Wait until the queue is idle (all actions and drain callbacks done)."""
        while self._worker_task is not None:
            await asyncio.shield(self._worker_task)

    # ------------------------------------------------------------------
    # Internal worker
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        """Drain the FIFO, run the drain callback, repeat while work keeps arriving."""
        logger.debug("mutation_queue_cycle_started", extra={"queue": self._name})
        try:
            while self._tasks:
                while self._tasks:
                    task = self._tasks[0]
                    try:
                        await self._process_task(task)
                    finally:
                        self._tasks.popleft()
                await self._run_drain_callback()
        finally:
            self._worker_task = None
        logger.debug("mutation_queue_cycle_finished", extra={"queue": self._name})

    async def _process_task(self, task: MutationTask) -> None:
        """Run one action; on failure compensate, log and drop it."""
        try:
            await self._execute(task)
        except Exception as exc:
            self._compensate(task)
            logger.exception(
                "mutation_failed",
                extra={
                    "queue": self._name,
                    "operation": task.name,
                    "correlation_id": task.correlation_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            if self._on_failure is not None:
                try:
                    await self._on_failure(task, exc)
                except Exception:
                    logger.exception(
                        "mutation_failure_hook_failed",
                        extra={"queue": self._name, "operation": task.name},
                    )
            return

        logger.debug(
            "mutation_succeeded",
            extra={
                "queue": self._name,
                "operation": task.name,
                "correlation_id": task.correlation_id,
            },
        )

    async def _execute(self, task: MutationTask) -> None:
        """Run the action.

        Extracted as a separate method so tests can override or mock it.
        """
        await task.action()

    def _compensate(self, task: MutationTask) -> None:
        try:
            task.compensate()
        except Exception:
            logger.exception(
                "mutation_compensation_failed",
                extra={
                    "queue": self._name,
                    "operation": task.name,
                    "correlation_id": task.correlation_id,
                },
            )

    async def _run_drain_callback(self) -> None:
        if self._on_drain is None:
            return
        try:
            await self._on_drain()
        except Exception:
            logger.exception("mutation_queue_drain_failed", extra={"queue": self._name})
