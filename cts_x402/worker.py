"""Background settlement worker.

Request handlers enqueue a :class:`SettlementRequest` and return immediately;
a single background task drains the queue and runs the orchestrator. The
response path never waits on, or sees errors from, a distribution.
"""

from __future__ import annotations

import asyncio
import logging

from .constants import DEFAULT_DRAIN_TIMEOUT_SECONDS, DEFAULT_MAX_PENDING_SETTLEMENTS
from .distribution import DistributionOrchestrator
from .types import SettlementRequest

logger = logging.getLogger(__name__)

__all__ = ["SettlementWorker"]


class SettlementWorker:
    """Single-consumer queue in front of a :class:`DistributionOrchestrator`.

    The queue is bounded by ``max_pending``; a settlement submitted to a full
    queue is dropped and logged.
    """

    def __init__(
        self,
        orchestrator: DistributionOrchestrator,
        drain_timeout_seconds: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
        max_pending: int = DEFAULT_MAX_PENDING_SETTLEMENTS,
    ) -> None:
        if max_pending <= 0:
            raise ValueError(f"max_pending must be positive, got {max_pending}")
        self._orchestrator = orchestrator
        self._drain_timeout_seconds = drain_timeout_seconds
        self._queue: asyncio.Queue[SettlementRequest] = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task[None] | None = None
        self.processed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def max_pending(self) -> int:
        return self._queue.maxsize

    def start(self) -> None:
        """Start the background task. Must be called from a running loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="settlement-worker"
        )
        logger.info("Settlement worker started")

    def submit(self, request: SettlementRequest) -> bool:
        """Enqueue a settlement without waiting for it.

        Returns:
            False if the queue was full and the settlement was dropped.
        """
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.error(
                "Settlement queue full (%d pending); dropping payment distribution for $%s (payment %s)",
                self.pending,
                request.amount,
                request.payment_transaction or "unknown",
            )
            return False

        logger.info("Queued payment distribution for $%s (%d pending)", request.amount, self.pending)
        if self.pending >= self.max_pending // 2:
            logger.warning("Settlement queue is deep: %d of %d pending", self.pending, self.max_pending)
        return True

    async def join(self) -> None:
        """Wait until every queued settlement has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Drain pending settlements (bounded) and stop the background task."""
        if self._task is None:
            return
        if self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Settlement worker stopped with %d distributions still pending", self.pending
                )
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Settlement worker stopped")

    async def _run(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                receipt = await self._orchestrator.distribute(request)
            except Exception:
                # Keep draining; the orchestrator already logs settlement errors
                logger.exception("Unexpected error in payment distribution")
                receipt = None

            if receipt is None:
                self.failed += 1
                logger.error("Payment distribution failed for $%s", request.amount)
            else:
                self.processed += 1
                logger.info("Payment distribution completed successfully!")
            self._queue.task_done()
