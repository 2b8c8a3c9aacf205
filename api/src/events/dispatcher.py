"""Fire-and-forget domain event dispatcher with background delivery.

Key features:
- Non-blocking emission via asyncio.Queue.put_nowait()
- Graceful degradation (drop + log on queue full)
- In-process subscribers (notification store)
- Redis Pub/Sub fan-out to external collaborators

Delivery failures are logged and never reach the code that emitted the
event.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from src.core.redis import event_channel
from src.events.models import DomainEvent, EventName


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)

EventHandler = Callable[[DomainEvent], Awaitable[None]]


class EventDispatcher:
    """Non-blocking event dispatcher with a background worker."""

    def __init__(
        self,
        redis: Redis | None = None,
        queue_size: int = 1000,
        channel_prefix: str = "learnhub:events",
    ) -> None:
        """Initialize dispatcher.

        Args:
            redis: Optional Redis client for publishing to collaborators
            queue_size: Maximum queue size (events dropped when full)
            channel_prefix: Prefix of the Redis channels events go to
        """
        self.redis = redis
        self.queue_size = queue_size
        self.channel_prefix = channel_prefix

        self._queue: asyncio.Queue[DomainEvent] = asyncio.Queue(maxsize=queue_size)
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._running = False
        self._worker_task: asyncio.Task | None = None
        self._start_time: float = 0.0
        self._last_delivered_at: datetime | None = None

        # Counters for monitoring
        self._events_emitted = 0
        self._events_dropped = 0
        self._events_delivered = 0
        self._delivery_failures = 0

    def subscribe(self, name: EventName | str, handler: EventHandler) -> None:
        """Register an in-process handler for an event name."""
        event_name = name.value if isinstance(name, EventName) else name
        self._subscribers[event_name].append(handler)

    # ==========================================================================
    # Fire-and-forget emission
    # ==========================================================================

    def emit(self, event: DomainEvent) -> bool:
        """Queue an event for delivery.

        Returns:
            True if queued, False if dropped
        """
        try:
            self._queue.put_nowait(event)
            self._events_emitted += 1
            return True
        except asyncio.QueueFull:
            self._events_dropped += 1
            logger.warning(
                "events_queue_full",
                event_name=event.name,
                event_id=str(event.event_id),
                queue_size=self.queue_size,
                dropped_total=self._events_dropped,
            )
            return False

    def publish(self, name: EventName, **payload: Any) -> bool:
        """Build and queue an event in one call."""
        return self.emit(DomainEvent.create(name, **payload))

    # ==========================================================================
    # Background Worker
    # ==========================================================================

    async def start(self) -> None:
        """Start the background worker."""
        if self._running:
            logger.warning("event_dispatcher_already_running")
            return

        self._running = True
        self._start_time = time.monotonic()
        self._worker_task = asyncio.create_task(
            self._worker_loop(),
            name="event_worker",
        )
        logger.info("event_dispatcher_started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Stop the worker, delivering whatever is still queued."""
        if not self._running:
            return

        self._running = False

        if self._worker_task:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=5.0)
            except TimeoutError:
                logger.warning("event_worker_stop_timeout", remaining=self._queue.qsize())
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        await self.drain()

        logger.info(
            "event_dispatcher_stopped",
            events_emitted=self._events_emitted,
            events_delivered=self._events_delivered,
            events_dropped=self._events_dropped,
            delivery_failures=self._delivery_failures,
        )

    async def _worker_loop(self) -> None:
        """Deliver events one at a time as they arrive."""
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def drain(self) -> int:
        """Deliver every queued event inline.

        Returns:
            Number of events delivered
        """
        delivered = 0
        while not self._queue.empty():
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                await self._deliver(event)
                delivered += 1
            finally:
                self._queue.task_done()

        if delivered:
            logger.info("events_drained", count=delivered)
        return delivered

    async def _deliver(self, event: DomainEvent) -> None:
        """Fan an event out to subscribers and Redis.

        Each target is isolated: one failing target does not stop the others.
        """
        for handler in self._subscribers.get(event.name, []):
            try:
                await handler(event)
            except Exception:
                self._delivery_failures += 1
                logger.exception(
                    "event_handler_failed",
                    event_name=event.name,
                    event_id=str(event.event_id),
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )

        if self.redis is not None:
            try:
                await self.redis.publish(
                    event_channel(self.channel_prefix, event.name),
                    event.to_json(),
                )
            except Exception:
                self._delivery_failures += 1
                logger.exception(
                    "event_publish_failed",
                    event_name=event.name,
                    event_id=str(event.event_id),
                )

        self._events_delivered += 1
        self._last_delivered_at = datetime.now(UTC)
        logger.debug("event_delivered", event_name=event.name, event_id=str(event.event_id))

    # ==========================================================================
    # Status/Monitoring
    # ==========================================================================

    @property
    def is_running(self) -> bool:
        """Check if worker is running."""
        return self._running

    @property
    def queue_length(self) -> int:
        """Get current queue length."""
        return self._queue.qsize()

    @property
    def uptime_seconds(self) -> float:
        """Get worker uptime in seconds."""
        if not self._running or self._start_time == 0:
            return 0.0
        return time.monotonic() - self._start_time

    def stats(self) -> dict:
        """Get dispatcher statistics for monitoring."""
        return {
            "running": self._running,
            "queue_size": self.queue_size,
            "queue_length": self._queue.qsize(),
            "events_emitted": self._events_emitted,
            "events_delivered": self._events_delivered,
            "events_dropped": self._events_dropped,
            "delivery_failures": self._delivery_failures,
            "last_delivered_at": self._last_delivered_at,
            "uptime_seconds": self.uptime_seconds,
        }
