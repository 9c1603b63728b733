"""
Asyncio-based event bus used for side-channel notifications.

The badge configuration itself never travels over the bus: the registry
pushes updates straight into the broadcast hub so ordering towards clients is
preserved. The bus carries the observability events (config accepted or
rejected, push connection counts, render timings) that status modules consume.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from asyncio import QueueEmpty
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .contracts import BasePayload, BusStatus, EventHandler

logger = logging.getLogger(__name__)


Handler = Callable[[str, BasePayload], Awaitable[None]]


@dataclass(frozen=True)
class Subscription:
    """Handle for a topic subscription."""

    topic: str
    handler: EventHandler


class EventBus:
    """Topic based publish/subscribe bus with a bounded queue."""

    def __init__(
        self,
        *,
        queue_size: int = 256,
        telemetry_topic: str = "status.bus",
        telemetry_interval: float = 5.0,
        telemetry_enabled: bool = True,
    ) -> None:
        self._queue: asyncio.Queue[tuple[str, BasePayload]] = asyncio.Queue(maxsize=queue_size)
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._telemetry_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._stopping = asyncio.Event()
        self._telemetry_topic = telemetry_topic
        self._telemetry_interval = telemetry_interval
        self._telemetry_enabled = telemetry_enabled
        self._published_total = 0
        self._processed_total = 0
        self._dropped_total = 0

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        """Register an async handler for a topic."""
        self._subscribers[topic].append(handler)
        logger.debug("Subscribed handler %s to topic %s", handler, topic)
        return Subscription(topic=topic, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a previously registered handler."""
        handlers = self._subscribers.get(subscription.topic, [])
        if subscription.handler in handlers:
            handlers.remove(subscription.handler)

    async def publish(self, topic: str, payload: BasePayload) -> None:
        """Publish a payload for a specific topic."""
        self._published_total += 1
        if self._queue.full():
            logger.warning("Event bus queue is full; publisher will wait for free space.")
        await self._queue.put((topic, payload))

    async def start(self) -> None:
        """Start the dispatcher loop."""
        if self._dispatcher_task is None:
            self._stopping.clear()
            self._dispatcher_task = asyncio.create_task(self._dispatcher(), name="wandelbadge-bus")
            logger.info("Event bus dispatcher started.")
        if self._telemetry_enabled and self._telemetry_task is None:
            self._telemetry_task = asyncio.create_task(
                self._telemetry_loop(), name="wandelbadge-bus-telemetry"
            )

    async def stop(self) -> None:
        """Stop the dispatcher loop and wait for in-flight handlers."""
        if self._dispatcher_task is None:
            return
        self._stopping.set()
        await self._queue.put(("", _StopPayload()))
        await self._dispatcher_task
        self._dispatcher_task = None
        if self._handler_tasks:
            pending = list(self._handler_tasks)
            self._handler_tasks.clear()
            await asyncio.gather(*pending, return_exceptions=True)
        if self._telemetry_task:
            self._telemetry_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._telemetry_task
            self._telemetry_task = None
        logger.info("Event bus dispatcher stopped.")

    async def _dispatcher(self) -> None:
        while not self._stopping.is_set():
            topic, payload = await self._queue.get()
            try:
                if isinstance(payload, _StopPayload):
                    break
                handlers = list(self._subscribers.get(topic, []))
                if not handlers:
                    continue
                # Handlers run as tasks so a handler publishing back cannot deadlock the queue.
                for handler in handlers:
                    task = asyncio.create_task(self._call_handler(handler, topic, payload))
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._make_done_callback(topic))
                self._processed_total += 1
            finally:
                self._queue.task_done()
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except QueueEmpty:
                break
            else:
                self._dropped_total += 1
                self._queue.task_done()

    def _make_done_callback(self, topic: str) -> Callable[[asyncio.Task[None]], None]:
        def _on_done(task: asyncio.Task[None]) -> None:
            self._handler_tasks.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.error("Subscriber handler failed on topic %s", topic, exc_info=exc)

        return _on_done

    async def _telemetry_loop(self) -> None:
        try:
            while not self._stopping.is_set():
                await asyncio.sleep(self._telemetry_interval)
                await self.publish(self._telemetry_topic, self.status())
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            return

    async def _call_handler(self, handler: Handler, topic: str, payload: BasePayload) -> None:
        result = handler(topic, payload)
        if inspect.isawaitable(result):
            await result

    def status(self) -> BusStatus:
        """Return a telemetry snapshot of the bus counters."""
        return BusStatus(
            queue_depth=self._queue.qsize(),
            queue_capacity=self._queue.maxsize,
            subscriber_count=sum(len(handlers) for handlers in self._subscribers.values()),
            published_total=self._published_total,
            processed_total=self._processed_total,
            dropped_total=self._dropped_total,
        )


class _StopPayload(BasePayload):
    """Sentinel payload to signal dispatcher shutdown."""


__all__ = ["EventBus", "Handler", "Subscription"]
