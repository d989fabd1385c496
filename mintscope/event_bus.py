"""In-process topic bus used to publish detection and enrichment notifications."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Generator, List, Set

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """Fan out payloads to topic subscribers.

    Plain callables run inline. Coroutine handlers are scheduled on the
    running loop; without a running loop they are executed with
    :func:`asyncio.run`. Handler failures are logged and never reach the
    publisher.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic`` events.

        Returns a callable that will remove the handler when invoked.
        """
        self._subscribers[topic].append(handler)

        def _unsub() -> None:
            self.unsubscribe(topic, handler)

        return _unsub

    @contextmanager
    def subscription(self, topic: str, handler: Handler) -> Generator[Handler, None, None]:
        """Context manager that registers ``handler`` for ``topic`` and automatically unsubscribes."""
        unsub = self.subscribe(topic, handler)
        try:
            yield handler
        finally:
            unsub()

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._subscribers.get(topic)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            self._subscribers.pop(topic, None)

    def publish(self, topic: str, payload: Any) -> None:
        """Publish ``payload`` to all subscribers of ``topic``."""
        handlers = list(self._subscribers.get(topic, ()))
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for handler in handlers:
            if inspect.iscoroutinefunction(handler):
                if loop is not None:
                    task = loop.create_task(self._guard(topic, handler, payload))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                else:
                    asyncio.run(self._guard(topic, handler, payload))
                continue
            try:
                handler(payload)
            except Exception:
                logger.exception("handler for %s failed", topic)

    async def _guard(self, topic: str, handler: Handler, payload: Any) -> None:
        try:
            await handler(payload)  # type: ignore[misc]
        except Exception:
            logger.exception("async handler for %s failed", topic)

    async def drain(self) -> None:
        """Wait for scheduled coroutine handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def reset(self) -> None:
        """Drop every subscription; used by tests."""
        self._subscribers.clear()


__all__ = ["EventBus", "Handler"]
