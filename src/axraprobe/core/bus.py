"""
Append-only activity log and per-probe result channel.

Both components record synchronously so ordering always matches completion
order, then fan out to subscribers. Handlers may be sync or async; async
handlers are scheduled on the running loop and tracked until `drain()`.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .contracts import LogEntry, LogSeverity, ResultEnvelope

logger = logging.getLogger(__name__)


LogHandler = Callable[[LogEntry], Any]
ResultHandler = Callable[[str, ResultEnvelope], Any]

_SEVERITY_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "error": logging.WARNING,
}


@dataclass(frozen=True)
class Subscription:
    """Handle for a channel subscription."""

    topic: str
    handler: Callable[..., Any]


class _Fanout:
    """Shared subscriber bookkeeping for the log bus and result channel."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._handler_tasks: set[asyncio.Task[None]] = set()

    def subscribe(self, topic: str, handler: Callable[..., Any]) -> Subscription:
        """Register a handler for a topic."""
        self._subscribers[topic].append(handler)
        logger.debug("Subscribed handler %s to topic %s", handler, topic)
        return Subscription(topic=topic, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a previously registered handler."""
        handlers = self._subscribers.get(subscription.topic, [])
        if subscription.handler in handlers:
            handlers.remove(subscription.handler)

    async def drain(self) -> None:
        """Wait for any in-flight async handlers to complete."""
        if self._handler_tasks:
            pending = list(self._handler_tasks)
            self._handler_tasks.clear()
            await asyncio.gather(*pending, return_exceptions=True)

    def _notify(self, topic: str, *args: Any) -> None:
        for handler in list(self._subscribers.get(topic, [])):
            try:
                result = handler(*args)
            except Exception:
                logger.exception("Subscriber handler failed on topic %s", topic)
                continue
            if inspect.isawaitable(result):
                self._track(topic, result)

    def _track(self, topic: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: the coroutine can never be awaited.
            with contextlib.suppress(AttributeError):
                awaitable.close()
            logger.warning("Dropped async handler on topic %s outside an event loop.", topic)
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._handler_tasks.add(task)

        def _on_done(t: asyncio.Task[None], _topic: str = topic) -> None:
            self._handler_tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Subscriber handler failed on topic %s", _topic, exc_info=exc)

        task.add_done_callback(_on_done)


class LogBus(_Fanout):
    """
    Time-ordered, append-only record of harness activity.

    Entries are never mutated or removed individually; `clear()` wipes the
    whole sequence at once. Each entry is mirrored to the Python logger.
    """

    TOPIC = "log.entry"
    CLEARED_TOPIC = "log.cleared"

    def __init__(self, *, clock: Callable[[], str] | None = None) -> None:
        super().__init__()
        self._entries: list[LogEntry] = []
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def emit(self, message: str, severity: LogSeverity = "info") -> LogEntry:
        """Append one entry and notify subscribers."""
        if self._clock is not None:
            entry = LogEntry(timestamp=self._clock(), message=message, severity=severity)
        else:
            entry = LogEntry(message=message, severity=severity)
        self._entries.append(entry)
        logger.log(_SEVERITY_LEVELS[severity], "[%s] %s", severity, message)
        self._notify(self.TOPIC, entry)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.emit(message, "info")

    def success(self, message: str) -> LogEntry:
        return self.emit(message, "success")

    def error(self, message: str) -> LogEntry:
        return self.emit(message, "error")

    def record(self, envelope: ResultEnvelope) -> LogEntry:
        """Log a resolved envelope with the severity matching its outcome."""
        return self.emit(envelope.message, "success" if envelope.success else "error")

    def clear(self) -> None:
        """Remove every entry without leaving a residual record."""
        dropped = len(self._entries)
        self._entries = []
        logger.debug("Log bus cleared (%d entries dropped).", dropped)
        self._notify(self.CLEARED_TOPIC)

    def on_entry(self, handler: LogHandler) -> Subscription:
        return self.subscribe(self.TOPIC, handler)


class ResultChannel(_Fanout):
    """
    Latest envelope per named slot plus the full delivery history.

    Slots follow last-resolved-wins semantics: concurrent attempts for the
    same probe overwrite each other in completion order.
    """

    TOPIC = "result.published"

    def __init__(self) -> None:
        super().__init__()
        self._latest: dict[str, ResultEnvelope | None] = {}
        self._history: list[tuple[str, ResultEnvelope]] = []

    def publish(self, slot: str, envelope: ResultEnvelope) -> ResultEnvelope:
        self._latest[slot] = envelope
        self._history.append((slot, envelope))
        logger.debug("Result published on slot %s (success=%s)", slot, envelope.success)
        self._notify(self.TOPIC, slot, envelope)
        return envelope

    def reset_slot(self, slot: str) -> None:
        """Mark a slot as pending while a new attempt is in flight."""
        self._latest[slot] = None

    def latest(self, slot: str) -> ResultEnvelope | None:
        return self._latest.get(slot)

    def snapshot(self) -> dict[str, ResultEnvelope | None]:
        return dict(self._latest)

    def history(self, slot: str | None = None) -> list[ResultEnvelope]:
        return [env for name, env in self._history if slot is None or name == slot]

    def on_result(self, handler: ResultHandler) -> Subscription:
        return self.subscribe(self.TOPIC, handler)


__all__ = ["LogBus", "ResultChannel", "Subscription"]
