"""Engine events and the bounded event bus that carries them.

The bus is a single ``asyncio.Queue`` with a fixed capacity. Producers hold
``EventSender`` handles (cloned for detached tasks such as timers); the
consumer loop ends once every handle has been dropped and the queue is
drained. Sends block when the queue is full, so nothing is ever dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field, fields
from typing import Any, Self, TextIO

from friday.constants import DEFAULT_EVENT_CAPACITY
from friday.errors import EventBusClosed
from friday.intents import Intent, intent_to_dict

_log = logging.getLogger("friday")


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WakeDetected:
    pass


@dataclass(frozen=True, slots=True)
class PartialTranscript:
    text: str
    is_final: bool = False


@dataclass(frozen=True, slots=True)
class FinalTranscript:
    text: str


@dataclass(frozen=True, slots=True)
class IntentRecognized:
    intent: Intent


@dataclass(frozen=True, slots=True)
class ExecutionStarted:
    name: str


@dataclass(frozen=True, slots=True)
class ExecutionFinished:
    name: str


@dataclass(frozen=True, slots=True)
class Notification:
    message: str


@dataclass(frozen=True, slots=True)
class TtsStarted:
    pass


@dataclass(frozen=True, slots=True)
class TtsFinished:
    pass


@dataclass(frozen=True, slots=True)
class PluginEventRelayed:
    """A plugin state change or custom event passed through to consumers."""

    plugin: str
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)


EngineEvent = (
    WakeDetected
    | PartialTranscript
    | FinalTranscript
    | IntentRecognized
    | ExecutionStarted
    | ExecutionFinished
    | Notification
    | TtsStarted
    | TtsFinished
    | PluginEventRelayed
)


def event_to_dict(event: EngineEvent) -> dict[str, Any]:
    """Tag the payload with the variant name, e.g. ``{"Notification": {...}}``."""
    payload: dict[str, Any] = {}
    for f in fields(event):
        value = getattr(event, f.name)
        if f.name == "intent":
            value = intent_to_dict(value)
        payload[f.name] = value
    return {type(event).__name__: payload}


def event_to_json(event: EngineEvent) -> str:
    """Serialize an event as a single JSON line (no trailing newline)."""
    return json.dumps(event_to_dict(event), ensure_ascii=False, default=str)


def describe_event(event: EngineEvent) -> str:
    """Short human-readable form used by the log consumer."""
    match event:
        case WakeDetected():
            return "Wake word detected"
        case PartialTranscript(text=text, is_final=is_final):
            return f"Partial{' (final)' if is_final else ''}: {text}"
        case FinalTranscript(text=text):
            return f"Transcript: {text}"
        case IntentRecognized(intent=intent):
            return f"Intent: {intent!r}"
        case ExecutionStarted(name=name):
            return f"Executing {name}"
        case ExecutionFinished(name=name):
            return f"Finished {name}"
        case Notification(message=message):
            return f"Notification: {message}"
        case TtsStarted():
            return "Speaking..."
        case TtsFinished():
            return "Done speaking"
        case PluginEventRelayed(plugin=plugin, kind=kind, payload=payload):
            return f"[{plugin}] {kind}: {payload}"
    return repr(event)


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

_CLOSED = object()


class EventSender:
    """Producer handle for an :class:`EventBus`.

    Handles are reference counted by the bus: ``clone()`` adds one,
    ``close()`` (or leaving a ``with`` block) drops one. Dropping a handle
    twice is a no-op.
    """

    __slots__ = ("_bus", "_open")

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def send(self, event: EngineEvent) -> None:
        """Enqueue *event*, waiting for space when the bus is full."""
        if not self._open:
            raise EventBusClosed("send on a dropped event sender")
        await self._bus._queue.put(event)

    def clone(self) -> EventSender:
        if not self._open:
            raise EventBusClosed("clone of a dropped event sender")
        return self._bus.sender()

    def close(self) -> None:
        if self._open:
            self._open = False
            self._bus._release()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    """Bounded multi-producer, single-consumer event channel."""

    __slots__ = ("_queue", "_senders", "_closed", "_capacity")

    def __init__(self, capacity: int = DEFAULT_EVENT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=capacity)
        self._senders = 0
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def open_senders(self) -> int:
        return self._senders

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def sender(self) -> EventSender:
        """Create a new producer handle."""
        if self._closed:
            raise EventBusClosed("event bus is closed")
        self._senders += 1
        return EventSender(self)

    def _release(self) -> None:
        self._senders -= 1
        if self._senders > 0:
            return
        self._closed = True
        # Every remaining handle is gone, so no put is pending. A full queue
        # gets no marker; receive() ends on the drained, closed bus instead.
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    async def receive(self) -> EngineEvent | None:
        """Next event, or None once the bus is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later receive() call.
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[EngineEvent]:
        while True:
            event = await self.receive()
            if event is None:
                return
            yield event


# ---------------------------------------------------------------------------
# Consumers
# ---------------------------------------------------------------------------


type EventHandler = Callable[[EngineEvent], Awaitable[None] | None]


async def consume_events(bus: EventBus, handler: EventHandler) -> int:
    """Drain *bus* into *handler* until every sender is dropped.

    Returns the number of events handled.
    """
    count = 0
    async for event in bus:
        result = handler(event)
        if asyncio.iscoroutine(result):
            await result
        count += 1
    return count


def log_event(event: EngineEvent) -> None:
    _log.info("%s", describe_event(event))


class JsonLinesWriter:
    """Write one JSON object per event to a text stream for a UI process."""

    __slots__ = ("_stream",)

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def __call__(self, event: EngineEvent) -> None:
        self._stream.write(event_to_json(event) + "\n")
        self._stream.flush()
