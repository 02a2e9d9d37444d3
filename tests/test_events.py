"""Tests for friday.events — bus ordering, backpressure, closing and JSON lines."""

from __future__ import annotations

import asyncio
import io
import json

import pytest

from friday.errors import EventBusClosed
from friday.events import (
    EventBus,
    ExecutionStarted,
    FinalTranscript,
    IntentRecognized,
    JsonLinesWriter,
    Notification,
    PartialTranscript,
    WakeDetected,
    consume_events,
    describe_event,
    event_to_json,
)
from friday.intents import Timer


class TestEventBus:
    def test_single_producer_order(self) -> None:
        async def scenario():
            bus = EventBus()
            with bus.sender() as sink:
                for i in range(5):
                    await sink.send(Notification(str(i)))
            return [event async for event in bus]

        events = asyncio.run(scenario())
        assert events == [Notification(str(i)) for i in range(5)]

    def test_send_blocks_when_full(self) -> None:
        async def scenario():
            bus = EventBus(capacity=2)
            sink = bus.sender()
            await sink.send(WakeDetected())
            await sink.send(WakeDetected())
            blocked = asyncio.create_task(sink.send(Notification("third")))
            await asyncio.sleep(0.01)
            was_blocked = not blocked.done()
            first = await bus.receive()
            await asyncio.wait_for(blocked, 1)
            sink.close()
            rest = [event async for event in bus]
            return was_blocked, first, rest

        was_blocked, first, rest = asyncio.run(scenario())
        assert was_blocked
        assert first == WakeDetected()
        assert rest == [WakeDetected(), Notification("third")]

    def test_closes_after_last_handle(self) -> None:
        async def scenario():
            bus = EventBus()
            sink = bus.sender()
            clone = sink.clone()
            assert bus.open_senders == 2
            sink.close()
            assert not bus.closed
            await clone.send(Notification("late"))
            clone.close()
            events = [event async for event in bus]
            return bus, events, await bus.receive()

        bus, events, after = asyncio.run(scenario())
        assert bus.closed
        assert events == [Notification("late")]
        assert after is None

    def test_close_is_idempotent(self) -> None:
        async def scenario():
            bus = EventBus()
            a = bus.sender()
            b = bus.sender()
            a.close()
            a.close()
            return bus.open_senders

        assert asyncio.run(scenario()) == 1

    def test_send_after_close_raises(self) -> None:
        async def scenario():
            bus = EventBus()
            sink = bus.sender()
            sink.close()
            await sink.send(WakeDetected())

        with pytest.raises(EventBusClosed):
            asyncio.run(scenario())

    def test_new_sender_after_close_raises(self) -> None:
        async def scenario():
            bus = EventBus()
            bus.sender().close()
            bus.sender()

        with pytest.raises(EventBusClosed):
            asyncio.run(scenario())

    def test_close_when_full_still_terminates(self) -> None:
        async def scenario():
            bus = EventBus(capacity=1)
            sink = bus.sender()
            await sink.send(WakeDetected())
            sink.close()
            return [event async for event in bus]

        assert asyncio.run(scenario()) == [WakeDetected()]

    def test_close_when_full_leaves_no_pending_put(self) -> None:
        async def scenario():
            bus = EventBus(capacity=1)
            sink = bus.sender()
            await sink.send(WakeDetected())
            sink.close()
            pending = len(asyncio.all_tasks()) - 1
            size = bus.qsize()
            first = await bus.receive()
            return pending, size, first, await bus.receive(), await bus.receive()

        pending, size, first, second, third = asyncio.run(scenario())
        assert pending == 0
        assert size == 1
        assert first == WakeDetected()
        assert second is None
        assert third is None

    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError):
            EventBus(capacity=0)


class TestConsumers:
    def test_consume_events_counts_and_awaits_handlers(self) -> None:
        seen: list[str] = []

        async def handler(event) -> None:
            seen.append(describe_event(event))

        async def scenario():
            bus = EventBus()
            consumer = asyncio.create_task(consume_events(bus, handler))
            with bus.sender() as sink:
                await sink.send(WakeDetected())
                await sink.send(FinalTranscript("hi"))
            return await consumer

        assert asyncio.run(scenario()) == 2
        assert seen == ["Wake word detected", "Transcript: hi"]

    def test_json_lines(self) -> None:
        stream = io.StringIO()
        writer = JsonLinesWriter(stream)
        writer(PartialTranscript("set a", is_final=False))
        writer(IntentRecognized(Timer(duration_seconds=300, utterance="x")))
        writer(ExecutionStarted("timer"))
        lines = stream.getvalue().splitlines()
        assert [json.loads(line) for line in lines] == [
            {"PartialTranscript": {"text": "set a", "is_final": False}},
            {"IntentRecognized": {"intent": {"Timer": {"duration_seconds": 300, "label": None}}}},
            {"ExecutionStarted": {"name": "timer"}},
        ]

    def test_unit_event_serializes_empty(self) -> None:
        assert json.loads(event_to_json(WakeDetected())) == {"WakeDetected": {}}

    def test_non_ascii_kept(self) -> None:
        assert "72°F" in event_to_json(Notification("72°F"))
