"""Shared test fixtures: scripted engines and an event recorder."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import numpy as np
import pytest

from friday.errors import AsrError
from friday.events import EngineEvent, EventBus, EventSender, PartialTranscript
from friday.intents import Intent

SAMPLE_RATE = 16_000
FRAME = 480  # 30 ms at 16 kHz


def speech_frames(n: int, amplitude: float = 0.5) -> np.ndarray:
    """Alternating-sign samples: loud and high zero-crossing rate."""
    block = np.empty(n * FRAME, dtype=np.float32)
    block[0::2] = amplitude
    block[1::2] = -amplitude
    return block


def silence_frames(n: int) -> np.ndarray:
    return np.zeros(n * FRAME, dtype=np.float32)


class FakeWake:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def wait_for_wake(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


class FakeStt:
    """Returns scripted transcripts in order; an Exception entry is raised."""

    def __init__(self, transcripts: Sequence[str | Exception]) -> None:
        self._transcripts = list(transcripts)

    async def stream_until_silence(self, sink: EventSender) -> str:
        item = self._transcripts.pop(0)
        if isinstance(item, Exception):
            raise item
        if not item:
            raise AsrError("nothing heard")
        await sink.send(PartialTranscript(item, is_final=True))
        return item


class FakeTts:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.spoken: list[str] = []

    async def speak(self, text: str, sink: EventSender) -> None:
        if self.error is not None:
            raise self.error
        self.spoken.append(text)


class EchoExecutor:
    """Executor that records intents and replies with their kind."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.intents: list[Intent] = []

    async def execute(self, intent: Intent, sink: EventSender) -> str:
        self.intents.append(intent)
        if self.error is not None:
            raise self.error
        return f"handled {intent.kind}"


async def instant_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


async def drain(bus: EventBus) -> list[EngineEvent]:
    return [event async for event in bus]


@pytest.fixture
def fake_wake() -> FakeWake:
    return FakeWake()


@pytest.fixture
def fake_tts() -> FakeTts:
    return FakeTts()


@pytest.fixture
def echo_executor() -> EchoExecutor:
    return EchoExecutor()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch) -> None:
    """Keep tests from reading the developer's ~/.config/friday."""
    monkeypatch.setenv("FRIDAY_CONFIG_DIR", str(tmp_path / "config"))
