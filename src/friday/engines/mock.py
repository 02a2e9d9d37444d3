"""Deterministic stand-in engines for demos and tests."""

import asyncio
from collections.abc import Sequence

from friday.constants import (
    DEFAULT_PARTIAL_INTERVAL,
    DEFAULT_TTS_DELAY,
    DEFAULT_WAKE_DELAY,
)
from friday.env import LOGGER
from friday.errors import AsrError
from friday.events import EventSender, PartialTranscript, TtsFinished, TtsStarted


class MockWakeDetector:
    __slots__ = ("delay",)

    def __init__(self, delay: float = DEFAULT_WAKE_DELAY) -> None:
        self.delay = delay

    async def wait_for_wake(self) -> None:
        await asyncio.sleep(self.delay)


class MockSpeechToText:
    """Replays scripted utterances, one per call, cycling at the end.

    Each utterance is revealed word by word as partial transcripts, the
    last one flagged final.
    """

    __slots__ = ("_utterances", "_index", "interval")

    def __init__(
        self,
        utterances: Sequence[str] = ("hello there assistant",),
        interval: float = DEFAULT_PARTIAL_INTERVAL,
    ) -> None:
        if not utterances:
            raise ValueError("MockSpeechToText needs at least one utterance")
        self._utterances = tuple(utterances)
        self._index = 0
        self.interval = interval

    async def stream_until_silence(self, sink: EventSender) -> str:
        text = self._utterances[self._index % len(self._utterances)]
        self._index += 1
        words = text.split()
        if not words:
            raise AsrError("Empty scripted utterance")
        for n in range(1, len(words) + 1):
            await asyncio.sleep(self.interval)
            await sink.send(
                PartialTranscript(" ".join(words[:n]), is_final=n == len(words))
            )
        return text


class MockTextToSpeech:
    __slots__ = ("delay",)

    def __init__(self, delay: float = DEFAULT_TTS_DELAY) -> None:
        self.delay = delay

    async def speak(self, text: str, sink: EventSender) -> None:
        await sink.send(TtsStarted())
        LOGGER.info("TTS: %s", text)
        await asyncio.sleep(self.delay)
        await sink.send(TtsFinished())
