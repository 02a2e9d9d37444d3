"""Microphone capture via sounddevice.

The PortAudio callback runs on its own thread; it only copies the block and
hands it to the event loop with ``call_soon_threadsafe``. Blocks are dropped
when the queue is full so the callback never blocks.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Protocol

import numpy as np

from friday.audio.segment import to_mono
from friday.constants import (
    DEFAULT_AUDIO_QUEUE_MAXSIZE,
    DEFAULT_CHANNELS,
    DEFAULT_SAMPLE_RATE,
)
from friday.env import LOGGER


class FrameSource(Protocol):
    """Anything that yields mono float32 sample blocks."""

    @property
    def sample_rate(self) -> int: ...

    def frames(self) -> AsyncIterator[np.ndarray]: ...


class MicrophoneFrames:
    """Live mono float32 blocks from an input device."""

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
        blocksize: int = 480,
        device: int | None = None,
        queue_maxsize: int = DEFAULT_AUDIO_QUEUE_MAXSIZE,
    ) -> None:
        self._sample_rate = sample_rate
        self.channels = channels
        self.blocksize = blocksize
        self.device = device
        self.queue_maxsize = queue_maxsize

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    async def frames(self) -> AsyncIterator[np.ndarray]:
        import sounddevice as sd

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[np.ndarray] = asyncio.Queue(maxsize=self.queue_maxsize)

        def callback(
            indata: np.ndarray, frames: int, time_info: Any, status: Any
        ) -> None:
            if status:
                LOGGER.debug("Audio input status: %s", status)
            data = indata.reshape(-1).copy()
            loop.call_soon_threadsafe(
                lambda: queue.put_nowait(data) if not queue.full() else None
            )

        stream_kwargs: dict[str, Any] = {}
        if self.device is not None:
            stream_kwargs["device"] = self.device
        stream = sd.InputStream(
            samplerate=self._sample_rate,
            blocksize=self.blocksize,
            channels=self.channels,
            dtype="float32",
            callback=callback,
            **stream_kwargs,
        )
        stream.start()
        try:
            while True:
                block = await queue.get()
                yield to_mono(block, self.channels)
        finally:
            stream.stop()
            stream.close()
