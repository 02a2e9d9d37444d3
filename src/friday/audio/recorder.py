"""Record a single utterance by running frames through the segmenter."""

import contextlib

from friday.audio.capture import FrameSource
from friday.audio.segment import AudioSegment
from friday.audio.vad import VoiceActivitySegmenter
from friday.constants import DEFAULT_RECORD_MAX_MS
from friday.env import LOGGER
from friday.events import EventSender, PartialTranscript


class SegmentRecorder:
    """Pull frames until the segmenter closes one speech segment.

    Sends a ``PartialTranscript("...")`` as soon as speech starts. Recording
    stops after ``max_duration_ms`` of audio regardless, keeping whatever
    speech was buffered.
    """

    __slots__ = ("_source", "_segmenter", "_max_duration_ms")

    def __init__(
        self,
        source: FrameSource,
        segmenter: VoiceActivitySegmenter,
        max_duration_ms: int = DEFAULT_RECORD_MAX_MS,
    ) -> None:
        self._source = source
        self._segmenter = segmenter
        self._max_duration_ms = max_duration_ms

    async def record(self, sink: EventSender) -> AudioSegment | None:
        self._segmenter.reset()
        elapsed_ms = 0.0
        announced = False
        rate = self._source.sample_rate

        async with contextlib.aclosing(self._source.frames()) as frames:
            async for block in frames:
                segments = self._segmenter.process(block)
                if not announced and (segments or self._segmenter.is_speaking):
                    await sink.send(PartialTranscript("..."))
                    announced = True
                if segments:
                    return segments[0]
                elapsed_ms += len(block) * 1000.0 / rate
                if elapsed_ms >= self._max_duration_ms:
                    LOGGER.debug("Recording hit %dms limit", self._max_duration_ms)
                    break
        return self._segmenter.flush()
