"""Voice-activity segmentation using energy and zero-crossing heuristics.

Frames are classified as active when both their RMS energy and their
zero-crossing rate exceed the configured thresholds. An utterance starts on
the first active frame and ends once the silence since the last active frame
exceeds ``max_silence_duration_ms``. Utterances shorter than
``min_speech_duration_ms`` are dropped as noise.

Time is counted in frames rather than read from a clock, so a given sample
stream always segments the same way.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from friday.audio.ring_buffer import RingBuffer
from friday.audio.segment import AudioSegment
from friday.constants import (
    DEFAULT_SAMPLE_RATE,
    DEFAULT_VAD_BUFFER_MS,
    DEFAULT_VAD_ENERGY_THRESHOLD,
    DEFAULT_VAD_FRAME_MS,
    DEFAULT_VAD_MAX_SILENCE_MS,
    DEFAULT_VAD_MIN_SPEECH_MS,
    DEFAULT_VAD_ZCR_THRESHOLD,
)

_log = logging.getLogger("friday")


@dataclass(frozen=True, slots=True)
class SegmenterConfig:
    """Immutable segmenter configuration."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    frame_ms: int = DEFAULT_VAD_FRAME_MS
    energy_threshold: float = DEFAULT_VAD_ENERGY_THRESHOLD
    zcr_threshold: float = DEFAULT_VAD_ZCR_THRESHOLD
    min_speech_duration_ms: int = DEFAULT_VAD_MIN_SPEECH_MS
    max_silence_duration_ms: int = DEFAULT_VAD_MAX_SILENCE_MS
    buffer_duration_ms: int = DEFAULT_VAD_BUFFER_MS

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.frame_ms <= 0:
            raise ValueError("frame_ms must be positive")
        if self.energy_threshold < 0 or self.zcr_threshold < 0:
            raise ValueError("thresholds must be non-negative")
        if self.buffer_duration_ms < self.frame_ms:
            raise ValueError("buffer_duration_ms must hold at least one frame")

    @property
    def frame_samples(self) -> int:
        return int(self.sample_rate * self.frame_ms / 1000)


def rms_energy(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    samples = frame.astype(np.float64)
    return float(np.sqrt(np.mean(samples * samples)))


def zero_crossing_rate(frame: np.ndarray) -> float:
    """Fraction of adjacent sample pairs whose sign differs."""
    if frame.size < 2:
        return 0.0
    positive = frame >= 0
    crossings = np.count_nonzero(positive[1:] != positive[:-1])
    return crossings / frame.size


class VoiceActivitySegmenter:
    """Idle/speaking state machine that emits speech segments."""

    __slots__ = (
        "_config",
        "_frame_samples",
        "_residual",
        "_state",
        "_buffer",
        "_frame_index",
        "_start_frame",
        "_last_active_frame",
        "_captured_at",
        "_clock",
    )

    def __init__(
        self,
        config: SegmenterConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or SegmenterConfig()
        self._frame_samples = self._config.frame_samples
        self._buffer = RingBuffer.create(
            self._config.buffer_duration_ms, self._config.sample_rate
        )
        self._clock = clock
        self._residual = np.array([], dtype=np.float32)
        self._state = "idle"
        self._frame_index = 0
        self._start_frame = 0
        self._last_active_frame = 0
        self._captured_at = 0.0

    @property
    def config(self) -> SegmenterConfig:
        return self._config

    @property
    def state(self) -> str:
        """Current state: 'idle' or 'speaking'."""
        return self._state

    @property
    def is_speaking(self) -> bool:
        return self._state == "speaking"

    @property
    def frame_samples(self) -> int:
        return self._frame_samples

    def is_active(self, frame: np.ndarray) -> bool:
        """Whether a single frame looks like speech."""
        if frame.size < self._frame_samples:
            return False
        return (
            rms_energy(frame) > self._config.energy_threshold
            and zero_crossing_rate(frame) > self._config.zcr_threshold
        )

    def process(self, chunk: np.ndarray) -> list[AudioSegment]:
        """Feed mono samples of any length; return segments completed by them."""
        if chunk.size == 0:
            return []
        chunk = np.asarray(chunk, dtype=np.float32).reshape(-1)
        self._residual = (
            chunk.copy()
            if self._residual.size == 0
            else np.concatenate([self._residual, chunk])
        )

        segments: list[AudioSegment] = []
        while self._residual.size >= self._frame_samples:
            frame = self._residual[: self._frame_samples]
            self._residual = self._residual[self._frame_samples :]
            segment = self._process_frame(frame)
            if segment is not None:
                segments.append(segment)
        return segments

    def flush(self) -> AudioSegment | None:
        """End any in-progress utterance, e.g. when the stream stops."""
        self._residual = np.array([], dtype=np.float32)
        if self._state != "speaking":
            return None
        return self._finish()

    def reset(self) -> None:
        self._residual = np.array([], dtype=np.float32)
        self._buffer.reset()
        self._state = "idle"
        self._frame_index = 0
        self._start_frame = 0
        self._last_active_frame = 0

    def _process_frame(self, frame: np.ndarray) -> AudioSegment | None:
        index = self._frame_index
        self._frame_index += 1
        active = self.is_active(frame)

        if self._state == "idle":
            if active:
                self._state = "speaking"
                self._start_frame = index
                self._last_active_frame = index
                self._captured_at = self._clock()
                self._buffer.reset()
                self._buffer.append(frame)
                _log.debug("Speech started at frame %d", index)
            return None

        self._buffer.append(frame)
        if active:
            self._last_active_frame = index
            return None

        silence_ms = (index - self._last_active_frame) * self._config.frame_ms
        if silence_ms > self._config.max_silence_duration_ms:
            return self._finish()
        return None

    def _finish(self) -> AudioSegment | None:
        speech_ms = (
            self._last_active_frame - self._start_frame + 1
        ) * self._config.frame_ms
        samples = self._buffer.snapshot()
        self._buffer.reset()
        self._state = "idle"

        if speech_ms < self._config.min_speech_duration_ms:
            _log.debug("Discarding %dms of speech as noise", speech_ms)
            return None

        _log.debug("Speech segment complete (%dms)", speech_ms)
        return AudioSegment(
            samples=samples,
            sample_rate=self._config.sample_rate,
            channels=1,
            captured_at=self._captured_at,
        )
