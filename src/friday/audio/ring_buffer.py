"""Fixed-size circular buffer for float32 speech samples.

Writes go into a pre-allocated numpy array. Once the buffer is full the
oldest samples are overwritten, so a long utterance keeps only its most
recent ``max_ms`` of audio.
"""

from typing import Self

import numpy as np


class RingBuffer:
    """Circular sample buffer with O(1) append and bounded memory."""

    __slots__ = (
        "_buffer",
        "_write_pos",
        "_filled",
        "_total_written",
        "_sample_rate",
    )

    def __init__(self, buffer: np.ndarray, sample_rate: int) -> None:
        if len(buffer) == 0:
            raise ValueError("ring buffer capacity must be positive")
        self._buffer = buffer
        self._write_pos = 0
        self._filled = 0
        self._total_written = 0
        self._sample_rate = sample_rate

    @classmethod
    def create(cls, max_ms: int, sample_rate: int) -> Self:
        """Create a ring buffer holding *max_ms* of mono audio."""
        size = max(1, int(max_ms * sample_rate / 1000))
        return cls(np.zeros(size, dtype=np.float32), sample_rate)

    @property
    def filled(self) -> int:
        return self._filled

    @property
    def filled_ms(self) -> float:
        return self._filled * 1000.0 / self._sample_rate

    @property
    def total_samples_written(self) -> int:
        return self._total_written

    @property
    def evicted(self) -> int:
        """Samples overwritten since the last reset."""
        return self._total_written - self._filled

    @property
    def max_samples(self) -> int:
        return len(self._buffer)

    def append(self, frame: np.ndarray) -> None:
        if frame.size == 0:
            return
        capacity = len(self._buffer)
        if frame.size >= capacity:
            # Only the tail survives; write it as a fresh full buffer.
            self._total_written += frame.size
            self._buffer[:] = frame[-capacity:]
            self._write_pos = 0
            self._filled = capacity
            return
        n = frame.size
        end = self._write_pos + n
        if end <= capacity:
            self._buffer[self._write_pos : end] = frame
        else:
            first = capacity - self._write_pos
            self._buffer[self._write_pos :] = frame[:first]
            self._buffer[: end % capacity] = frame[first:]
        self._write_pos = end % capacity
        self._filled = min(capacity, self._filled + n)
        self._total_written += n

    def snapshot(self) -> np.ndarray:
        """Return everything buffered, oldest first, as a contiguous copy."""
        if self._filled == 0:
            return np.array([], dtype=np.float32)
        capacity = len(self._buffer)
        start = (self._write_pos - self._filled) % capacity
        end = start + self._filled
        if end <= capacity:
            return self._buffer[start:end].copy()
        return np.concatenate(
            [self._buffer[start:], self._buffer[: end % capacity]]
        )

    def reset(self) -> None:
        self._write_pos = 0
        self._filled = 0
        self._total_written = 0
