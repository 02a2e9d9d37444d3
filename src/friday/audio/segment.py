"""Audio segment container and sample-format helpers."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import numpy as np


def to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
    """Average interleaved channels frame by frame."""
    if channels <= 1:
        return np.asarray(samples, dtype=np.float32)
    usable = len(samples) - len(samples) % channels
    frames = np.asarray(samples[:usable], dtype=np.float32).reshape(-1, channels)
    return frames.mean(axis=1).astype(np.float32)


def resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Nearest-index resampling; no interpolation or filtering."""
    if src_rate == dst_rate or len(samples) == 0:
        return np.asarray(samples, dtype=np.float32)
    ratio = src_rate / dst_rate
    target_len = int(len(samples) / ratio)
    idx = (np.arange(target_len) * ratio).astype(np.int64)
    idx = np.minimum(idx, len(samples) - 1)
    return np.asarray(samples, dtype=np.float32)[idx]


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Clip float samples to [-1, 1] and encode as little-endian int16."""
    clipped = np.clip(samples, -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


@dataclass(frozen=True, slots=True)
class AudioSegment:
    """A span of captured audio handed from the segmenter to transcription.

    Attributes:
        samples: Interleaved float32 samples in [-1, 1].
        sample_rate: Samples per second per channel.
        channels: Interleaved channel count.
        captured_at: Wall-clock time (epoch seconds) the speech started.
    """

    samples: np.ndarray
    sample_rate: int
    channels: int = 1
    captured_at: float = field(default_factory=time.time)

    @property
    def num_frames(self) -> int:
        return len(self.samples) // max(self.channels, 1)

    @property
    def duration_ms(self) -> float:
        return self.num_frames * 1000.0 / self.sample_rate

    def to_mono(self) -> AudioSegment:
        if self.channels == 1:
            return self
        return AudioSegment(
            samples=to_mono(self.samples, self.channels),
            sample_rate=self.sample_rate,
            channels=1,
            captured_at=self.captured_at,
        )

    def resample(self, target_rate: int) -> AudioSegment:
        mono = self.to_mono()
        return AudioSegment(
            samples=resample(mono.samples, self.sample_rate, target_rate),
            sample_rate=target_rate,
            channels=1,
            captured_at=self.captured_at,
        )
