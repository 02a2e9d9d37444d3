"""Audio subpackage: segmenter, ring buffer and sample helpers."""

from friday.audio.ring_buffer import RingBuffer
from friday.audio.segment import AudioSegment, resample, to_mono
from friday.audio.vad import SegmenterConfig, VoiceActivitySegmenter

__all__ = [
    "AudioSegment",
    "RingBuffer",
    "SegmenterConfig",
    "VoiceActivitySegmenter",
    "resample",
    "to_mono",
]
