"""Tests for friday.audio — VAD segmentation, ring buffer and sample helpers."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest
from conftest import FRAME, SAMPLE_RATE, silence_frames, speech_frames

from friday.audio import (
    AudioSegment,
    RingBuffer,
    SegmenterConfig,
    VoiceActivitySegmenter,
    resample,
    to_mono,
)
from friday.audio.recorder import SegmentRecorder
from friday.audio.vad import rms_energy, zero_crossing_rate
from friday.events import EventBus, PartialTranscript


class TestFrameFeatures:
    def test_silence_is_inactive(self) -> None:
        seg = VoiceActivitySegmenter()
        assert not seg.is_active(np.zeros(FRAME, dtype=np.float32))

    def test_loud_constant_has_energy(self) -> None:
        frame = np.full(FRAME, 0.5, dtype=np.float32)
        assert rms_energy(frame) > 0.4

    def test_alternating_signal_has_high_zcr(self) -> None:
        frame = np.tile(np.array([0.1, -0.1], dtype=np.float32), FRAME // 2)
        assert zero_crossing_rate(frame) > 0.8

    def test_constant_signal_has_low_zcr(self) -> None:
        frame = np.full(FRAME, 0.5, dtype=np.float32)
        assert zero_crossing_rate(frame) < 0.1

    def test_loud_but_tonal_frame_is_inactive(self) -> None:
        seg = VoiceActivitySegmenter()
        assert not seg.is_active(np.full(FRAME, 0.5, dtype=np.float32))

    def test_short_frame_is_inactive(self) -> None:
        seg = VoiceActivitySegmenter()
        assert not seg.is_active(speech_frames(1)[: FRAME - 1])

    def test_empty_frame(self) -> None:
        empty = np.array([], dtype=np.float32)
        assert rms_energy(empty) == 0.0
        assert zero_crossing_rate(empty) == 0.0


class TestSegmenter:
    def test_emits_segment_after_silence(self) -> None:
        seg = VoiceActivitySegmenter()
        assert seg.process(speech_frames(20)) == []
        assert seg.is_speaking
        segments = seg.process(silence_frames(60))
        assert len(segments) == 1
        assert segments[0].sample_rate == SAMPLE_RATE
        assert segments[0].channels == 1
        assert segments[0].duration_ms >= 600
        assert seg.state == "idle"

    def test_short_silence_keeps_speaking(self) -> None:
        seg = VoiceActivitySegmenter()
        seg.process(speech_frames(20))
        assert seg.process(silence_frames(40)) == []
        assert seg.is_speaking

    def test_short_burst_is_discarded(self) -> None:
        seg = VoiceActivitySegmenter()
        seg.process(speech_frames(5))
        assert seg.process(silence_frames(60)) == []
        assert seg.state == "idle"

    def test_flush_returns_in_progress_speech(self) -> None:
        seg = VoiceActivitySegmenter()
        seg.process(speech_frames(20))
        segment = seg.flush()
        assert segment is not None
        assert segment.num_frames == 20 * FRAME
        assert seg.flush() is None

    def test_chunks_split_across_frames(self) -> None:
        seg = VoiceActivitySegmenter()
        audio = np.concatenate([speech_frames(20), silence_frames(60)])
        segments = []
        for start in range(0, len(audio), 100):
            segments.extend(seg.process(audio[start : start + 100]))
        assert len(segments) == 1

    def test_deterministic(self) -> None:
        audio = np.concatenate([speech_frames(20), silence_frames(60)])
        a = VoiceActivitySegmenter().process(audio)
        b = VoiceActivitySegmenter().process(audio)
        assert len(a) == len(b) == 1
        np.testing.assert_array_equal(a[0].samples, b[0].samples)

    def test_reset_returns_to_idle(self) -> None:
        seg = VoiceActivitySegmenter()
        seg.process(speech_frames(20))
        seg.reset()
        assert seg.state == "idle"
        assert seg.flush() is None

    def test_captured_at_uses_clock(self) -> None:
        seg = VoiceActivitySegmenter(clock=lambda: 123.0)
        seg.process(speech_frames(20))
        segment = seg.flush()
        assert segment is not None
        assert segment.captured_at == 123.0


class TestSegmenterConfig:
    def test_frame_samples(self) -> None:
        assert SegmenterConfig().frame_samples == FRAME

    def test_rejects_bad_sample_rate(self) -> None:
        with pytest.raises(ValueError):
            SegmenterConfig(sample_rate=0)

    def test_rejects_buffer_smaller_than_frame(self) -> None:
        with pytest.raises(ValueError):
            SegmenterConfig(frame_ms=30, buffer_duration_ms=10)

    def test_frozen(self) -> None:
        config = SegmenterConfig()
        with pytest.raises(AttributeError):
            config.frame_ms = 10  # type: ignore[misc]


class TestRingBuffer:
    def test_append_and_snapshot(self) -> None:
        buf = RingBuffer.create(max_ms=1, sample_rate=4000)  # 4 samples
        buf.append(np.array([1, 2, 3], dtype=np.float32))
        np.testing.assert_array_equal(buf.snapshot(), [1, 2, 3])
        assert buf.evicted == 0

    def test_wraparound_keeps_newest(self) -> None:
        buf = RingBuffer.create(max_ms=1, sample_rate=4000)
        buf.append(np.array([1, 2, 3], dtype=np.float32))
        buf.append(np.array([4, 5, 6], dtype=np.float32))
        np.testing.assert_array_equal(buf.snapshot(), [3, 4, 5, 6])
        assert buf.filled == 4
        assert buf.evicted == 2
        assert buf.total_samples_written == 6

    def test_oversized_frame_keeps_tail(self) -> None:
        buf = RingBuffer.create(max_ms=1, sample_rate=4000)
        buf.append(np.arange(10, dtype=np.float32))
        np.testing.assert_array_equal(buf.snapshot(), [6, 7, 8, 9])

    def test_reset(self) -> None:
        buf = RingBuffer.create(max_ms=1, sample_rate=4000)
        buf.append(np.ones(3, dtype=np.float32))
        buf.reset()
        assert buf.filled == 0
        assert buf.snapshot().size == 0

    def test_filled_ms(self) -> None:
        buf = RingBuffer.create(max_ms=100, sample_rate=16_000)
        buf.append(np.zeros(800, dtype=np.float32))
        assert buf.filled_ms == pytest.approx(50.0)

    def test_zero_capacity_rejected(self) -> None:
        with pytest.raises(ValueError):
            RingBuffer(np.zeros(0, dtype=np.float32), 16_000)


class TestSampleHelpers:
    def test_resample_halves(self) -> None:
        out = resample(np.array([1, 2, 3, 4], dtype=np.float32), 8000, 4000)
        np.testing.assert_array_equal(out, [1, 3])

    def test_resample_same_rate_is_identity(self) -> None:
        samples = np.array([0.1, 0.2], dtype=np.float32)
        np.testing.assert_array_equal(resample(samples, 16_000, 16_000), samples)

    def test_stereo_to_mono(self) -> None:
        stereo = np.array([0.1, 0.2, 0.3, 0.4, 0.5, 0.6], dtype=np.float32)
        np.testing.assert_allclose(to_mono(stereo, 2), [0.15, 0.35, 0.55], rtol=1e-6)

    def test_segment_resample_downmixes(self) -> None:
        segment = AudioSegment(
            samples=np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32),
            sample_rate=8000,
            channels=2,
            captured_at=1.0,
        )
        out = segment.resample(4000)
        assert out.channels == 1
        assert out.sample_rate == 4000
        assert out.captured_at == 1.0
        np.testing.assert_allclose(out.samples, [0.15], rtol=1e-6)

    def test_duration_ms(self) -> None:
        segment = AudioSegment(np.zeros(16_000, dtype=np.float32), 16_000)
        assert segment.duration_ms == pytest.approx(1000.0)


class _ListSource:
    sample_rate = SAMPLE_RATE

    def __init__(self, blocks: list[np.ndarray]) -> None:
        self._blocks = blocks

    async def frames(self):
        for block in self._blocks:
            yield block


class TestSegmentRecorder:
    def test_records_one_segment_and_announces_speech(self) -> None:
        blocks = [speech_frames(1) for _ in range(20)]
        blocks += [silence_frames(1) for _ in range(60)]
        recorder = SegmentRecorder(_ListSource(blocks), VoiceActivitySegmenter())

        async def scenario():
            bus = EventBus()
            with bus.sender() as sink:
                segment = await recorder.record(sink)
            return segment, [event async for event in bus]

        segment, events = asyncio.run(scenario())
        assert segment is not None
        assert events == [PartialTranscript("...")]

    def test_stream_end_flushes(self) -> None:
        blocks = [speech_frames(1) for _ in range(20)]
        recorder = SegmentRecorder(_ListSource(blocks), VoiceActivitySegmenter())

        async def scenario():
            bus = EventBus()
            with bus.sender() as sink:
                return await recorder.record(sink)

        segment = asyncio.run(scenario())
        assert segment is not None
        assert segment.num_frames == 20 * FRAME

    def test_silence_yields_nothing(self) -> None:
        blocks = [silence_frames(1) for _ in range(10)]
        recorder = SegmentRecorder(_ListSource(blocks), VoiceActivitySegmenter())

        async def scenario():
            bus = EventBus()
            with bus.sender() as sink:
                return await recorder.record(sink)

        assert asyncio.run(scenario()) is None
