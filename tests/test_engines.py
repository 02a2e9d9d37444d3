"""Tests for friday.engines — mock engines, subprocess helper and energy wake."""

from __future__ import annotations

import asyncio
import sys
import wave

import numpy as np
import pytest
from conftest import SAMPLE_RATE, silence_frames, speech_frames

from friday.audio import AudioSegment
from friday.config import AsrConfig, FridayConfig, TtsConfig, WakeConfig
from friday.engines import (
    CommandWakeDetector,
    EnergyWakeDetector,
    MockSpeechToText,
    MockTextToSpeech,
    MockWakeDetector,
    PiperTextToSpeech,
    build_speech_to_text,
    build_text_to_speech,
    build_wake_detector,
)
from friday.engines.external import run_process, write_wav
from friday.errors import AsrError, WakeError
from friday.events import EventBus, PartialTranscript, TtsFinished, TtsStarted


def collect(coro_factory):
    async def scenario():
        bus = EventBus()
        with bus.sender() as sink:
            result = await coro_factory(sink)
        return result, [event async for event in bus]

    return asyncio.run(scenario())


class TestMockEngines:
    def test_stt_reveals_words_then_cycles(self) -> None:
        stt = MockSpeechToText(["set a timer", "hi"], interval=0)
        text, events = collect(stt.stream_until_silence)
        assert text == "set a timer"
        assert events == [
            PartialTranscript("set"),
            PartialTranscript("set a"),
            PartialTranscript("set a timer", is_final=True),
        ]
        assert collect(stt.stream_until_silence)[0] == "hi"
        assert collect(stt.stream_until_silence)[0] == "set a timer"

    def test_stt_blank_utterance_fails(self) -> None:
        stt = MockSpeechToText(["   "], interval=0)
        with pytest.raises(AsrError):
            collect(stt.stream_until_silence)

    def test_tts_brackets_speech(self) -> None:
        _, events = collect(lambda sink: MockTextToSpeech(0).speak("hello", sink))
        assert events == [TtsStarted(), TtsFinished()]

    def test_wake_returns(self) -> None:
        asyncio.run(MockWakeDetector(0).wait_for_wake())


class TestRunProcess:
    def test_returns_stdout(self) -> None:
        out = asyncio.run(
            run_process(
                [sys.executable, "-c", "print('heard')"], timeout=10, error=AsrError
            )
        )
        assert out.strip() == "heard"

    def test_stdin_is_passed(self) -> None:
        script = "import sys; print(sys.stdin.read().upper())"
        out = asyncio.run(
            run_process(
                [sys.executable, "-c", script], timeout=10, error=AsrError, stdin=b"hi"
            )
        )
        assert out.strip() == "HI"

    def test_nonzero_exit_raises_stage_error(self) -> None:
        with pytest.raises(AsrError, match="exited with 3"):
            asyncio.run(
                run_process(
                    [sys.executable, "-c", "raise SystemExit(3)"],
                    timeout=10,
                    error=AsrError,
                )
            )

    def test_timeout_kills(self) -> None:
        with pytest.raises(WakeError, match="timed out"):
            asyncio.run(
                run_process(
                    [sys.executable, "-c", "import time; time.sleep(30)"],
                    timeout=0.2,
                    error=WakeError,
                )
            )

    def test_missing_binary(self) -> None:
        with pytest.raises(AsrError, match="Failed to start"):
            asyncio.run(
                run_process(["friday-no-such-binary"], timeout=1, error=AsrError)
            )


class TestWakeDetectors:
    def test_command_wake_on_keyword(self) -> None:
        command = [sys.executable, "-c", "print('noise'); print('DETECTED friday')"]
        asyncio.run(CommandWakeDetector(command, timeout=10).wait_for_wake())

    def test_command_exit_without_keyword(self) -> None:
        command = [sys.executable, "-c", "print('noise')"]
        with pytest.raises(WakeError):
            asyncio.run(CommandWakeDetector(command, timeout=10).wait_for_wake())

    def test_energy_wake(self) -> None:
        class Source:
            sample_rate = SAMPLE_RATE

            async def frames(self):
                yield silence_frames(1)
                for _ in range(10):
                    yield speech_frames(1)

        asyncio.run(EnergyWakeDetector(Source(), trigger_ms=150).wait_for_wake())

    def test_energy_stream_end(self) -> None:
        class Source:
            sample_rate = SAMPLE_RATE

            async def frames(self):
                yield silence_frames(5)

        with pytest.raises(WakeError):
            asyncio.run(EnergyWakeDetector(Source()).wait_for_wake())


class TestWav:
    def test_write_wav(self, tmp_path) -> None:
        path = tmp_path / "out.wav"
        write_wav(path, AudioSegment(np.zeros(1600, dtype=np.float32), SAMPLE_RATE))
        with wave.open(str(path), "rb") as wf:
            assert wf.getframerate() == SAMPLE_RATE
            assert wf.getsampwidth() == 2
            assert wf.getnframes() == 1600


class TestEngineSelection:
    def test_defaults_are_mocks(self) -> None:
        config = FridayConfig()
        assert isinstance(build_wake_detector(config), MockWakeDetector)
        assert isinstance(build_speech_to_text(config), MockSpeechToText)
        assert isinstance(build_text_to_speech(config), MockTextToSpeech)

    def test_external_engines(self) -> None:
        config = FridayConfig(
            wake=WakeConfig(kind="command", command=("kws",)),
            asr=AsrConfig(kind="whisper", model_path="m.bin", audio_path="a.wav"),
            tts=TtsConfig(kind="piper", model_path="voice.onnx"),
        )
        assert isinstance(build_wake_detector(config), CommandWakeDetector)
        assert build_speech_to_text(config).audio_path == "a.wav"
        assert isinstance(build_text_to_speech(config), PiperTextToSpeech)
