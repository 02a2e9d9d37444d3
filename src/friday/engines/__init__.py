"""Engine selection: build capability implementations from config."""

from friday.audio.capture import MicrophoneFrames
from friday.audio.recorder import SegmentRecorder
from friday.audio.vad import VoiceActivitySegmenter
from friday.config import FridayConfig
from friday.engines.external import (
    CommandWakeDetector,
    EnergyWakeDetector,
    PiperTextToSpeech,
    WhisperSpeechToText,
)
from friday.engines.mock import MockSpeechToText, MockTextToSpeech, MockWakeDetector
from friday.protocols import SpeechToText, TextToSpeech, WakeDetector

__all__ = [
    "CommandWakeDetector",
    "EnergyWakeDetector",
    "MockSpeechToText",
    "MockTextToSpeech",
    "MockWakeDetector",
    "PiperTextToSpeech",
    "WhisperSpeechToText",
    "build_speech_to_text",
    "build_text_to_speech",
    "build_wake_detector",
]


def _microphone(config: FridayConfig) -> MicrophoneFrames:
    return MicrophoneFrames(
        sample_rate=config.segmenter.sample_rate,
        channels=config.audio.channels,
        blocksize=config.segmenter.frame_samples,
        device=config.audio.device,
    )


def build_wake_detector(config: FridayConfig) -> WakeDetector:
    wake = config.wake
    if wake.kind == "command":
        return CommandWakeDetector(wake.command, wake.keyword, wake.timeout)
    if wake.kind == "energy":
        return EnergyWakeDetector(
            _microphone(config),
            threshold=wake.energy_threshold,
            trigger_ms=wake.trigger_ms,
            timeout=wake.timeout,
        )
    return MockWakeDetector(wake.delay)


def build_speech_to_text(config: FridayConfig) -> SpeechToText:
    asr = config.asr
    if asr.kind == "whisper":
        recorder = None
        if asr.audio_path is None:
            recorder = SegmentRecorder(
                _microphone(config),
                VoiceActivitySegmenter(config.segmenter),
                max_duration_ms=config.audio.max_record_ms,
            )
        return WhisperSpeechToText(
            asr.model_path,
            whisper_bin=asr.whisper_bin,
            recorder=recorder,
            audio_path=asr.audio_path,
            language=asr.language,
            timeout=asr.timeout,
        )
    return MockSpeechToText(asr.utterances, asr.partial_interval)


def build_text_to_speech(config: FridayConfig) -> TextToSpeech:
    tts = config.tts
    if tts.kind == "piper":
        return PiperTextToSpeech(
            tts.model_path,
            piper_bin=tts.piper_bin,
            output_path=tts.output_path,
            player=tts.player,
            timeout=tts.timeout,
        )
    return MockTextToSpeech(tts.delay)
