"""Engines that shell out to external programs.

All subprocesses run through ``asyncio.create_subprocess_exec`` so the event
loop keeps serving other tasks, and every wait carries a deadline after
which the process is killed.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
import wave
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from friday.audio.capture import FrameSource
from friday.audio.recorder import SegmentRecorder
from friday.audio.segment import AudioSegment, float_to_pcm16
from friday.audio.vad import rms_energy
from friday.constants import (
    DEFAULT_PIPER_BIN,
    DEFAULT_PIPER_TIMEOUT,
    DEFAULT_WAKE_KEYWORD,
    DEFAULT_WAKE_TIMEOUT,
    DEFAULT_WHISPER_BIN,
    DEFAULT_WHISPER_TIMEOUT,
)
from friday.env import LOGGER
from friday.errors import AsrError, PipelineError, TtsError, WakeError
from friday.events import EventSender, PartialTranscript, TtsFinished, TtsStarted


async def run_process(
    argv: Sequence[str],
    *,
    timeout: float,
    error: type[PipelineError],
    stdin: bytes | None = None,
) -> str:
    """Run *argv* to completion and return its decoded stdout.

    Raises *error* if the program cannot start, exits non-zero, or is still
    running after *timeout* seconds (it is killed first).
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise error(f"Failed to start {argv[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(stdin), timeout)
    except TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise error(f"{argv[0]} timed out after {timeout:g}s") from exc

    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise error(f"{argv[0]} exited with {proc.returncode}: {detail}")
    return stdout.decode(errors="replace")


def write_wav(path: str | Path, segment: AudioSegment) -> None:
    """Write *segment* as 16-bit PCM WAV (blocking; run in a thread)."""
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(segment.channels)
        wf.setsampwidth(2)
        wf.setframerate(segment.sample_rate)
        wf.writeframes(float_to_pcm16(segment.samples))


# ---------------------------------------------------------------------------
# Wake
# ---------------------------------------------------------------------------


class CommandWakeDetector:
    """Run a keyword-spotting command and wait for it to report a hit.

    The command is expected to print a line containing *keyword* when the
    wake word is heard. It is killed once detected, on error, or when
    *timeout* elapses.
    """

    def __init__(
        self,
        command: Sequence[str],
        keyword: str = DEFAULT_WAKE_KEYWORD,
        timeout: float = DEFAULT_WAKE_TIMEOUT,
    ) -> None:
        if not command:
            raise ValueError("CommandWakeDetector needs a command")
        self.command = tuple(command)
        self.keyword = keyword.lower()
        self.timeout = timeout

    async def wait_for_wake(self) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise WakeError(f"Failed to start {self.command[0]}: {exc}") from exc

        try:
            await asyncio.wait_for(self._watch(proc), self.timeout)
        except TimeoutError as exc:
            raise WakeError(f"No wake word within {self.timeout:g}s") from exc
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdout is not None
        async for raw in proc.stdout:
            line = raw.decode(errors="replace").strip()
            LOGGER.debug("wake: %s", line)
            if self.keyword in line.lower():
                return
        raise WakeError(f"{self.command[0]} exited without detecting the wake word")


class EnergyWakeDetector:
    """Wake on sustained loud audio: ``trigger_ms`` above ``threshold``."""

    def __init__(
        self,
        source: FrameSource,
        threshold: float = 0.02,
        trigger_ms: int = 150,
        timeout: float = DEFAULT_WAKE_TIMEOUT,
    ) -> None:
        self.source = source
        self.threshold = threshold
        self.trigger_ms = trigger_ms
        self.timeout = timeout

    async def wait_for_wake(self) -> None:
        try:
            await asyncio.wait_for(self._listen(), self.timeout)
        except TimeoutError as exc:
            raise WakeError(f"No wake signal within {self.timeout:g}s") from exc

    async def _listen(self) -> None:
        loud_ms = 0.0
        rate = self.source.sample_rate
        async with contextlib.aclosing(self.source.frames()) as frames:
            async for block in frames:
                block_ms = len(block) * 1000.0 / rate
                if rms_energy(np.asarray(block)) > self.threshold:
                    loud_ms += block_ms
                    if loud_ms >= self.trigger_ms:
                        return
                else:
                    loud_ms = 0.0
        raise WakeError("Audio stream ended before a wake signal")


# ---------------------------------------------------------------------------
# Speech to text
# ---------------------------------------------------------------------------


class WhisperSpeechToText:
    """Transcribe with a whisper.cpp binary.

    With a *recorder*, each call records one utterance from the microphone;
    otherwise the fixed *audio_path* WAV is transcribed.
    """

    def __init__(
        self,
        model_path: str,
        *,
        whisper_bin: str = DEFAULT_WHISPER_BIN,
        recorder: SegmentRecorder | None = None,
        audio_path: str | None = None,
        language: str = "en",
        timeout: float = DEFAULT_WHISPER_TIMEOUT,
    ) -> None:
        if recorder is None and audio_path is None:
            raise ValueError("WhisperSpeechToText needs a recorder or an audio_path")
        self.model_path = model_path
        self.whisper_bin = whisper_bin
        self.recorder = recorder
        self.audio_path = audio_path
        self.language = language
        self.timeout = timeout

    async def stream_until_silence(self, sink: EventSender) -> str:
        if self.recorder is None:
            return await self.transcribe(str(self.audio_path), sink)

        segment = await self.recorder.record(sink)
        if segment is None:
            raise AsrError("No speech captured")

        fd, wav_path = tempfile.mkstemp(prefix="friday-", suffix=".wav")
        os.close(fd)
        try:
            await asyncio.to_thread(write_wav, wav_path, segment)
            return await self.transcribe(wav_path, sink)
        finally:
            with contextlib.suppress(OSError):
                os.unlink(wav_path)

    async def transcribe(self, wav_path: str, sink: EventSender) -> str:
        await sink.send(PartialTranscript("Processing..."))
        output = await run_process(
            [
                self.whisper_bin,
                "-m", self.model_path,
                "-f", wav_path,
                "--no-timestamps",
                "--language", self.language,
            ],
            timeout=self.timeout,
            error=AsrError,
        )
        text = " ".join(line.strip() for line in output.splitlines() if line.strip())
        if not text:
            raise AsrError("Whisper returned an empty transcript")
        return text


# ---------------------------------------------------------------------------
# Text to speech
# ---------------------------------------------------------------------------


class PiperTextToSpeech:
    """Synthesize with piper, optionally playing the result with *player*."""

    def __init__(
        self,
        model_path: str,
        *,
        piper_bin: str = DEFAULT_PIPER_BIN,
        output_path: str | None = None,
        player: Sequence[str] = (),
        timeout: float = DEFAULT_PIPER_TIMEOUT,
    ) -> None:
        self.model_path = model_path
        self.piper_bin = piper_bin
        self.output_path = output_path or str(
            Path(tempfile.gettempdir()) / "friday-tts.wav"
        )
        self.player = tuple(player)
        self.timeout = timeout

    async def speak(self, text: str, sink: EventSender) -> None:
        await sink.send(TtsStarted())
        await run_process(
            [
                self.piper_bin,
                "--model", self.model_path,
                "--output_file", self.output_path,
            ],
            timeout=self.timeout,
            error=TtsError,
            stdin=text.encode(),
        )
        if self.player:
            await run_process(
                [*self.player, self.output_path],
                timeout=self.timeout,
                error=TtsError,
            )
        await sink.send(TtsFinished())
