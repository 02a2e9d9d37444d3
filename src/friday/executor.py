"""Default (non-plugin) executor for the built-in intent types.

Each handler brackets its work with ``ExecutionStarted``/``ExecutionFinished``
events. Timers are the exception: the finish event is sent by a detached
task once the timer elapses, on its own cloned event sender, so the turn
that set the timer is not held up.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import Final

from friday.errors import ExecutionError
from friday.events import (
    EventSender,
    ExecutionFinished,
    ExecutionStarted,
    Notification,
)
from friday.intents import (
    AppLaunch,
    Greeting,
    Intent,
    Query,
    SystemAction,
    SystemControl,
    Timer,
    Unknown,
    Weather,
)

_log = logging.getLogger("friday")

type Sleep = Callable[[float], Awaitable[None]]
type AppLauncher = Callable[[str], Awaitable[None]]
type SystemRunner = Callable[[SystemAction], Awaitable[str]]

APP_ALIASES: Final[Mapping[str, str]] = {
    "chrome": "Google Chrome",
    "google chrome": "Google Chrome",
    "firefox": "Firefox",
    "safari": "Safari",
    "vscode": "Visual Studio Code",
    "vs code": "Visual Studio Code",
    "code": "Visual Studio Code",
    "terminal": "Terminal",
    "finder": "Finder",
    "slack": "Slack",
    "spotify": "Spotify",
    "discord": "Discord",
    "zoom": "zoom.us",
    "notes": "Notes",
    "calendar": "Calendar",
    "mail": "Mail",
}

_SYSTEM_RESPONSES: Final[Mapping[SystemAction, str]] = {
    SystemAction.VOLUME_UP: "Volume increased",
    SystemAction.VOLUME_DOWN: "Volume decreased",
    SystemAction.MUTE: "Audio muted",
    SystemAction.UNMUTE: "Audio unmuted",
    SystemAction.SLEEP: "Putting the system to sleep",
    SystemAction.SHUTDOWN: "Shutting down",
    SystemAction.RESTART: "Restarting",
}

_OSASCRIPT: Final[Mapping[SystemAction, str]] = {
    SystemAction.VOLUME_UP: "set volume output volume ((output volume of (get volume settings)) + 10)",
    SystemAction.VOLUME_DOWN: "set volume output volume ((output volume of (get volume settings)) - 10)",
    SystemAction.MUTE: "set volume with output muted",
    SystemAction.UNMUTE: "set volume without output muted",
    SystemAction.SLEEP: 'tell application "System Events" to sleep',
}

UNKNOWN_RESPONSE: Final = (
    "I'm not sure how to help with that. Try asking about the weather, "
    "setting a timer, or opening an app."
)


def resolve_app_name(name: str) -> str:
    return APP_ALIASES.get(name.strip().lower(), name.strip())


async def _run_command(*argv: str) -> None:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise OSError(f"{argv[0]} exited with {proc.returncode}: {detail}")


async def launch_app(app_name: str) -> None:
    """Open an application with the platform's launcher command."""
    if sys.platform == "darwin":
        await _run_command("open", "-a", app_name)
    elif sys.platform == "win32":
        await _run_command("cmd", "/c", "start", "", app_name)
    else:
        await _run_command("xdg-open", app_name)


async def run_system_action(action: SystemAction) -> str:
    """Apply *action* on macOS via osascript; simulated elsewhere."""
    script = _OSASCRIPT.get(action)
    if sys.platform == "darwin" and script is not None:
        await _run_command("osascript", "-e", script)
        return _SYSTEM_RESPONSES[action]
    return f"{_SYSTEM_RESPONSES[action]} (simulated)"


class DefaultExecutor:
    """Handles every built-in intent without plugins."""

    def __init__(
        self,
        *,
        user_name: str | None = None,
        weather_api_key: str | None = None,
        sleep: Sleep = asyncio.sleep,
        app_launcher: AppLauncher = launch_app,
        system_runner: SystemRunner = run_system_action,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.user_name = user_name
        self.weather_api_key = weather_api_key
        self._sleep = sleep
        self._app_launcher = app_launcher
        self._system_runner = system_runner
        self._clock = clock
        self._timers: set[asyncio.Task[None]] = set()

    @property
    def pending_timers(self) -> int:
        return sum(1 for t in self._timers if not t.done())

    async def execute(self, intent: Intent, sink: EventSender) -> str:
        match intent:
            case Timer():
                return await self._timer(intent, sink)
            case Greeting(user_name=name):
                return self._greeting(name)
            case Weather(location=location):
                return await self._bracketed("weather", sink, self._weather(location))
            case AppLaunch(app_name=app_name):
                return await self._bracketed("app_launch", sink, self._app(app_name))
            case SystemControl(action=action):
                return await self._bracketed("system_control", sink, self._system(action))
            case Query(question=question):
                return await self._bracketed("query", sink, self._query(question))
            case Unknown():
                return UNKNOWN_RESPONSE
        raise ExecutionError(f"Unsupported intent: {intent!r}")

    async def wait_for_timers(self) -> None:
        """Wait for every outstanding timer task (used at shutdown and in tests)."""
        if self._timers:
            await asyncio.gather(*self._timers, return_exceptions=True)

    # -- handlers ------------------------------------------------------------

    async def _bracketed(
        self, name: str, sink: EventSender, work: Awaitable[str]
    ) -> str:
        await sink.send(ExecutionStarted(name))
        try:
            return await work
        finally:
            await sink.send(ExecutionFinished(name))

    async def _timer(self, intent: Timer, sink: EventSender) -> str:
        seconds = intent.duration_seconds
        await sink.send(ExecutionStarted("timer"))
        handle = sink.clone()
        task = asyncio.create_task(self._timer_done(seconds, intent.label, handle))
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        _log.info("Timer started: %ss", seconds)
        return f"Timer set for {seconds} seconds"

    async def _timer_done(
        self, seconds: int, label: str | None, handle: EventSender
    ) -> None:
        with handle:
            await self._sleep(seconds)
            message = f"Timer done: {label}" if label else "Timer done"
            await handle.send(Notification(message))
            await handle.send(ExecutionFinished("timer"))

    def _greeting(self, name: str | None) -> str:
        name = name or self.user_name
        if name:
            return f"Hello {name}! How can I help you?"
        return "Hello! How can I help you?"

    async def _weather(self, location: str | None) -> str:
        place = location or "your area"
        if not self.weather_api_key:
            return (
                f"I'd check the weather in {place}, but no weather API key "
                "is configured."
            )
        return f"The weather in {place} is partly cloudy with a temperature of 72°F"

    async def _app(self, app_name: str) -> str:
        resolved = resolve_app_name(app_name)
        try:
            await self._app_launcher(resolved)
        except OSError as exc:
            _log.warning("Failed to open %s: %s", resolved, exc)
            return f"I couldn't open {resolved}"
        return f"Opening {resolved}"

    async def _system(self, action: SystemAction) -> str:
        try:
            return await self._system_runner(action)
        except OSError as exc:
            raise ExecutionError(f"System action {action} failed: {exc}") from exc

    async def _query(self, question: str) -> str:
        lowered = question.lower()
        now = self._clock()
        if "time" in lowered:
            return f"It's {now.hour % 12 or 12}:{now.strftime('%M %p')}"
        if "date" in lowered or "day" in lowered:
            return f"Today is {now.strftime('%A, %B')} {now.day}, {now.year}"
        if "friday" in lowered or "you" in lowered:
            return "I'm Friday, your voice assistant."
        if "help" in lowered or "can you do" in lowered:
            return (
                "I can set timers, check the weather, open apps, adjust the "
                "volume and answer simple questions."
            )
        return f"I'm not sure about '{question}'"
