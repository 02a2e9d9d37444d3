"""Wire a ready-to-run orchestrator from configuration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from friday.config import FridayConfig
from friday.dialogue import DialogueManager
from friday.engines import (
    build_speech_to_text,
    build_text_to_speech,
    build_wake_detector,
)
from friday.env import LOGGER
from friday.executor import DefaultExecutor
from friday.matcher import IntentMatcher
from friday.orchestrator import SessionOrchestrator
from friday.plugins.executor import PluginExecutor
from friday.plugins.runtime import PluginRuntime
from friday.plugins.weather import WeatherPlugin
from friday.protocols import Executor, Plugin

BUILTIN_PLUGINS: Final[dict[str, Callable[[], Plugin]]] = {
    "weather": WeatherPlugin,
}


@dataclass(slots=True)
class Assistant:
    """Everything ``build_assistant`` assembled, for callers that need parts."""

    orchestrator: SessionOrchestrator
    matcher: IntentMatcher
    fallback: DefaultExecutor
    runtime: PluginRuntime | None = None


async def build_runtime(config: FridayConfig) -> PluginRuntime:
    """Create a plugin runtime with built-in and on-disk plugins loaded."""
    settings = config.plugins
    runtime = PluginRuntime(
        settings.plugins_dir,
        security_enabled=settings.security_enabled,
        dispatch_policy=settings.dispatch_policy,
    )
    for name in settings.builtin:
        factory = BUILTIN_PLUGINS.get(name)
        if factory is None:
            LOGGER.warning("Unknown built-in plugin: %s", name)
            continue
        plugin = factory()
        await runtime.load_plugin(plugin.manifest, plugin, settings.settings.get(name))
    await runtime.load_directory()
    return runtime


async def build_assistant(config: FridayConfig) -> Assistant:
    matcher = IntentMatcher(
        confidence_threshold=config.matcher.confidence_threshold,
        user_name=config.matcher.user_name,
    )
    fallback = DefaultExecutor(
        user_name=config.matcher.user_name,
        weather_api_key=config.executor.weather_api_key,
    )

    runtime: PluginRuntime | None = None
    executor: Executor = fallback
    if config.plugins.enabled:
        runtime = await build_runtime(config)
        executor = PluginExecutor(runtime, fallback)

    dialogue = (
        DialogueManager(matcher, config.dialogue) if config.use_dialogue else None
    )
    orchestrator = SessionOrchestrator(
        build_wake_detector(config),
        build_speech_to_text(config),
        matcher,
        executor,
        build_text_to_speech(config),
        dialogue=dialogue,
        session_id=config.session_id,
    )
    return Assistant(orchestrator, matcher, fallback, runtime)
