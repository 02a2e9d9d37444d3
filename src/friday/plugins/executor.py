"""Executor that offers each utterance to plugins before the fallback."""

from __future__ import annotations

import logging
from typing import Any

from friday.errors import PluginError
from friday.events import EventSender, ExecutionFinished, ExecutionStarted
from friday.intents import Intent, slot_values
from friday.plugins.manifest import PluginMatch
from friday.plugins.runtime import PluginRuntime
from friday.protocols import Executor

_log = logging.getLogger("friday")


class PluginExecutor:
    """Try the plugin runtime first; hand everything else to *fallback*.

    Plugin errors and unsuccessful results are logged and recovered by the
    fallback. Errors raised by the fallback propagate to the caller.
    """

    __slots__ = ("runtime", "fallback")

    def __init__(self, runtime: PluginRuntime, fallback: Executor) -> None:
        self.runtime = runtime
        self.fallback = fallback

    async def execute(self, intent: Intent, sink: EventSender) -> str:
        text = intent.source_text
        match = self.runtime.find_plugin_for_intent(text) if text else None
        if match is None:
            return await self.fallback.execute(intent, sink)

        parameters = self._merge_slots(intent, match)
        _log.debug(
            "Routing to plugin %s (%s) with %s",
            match.plugin_name,
            match.intent_name,
            parameters,
        )
        await sink.send(ExecutionStarted(match.plugin_name))
        try:
            result = await self.runtime.execute(
                match.plugin_name, match.intent_name, parameters, sink
            )
        except PluginError as exc:
            _log.warning("Plugin %s failed: %s", match.plugin_name, exc)
            result = None
        await sink.send(ExecutionFinished(match.plugin_name))

        if result is not None and result.success:
            return result.message
        if result is not None:
            _log.warning(
                "Plugin %s declined: %s", match.plugin_name, result.message
            )
        return await self.fallback.execute(intent, sink)

    def _merge_slots(self, intent: Intent, match: PluginMatch) -> dict[str, Any]:
        """Overlay the intent's filled slots on the plugin's own extraction.

        An intent completed over several dialogue turns keeps the first
        turn's utterance, so values the user gave later exist only as
        intent fields. Fields are matched to parameters by name.
        """
        declared = {
            param.name
            for pattern in self.runtime.get_manifest(match.plugin_name).intent_patterns
            if pattern.name == match.intent_name
            for param in pattern.parameters
        }
        parameters = dict(match.parameters)
        for name, value in slot_values(intent).items():
            if name in declared:
                parameters[name] = value
        return parameters

    def list_plugins(self) -> list[str]:
        return [manifest.describe() for manifest in self.runtime.list_plugins()]
