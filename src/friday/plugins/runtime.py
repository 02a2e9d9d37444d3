"""Plugin runtime: registration, intent dispatch, permission checks, execution.

Plugins are kept in registration order. ``find_plugin_for_intent`` walks
them in that order and, under the default ``first_match`` policy, returns
the first pattern that fires, regardless of the confidence other plugins
declare. The ``best_confidence`` policy instead scans every pattern and
keeps the strictly highest confidence.
"""

from __future__ import annotations

import importlib
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Final, Literal

from friday.constants import DEFAULT_DISPATCH_POLICY, DEFAULT_PLUGINS_DIR
from friday.errors import (
    ExecutionFailed,
    InvalidConfig,
    PermissionDenied,
    PluginError,
    PluginNotFound,
)
from friday.events import EventSender, Notification, PluginEventRelayed
from friday.plugins.manifest import (
    CustomEvent,
    IntentPattern,
    PluginContext,
    PluginEvent,
    PluginLog,
    PluginManifest,
    PluginMatch,
    PluginNotification,
    PluginResult,
    StateChange,
)
from friday.protocols import Plugin

_log = logging.getLogger("friday")

type DispatchPolicy = Literal["first_match", "best_confidence"]
type PermissionCheck = Callable[[PluginManifest, str], bool]

_PREPOSITIONS: Final = ("for", "to", "in", "at", "on", "with")
_INTEGER_RE: Final = re.compile(r"-?\d+")
_LOG_LEVELS: Final = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def allow_all(manifest: PluginManifest, intent_name: str) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class _CompiledPattern:
    intent: IntentPattern
    source: str
    regex: re.Pattern[str] | None

    def search(self, text: str) -> re.Match[str] | bool | None:
        if self.regex is None:
            # Invalid regex: degrade to a case-insensitive substring test.
            return self.source.lower() in text.lower()
        return self.regex.search(text)


@dataclass(slots=True)
class _LoadedPlugin:
    manifest: PluginManifest
    plugin: Plugin
    context: PluginContext
    patterns: tuple[_CompiledPattern, ...]


def _compile(manifest: PluginManifest) -> tuple[_CompiledPattern, ...]:
    compiled: list[_CompiledPattern] = []
    for intent in manifest.intent_patterns:
        for source in intent.patterns:
            try:
                regex = re.compile(source, re.IGNORECASE)
            except re.error:
                _log.warning(
                    "Plugin %s: invalid pattern %r, using substring match",
                    manifest.name,
                    source,
                )
                regex = None
            compiled.append(_CompiledPattern(intent, source, regex))
    return tuple(compiled)


def extract_parameters(
    intent: IntentPattern, text: str, match: re.Match[str] | bool | None
) -> dict[str, Any]:
    """Fill declared parameters from capture groups, then from the text.

    A named group matching the parameter name wins, then the positional
    group at the parameter's index. Otherwise a ``number`` parameter takes
    the first integer in the text and a ``string`` parameter takes the word
    after the first preposition.
    """
    params: dict[str, Any] = {}
    groups: tuple[str | None, ...] = ()
    named: dict[str, str | None] = {}
    if isinstance(match, re.Match):
        groups = match.groups()
        named = match.groupdict()

    words = text.split()
    for index, param in enumerate(intent.parameters):
        value: str | None = named.get(param.name)
        if value is None and index < len(groups):
            value = groups[index]
        if value is None:
            value = _fallback_value(param.param_type, words)
        if value is None:
            continue
        if param.param_type == "number":
            try:
                params[param.name] = int(value)
            except ValueError:
                continue
        else:
            params[param.name] = value.strip()
    return params


def _fallback_value(param_type: str, words: list[str]) -> str | None:
    if param_type == "number":
        for word in words:
            if _INTEGER_RE.fullmatch(word):
                return word
        return None
    for i, word in enumerate(words[:-1]):
        if word.lower() in _PREPOSITIONS:
            return words[i + 1].strip(".,!?")
    return None


class PluginRuntime:
    """Hosts plugins and routes free text to them."""

    def __init__(
        self,
        plugins_dir: str | Path = DEFAULT_PLUGINS_DIR,
        *,
        security_enabled: bool = True,
        dispatch_policy: DispatchPolicy = DEFAULT_DISPATCH_POLICY,
        permission_check: PermissionCheck = allow_all,
    ) -> None:
        if dispatch_policy not in ("first_match", "best_confidence"):
            raise ValueError(f"Unknown dispatch policy: {dispatch_policy}")
        self.plugins_dir = Path(plugins_dir).expanduser()
        self.security_enabled = security_enabled
        self.dispatch_policy = dispatch_policy
        self._permission_check = permission_check
        self._plugins: dict[str, _LoadedPlugin] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    # -- registration ------------------------------------------------------

    async def load_plugin(
        self,
        manifest: PluginManifest,
        plugin: Plugin,
        config: dict[str, Any] | None = None,
    ) -> None:
        """Validate, initialize and register *plugin* under ``manifest.name``.

        Raises InvalidConfig for a malformed manifest or a failed
        initialization. A plugin with the same name is replaced.
        """
        manifest.validate()
        context = PluginContext(
            plugin_name=manifest.name,
            config=dict(config or {}),
            permissions=manifest.permissions,
            data_dir=self.plugins_dir / "data" / manifest.name,
        )
        try:
            await plugin.initialize(context)
        except PluginError:
            raise
        except Exception as exc:
            raise InvalidConfig(
                f"Plugin {manifest.name} failed to initialize: {exc}"
            ) from exc

        if manifest.name in self._plugins:
            _log.info("Replacing plugin %s", manifest.name)
        self._plugins[manifest.name] = _LoadedPlugin(
            manifest=manifest,
            plugin=plugin,
            context=context,
            patterns=_compile(manifest),
        )
        _log.info("Loaded plugin: %s v%s", manifest.name, manifest.version)

    async def unload_plugin(self, name: str) -> None:
        loaded = self._plugins.pop(name, None)
        if loaded is None:
            raise PluginNotFound(name)
        await loaded.plugin.cleanup()
        _log.info("Unloaded plugin: %s", name)

    async def unload_all(self) -> None:
        for name in list(self._plugins):
            await self.unload_plugin(name)

    def set_plugin_config(self, name: str, config: dict[str, Any]) -> None:
        loaded = self._get(name)
        loaded.plugin.validate_config(config)
        loaded.context = replace(loaded.context, config=dict(config))

    def get_context(self, name: str) -> PluginContext:
        return self._get(name).context

    def get_manifest(self, name: str) -> PluginManifest:
        return self._get(name).manifest

    def list_plugins(self) -> list[PluginManifest]:
        return [loaded.manifest for loaded in self._plugins.values()]

    async def load_directory(self, directory: str | Path | None = None) -> list[str]:
        """Load every ``*.json`` manifest in *directory* (default: plugins dir).

        Each manifest's ``entry_point`` (``"package.module:factory"``) is
        imported and called with no arguments to build the implementation.
        Broken plugins are logged and skipped.
        """
        root = Path(directory).expanduser() if directory else self.plugins_dir
        if not root.is_dir():
            return []
        loaded: list[str] = []
        for path in sorted(root.glob("*.json")):
            try:
                manifest = PluginManifest.from_file(path)
                plugin = _import_entry_point(manifest.entry_point)()
                await self.load_plugin(manifest, plugin)
            except (PluginError, OSError, ValueError, ImportError, AttributeError) as exc:
                _log.warning("Skipping plugin manifest %s: %s", path.name, exc)
                continue
            loaded.append(manifest.name)
        return loaded

    # -- dispatch ----------------------------------------------------------

    def find_plugin_for_intent(self, text: str) -> PluginMatch | None:
        """Route *text* to a plugin intent, or None when nothing matches."""
        best: PluginMatch | None = None
        for name, loaded in self._plugins.items():
            for compiled in loaded.patterns:
                match = compiled.search(text)
                if not match:
                    continue
                candidate = PluginMatch(
                    plugin_name=name,
                    intent_name=compiled.intent.name,
                    parameters=extract_parameters(compiled.intent, text, match),
                    confidence=compiled.intent.confidence,
                )
                if self.dispatch_policy == "first_match":
                    return candidate
                if best is None or candidate.confidence > best.confidence:
                    best = candidate
        return best

    # -- execution ---------------------------------------------------------

    async def execute(
        self,
        plugin_name: str,
        intent_name: str,
        parameters: dict[str, Any],
        sink: EventSender,
    ) -> PluginResult:
        """Run one plugin intent; a successful result's events go onto *sink*."""
        loaded = self._get(plugin_name)
        self._check_permissions(loaded.manifest, intent_name)

        try:
            result = await loaded.plugin.execute(intent_name, parameters)
        except PluginError:
            raise
        except Exception as exc:
            raise ExecutionFailed(f"Plugin {plugin_name} failed: {exc}") from exc

        if result.success:
            await self._relay(plugin_name, result.events, sink)
        return result

    def _check_permissions(self, manifest: PluginManifest, intent_name: str) -> None:
        if not self.security_enabled:
            return
        if not self._permission_check(manifest, intent_name):
            raise PermissionDenied(manifest.name, f"intent {intent_name!r} refused")
        _log.debug(
            "Permission check passed for %s (%d permissions)",
            manifest.name,
            len(manifest.permissions),
        )

    async def _relay(
        self, plugin_name: str, events: tuple[PluginEvent, ...], sink: EventSender
    ) -> None:
        for event in events:
            match event:
                case PluginLog(level=level, message=message):
                    _log.log(
                        _LOG_LEVELS.get(level.lower(), logging.INFO),
                        "[%s] %s",
                        plugin_name,
                        message,
                    )
                case PluginNotification(title=title, body=body):
                    await sink.send(Notification(f"{title}: {body}"))
                case StateChange(key=key, value=value):
                    await sink.send(
                        PluginEventRelayed(plugin_name, "state_change", {key: value})
                    )
                case CustomEvent(event_type=event_type, data=data):
                    await sink.send(
                        PluginEventRelayed(plugin_name, event_type, dict(data))
                    )

    def _get(self, name: str) -> _LoadedPlugin:
        loaded = self._plugins.get(name)
        if loaded is None:
            raise PluginNotFound(name)
        return loaded


def _import_entry_point(entry_point: str) -> Callable[[], Plugin]:
    module_name, _, attr = entry_point.partition(":")
    if not module_name or not attr:
        raise InvalidConfig(f"Entry point must look like 'module:attr', got {entry_point!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)
