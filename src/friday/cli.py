"""CLI entry point for friday.

Parses arguments, configures logging, and runs assistant sessions.

Subcommands:
    (none)   - run one or more assistant sessions (default)
    plugins  - list loaded plugins
    config   - print the effective configuration
"""

import argparse
import asyncio
import dataclasses
import sys

from friday.config import FridayConfig, load_config
from friday.constants import DEFAULT_EVENT_CAPACITY
from friday.errors import ConfigError, PluginError


def _add_engine_args(parser: argparse.ArgumentParser, *, suppress: bool = False) -> None:
    """Engine and config arguments shared across subcommands.

    With *suppress*, unset flags leave no default behind, so values given
    before the subcommand survive the subparser.
    """
    unset = argparse.SUPPRESS if suppress else None
    off = argparse.SUPPRESS if suppress else False
    parser.add_argument(
        "--config", default=unset, help="Path to a JSON config file"
    )
    parser.add_argument(
        "--wake",
        choices=["mock", "command", "energy"],
        default=unset,
        help="Wake detector (default: from config, else mock)",
    )
    parser.add_argument(
        "--wake-command",
        nargs="+",
        default=unset,
        help="Keyword-spotting command for --wake command",
    )
    parser.add_argument(
        "--asr",
        choices=["mock", "whisper"],
        default=unset,
        help="Speech-to-text engine",
    )
    parser.add_argument(
        "--whisper-model", default=unset, help="whisper.cpp model path"
    )
    parser.add_argument(
        "--tts",
        choices=["mock", "piper"],
        default=unset,
        help="Text-to-speech engine",
    )
    parser.add_argument(
        "--piper-model", default=unset, help="piper voice model path"
    )
    parser.add_argument(
        "--no-plugins",
        action="store_true",
        default=off,
        help="Disable the plugin runtime",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with subcommand support."""
    parser = argparse.ArgumentParser(
        description="Voice assistant: wake, listen, act and respond"
    )
    _add_engine_args(parser)
    parser.add_argument(
        "--sessions",
        type=int,
        default=1,
        help="Number of sessions to run (default: 1)",
    )
    parser.add_argument(
        "--ui-events",
        action="store_true",
        help="Print events as JSON lines on stdout for a UI process",
    )
    parser.add_argument(
        "--utterance",
        action="append",
        default=None,
        help="Scripted utterance for the mock ASR (repeatable)",
    )
    parser.add_argument(
        "--user-name", default=None, help="Name used in greetings"
    )
    parser.add_argument(
        "--no-dialogue",
        action="store_true",
        help="Skip multi-turn slot filling",
    )
    parser.add_argument(
        "--device", type=int, default=None, help="Audio input device"
    )
    parser.add_argument(
        "--list-devices", action="store_true", help="List audio devices"
    )

    subparsers = parser.add_subparsers(dest="subcommand")

    plugins_parser = subparsers.add_parser("plugins", help="List loaded plugins")
    _add_engine_args(plugins_parser, suppress=True)

    config_parser = subparsers.add_parser(
        "config", help="Print the effective configuration as JSON"
    )
    _add_engine_args(config_parser, suppress=True)

    return parser


def list_audio_devices() -> None:
    """Display available audio input devices."""
    import sounddevice as sd
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title="Audio Input Devices")
    table.add_column("ID", style="cyan")
    table.add_column("Device", style="white")
    table.add_column("Default", style="green")
    for i, d in enumerate(sd.query_devices()):
        if d["max_input_channels"] > 0:
            is_default = "Yes" if i == sd.default.device[0] else ""
            table.add_row(str(i), d["name"], is_default)
    console.print(table)


def apply_overrides(config: FridayConfig, args: argparse.Namespace) -> FridayConfig:
    """Layer command-line flags over the loaded config."""
    replace = dataclasses.replace
    wake, asr, tts = config.wake, config.asr, config.tts
    if args.wake:
        wake = replace(wake, kind=args.wake)
    if args.wake_command:
        wake = replace(wake, command=tuple(args.wake_command))
    if args.asr:
        asr = replace(asr, kind=args.asr)
    if args.whisper_model:
        asr = replace(asr, model_path=args.whisper_model)
    if getattr(args, "utterance", None):
        asr = replace(asr, utterances=tuple(args.utterance))
    if args.tts:
        tts = replace(tts, kind=args.tts)
    if args.piper_model:
        tts = replace(tts, model_path=args.piper_model)

    config = replace(config, wake=wake, asr=asr, tts=tts)
    if args.no_plugins:
        config = replace(config, plugins=replace(config.plugins, enabled=False))
    if getattr(args, "user_name", None):
        config = replace(
            config, matcher=replace(config.matcher, user_name=args.user_name)
        )
    if getattr(args, "no_dialogue", False):
        config = replace(config, use_dialogue=False)
    if getattr(args, "device", None) is not None:
        config = replace(config, audio=replace(config.audio, device=args.device))
    return config


async def _run_sessions(args: argparse.Namespace, config: FridayConfig) -> int:
    """Run the assistant pipeline for ``--sessions`` turns."""
    from friday.assistant import build_assistant
    from friday.events import EventBus, JsonLinesWriter, log_event
    from friday.orchestrator import run_with_bus

    assistant = await build_assistant(config)
    bus = EventBus(config.event_capacity or DEFAULT_EVENT_CAPACITY)
    handler = JsonLinesWriter(sys.stdout) if args.ui_events else log_event
    try:
        failures = await run_with_bus(
            assistant.orchestrator, bus, handler, max(args.sessions, 0)
        )
    finally:
        if assistant.runtime is not None:
            await assistant.runtime.unload_all()
    return 1 if args.sessions and failures == args.sessions else 0


async def _list_plugins(config: FridayConfig) -> int:
    from rich.console import Console

    from friday.assistant import build_runtime

    runtime = await build_runtime(config)
    console = Console()
    manifests = runtime.list_plugins()
    if not manifests:
        console.print("No plugins loaded")
    for manifest in manifests:
        console.print(manifest.describe())
    await runtime.unload_all()
    return 0


def _show_config(config: FridayConfig) -> int:
    from rich.console import Console

    Console().print_json(data=config.to_dict(), default=str)
    return 0


def main() -> int:
    """CLI entry point. Returns exit code."""
    from friday.env import LOGGER, configure_logging

    configure_logging()

    parser = build_arg_parser()
    args = parser.parse_args()

    if getattr(args, "list_devices", False):
        list_audio_devices()
        return 0

    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        LOGGER.error("Config error: %s", exc)
        return 2

    if args.subcommand == "config":
        return _show_config(config)

    try:
        if args.subcommand == "plugins":
            return asyncio.run(_list_plugins(config))
        return asyncio.run(_run_sessions(args, config))
    except PluginError as exc:
        LOGGER.error("Plugin error: %s", exc)
        return 2
    except KeyboardInterrupt:
        LOGGER.info("Stopping...")
        return 130
