"""Tests for friday.cli — argument parsing, overrides and subcommands."""

from __future__ import annotations

import json
import sys

from friday.cli import apply_overrides, build_arg_parser, main
from friday.config import FridayConfig


class TestArgParser:
    def test_defaults(self) -> None:
        args = build_arg_parser().parse_args([])
        assert args.sessions == 1
        assert args.subcommand is None
        assert not args.ui_events

    def test_subcommands(self) -> None:
        parser = build_arg_parser()
        assert parser.parse_args(["plugins"]).subcommand == "plugins"
        assert parser.parse_args(["config", "--asr", "whisper"]).asr == "whisper"

    def test_flags_before_subcommand_kept(self) -> None:
        args = build_arg_parser().parse_args(
            ["--config", "x.json", "--no-plugins", "--tts", "piper", "plugins"]
        )
        assert args.subcommand == "plugins"
        assert args.config == "x.json"
        assert args.no_plugins is True
        assert args.tts == "piper"
        assert args.asr is None

    def test_flags_after_subcommand_win(self) -> None:
        args = build_arg_parser().parse_args(["--asr", "mock", "config", "--asr", "whisper"])
        assert args.asr == "whisper"


class TestOverrides:
    def test_flags_replace_config(self) -> None:
        args = build_arg_parser().parse_args(
            [
                "--wake", "energy",
                "--utterance", "hey friday",
                "--utterance", "open Safari",
                "--user-name", "Sam",
                "--no-dialogue",
                "--no-plugins",
            ]
        )
        config = apply_overrides(FridayConfig(), args)
        assert config.wake.kind == "energy"
        assert config.asr.utterances == ("hey friday", "open Safari")
        assert config.matcher.user_name == "Sam"
        assert config.use_dialogue is False
        assert config.plugins.enabled is False

    def test_no_flags_keeps_config(self) -> None:
        args = build_arg_parser().parse_args([])
        assert apply_overrides(FridayConfig(), args) == FridayConfig()


class TestMain:
    def test_config_subcommand_prints_json(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(sys, "argv", ["friday", "config", "--tts", "piper"])
        assert main() == 0
        data = json.loads(capsys.readouterr().out)
        assert data["tts"]["kind"] == "piper"

    def test_ui_events_session(self, tmp_path, monkeypatch, capsys) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "wake": {"delay": 0},
                    "asr": {"partial_interval": 0},
                    "tts": {"delay": 0},
                }
            )
        )
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "friday", "--config", str(path), "--ui-events", "--no-plugins",
                "--utterance", "hey friday",
            ],
        )
        assert main() == 0
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        kinds = [next(iter(line)) for line in lines]
        assert kinds[0] == "WakeDetected"
        assert "IntentRecognized" in kinds
        assert kinds[-1] == "TtsFinished"

    def test_config_file_before_subcommand(self, tmp_path, monkeypatch, capsys) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"tts": {"kind": "piper"}}))
        monkeypatch.setattr(sys, "argv", ["friday", "--config", str(path), "config"])
        assert main() == 0
        data = json.loads(capsys.readouterr().out)
        assert data["tts"]["kind"] == "piper"

    def test_bad_config_file(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.json"
        path.write_text("{")
        monkeypatch.setattr(sys, "argv", ["friday", "--config", str(path)])
        assert main() == 2
