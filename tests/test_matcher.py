"""Tests for friday.matcher — rule matching, thresholds and extraction."""

from __future__ import annotations

import re

import pytest

from friday.intents import (
    AppLaunch,
    Greeting,
    Query,
    SystemAction,
    SystemControl,
    Timer,
    Unknown,
    Weather,
    intent_to_dict,
)
from friday.matcher import (
    DEFAULT_RULES,
    IntentMatcher,
    IntentRule,
    format_duration,
    parse_duration,
)


@pytest.fixture
def matcher() -> IntentMatcher:
    return IntentMatcher()


class TestTimers:
    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("set a timer for 5 minutes", 300),
            ("set a timer for 30 seconds", 30),
            ("set a timer for 2 hours", 7200),
            ("set timer 10", 10),
            ("remind me in 1 minute", 60),
        ],
    )
    def test_durations(self, matcher: IntentMatcher, text: str, seconds: int) -> None:
        intent = matcher.parse_intent(text)
        assert isinstance(intent, Timer)
        assert intent.duration_seconds == seconds

    def test_utterance_kept_but_not_compared(self, matcher: IntentMatcher) -> None:
        intent = matcher.parse_intent("set a timer for 5 minutes")
        assert intent.utterance == "set a timer for 5 minutes"
        assert intent == Timer(duration_seconds=300)


class TestParseDuration:
    def test_compound(self) -> None:
        assert parse_duration("1 hour 30 minutes") == 5400

    def test_number_words(self) -> None:
        assert parse_duration("twenty five seconds") == 25
        assert parse_duration("an hour") == 3600

    def test_bare_number_is_seconds(self) -> None:
        assert parse_duration("45") == 45

    def test_no_number(self) -> None:
        assert parse_duration("whenever") is None

    def test_format(self) -> None:
        assert format_duration(300) == "5 minutes"
        assert format_duration(1) == "1 second"
        assert format_duration(3725) == "1 hour, 2 minutes and 5 seconds"


class TestClassification:
    @pytest.mark.parametrize("text", ["hello there", "how are you", "random text"])
    def test_unknown(self, matcher: IntentMatcher, text: str) -> None:
        intent = matcher.parse_intent(text)
        assert isinstance(intent, Unknown)
        assert intent.text == text

    def test_weather_location(self, matcher: IntentMatcher) -> None:
        intent = matcher.parse_intent("what's the weather in New York")
        assert intent == Weather(location="New York")

    def test_weather_without_location(self, matcher: IntentMatcher) -> None:
        assert matcher.parse_intent("what's the weather") == Weather(location=None)

    def test_app_launch(self, matcher: IntentMatcher) -> None:
        assert matcher.parse_intent("open Chrome") == AppLaunch(app_name="Chrome")

    def test_greeting_carries_user_name(self) -> None:
        matcher = IntentMatcher(user_name="Sam")
        assert matcher.parse_intent("hey friday") == Greeting(user_name="Sam")

    def test_unmute_is_not_mute(self, matcher: IntentMatcher) -> None:
        intent = matcher.parse_intent("unmute")
        assert intent == SystemControl(action=SystemAction.UNMUTE)

    def test_volume(self, matcher: IntentMatcher) -> None:
        intent = matcher.parse_intent("volume up please")
        assert intent == SystemControl(action=SystemAction.VOLUME_UP)

    def test_query(self, matcher: IntentMatcher) -> None:
        intent = matcher.parse_intent("tell me about black holes")
        assert isinstance(intent, Query)
        assert intent.question == "black holes"

    def test_whitespace_trimmed(self, matcher: IntentMatcher) -> None:
        assert matcher.parse_intent("  open Chrome  ") == AppLaunch(app_name="Chrome")

    def test_deterministic(self, matcher: IntentMatcher) -> None:
        text = "what's the weather in Paris"
        assert matcher.parse_intent(text) == matcher.parse_intent(text)


class TestRuleSelection:
    def test_tie_keeps_first_registered(self) -> None:
        rules = [
            IntentRule("greeting", re.compile("hello"), 0.8),
            IntentRule("query", re.compile("hello"), 0.8),
        ]
        result = IntentMatcher(rules).match("hello")
        assert result is not None
        assert result.kind == "greeting"
        assert result.rule_index == 0

    def test_higher_confidence_wins(self) -> None:
        rules = [
            IntentRule("greeting", re.compile("hello"), 0.7),
            IntentRule("query", re.compile("hello"), 0.9),
        ]
        result = IntentMatcher(rules).match("hello")
        assert result is not None
        assert result.kind == "query"

    def test_below_threshold_is_unknown(self) -> None:
        rules = [IntentRule("greeting", re.compile("hello"), 0.5)]
        assert isinstance(IntentMatcher(rules).parse_intent("hello"), Unknown)

    def test_at_threshold_is_accepted(self) -> None:
        rules = [IntentRule("greeting", re.compile("hello"), 0.6)]
        assert IntentMatcher(rules).parse_intent("hello") == Greeting()

    def test_default_table_is_shared(self, matcher: IntentMatcher) -> None:
        assert matcher.rules is DEFAULT_RULES
        assert IntentMatcher().rules is DEFAULT_RULES


class TestIntentSerialization:
    def test_tagged_payload_omits_utterance(self) -> None:
        intent = Timer(duration_seconds=300, utterance="set a timer")
        assert intent_to_dict(intent) == {
            "Timer": {"duration_seconds": 300, "label": None}
        }
