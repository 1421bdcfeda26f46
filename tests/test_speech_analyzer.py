"""Tests for speech analysis: tokenizer, window speed, repetition, pauses, confidence."""

import pytest

from core.models import SpeechMetrics
from speech.analyzer import SpeechStressAnalyzer, StressConfig
from speech.text import extract_words

INDICATOR_PREFIXES = ("Rapid speech", "Hesitant speech", "Long pauses")


@pytest.fixture
def analyzer(clock):
    return SpeechStressAnalyzer(StressConfig(), clock=clock)


class TestExtractWords:
    def test_lowercases_and_strips_punctuation(self):
        assert extract_words("Help! Someone's HERE, now.") == ["help", "someone", "s", "here", "now"]

    def test_empty_and_whitespace(self):
        assert extract_words("") == []
        assert extract_words("   \n\t ") == []
        assert extract_words("?!...") == []


class TestEmptyInput:
    def test_first_empty_event_is_all_zero(self, analyzer):
        m = analyzer.analyze_event("", False)
        assert m == SpeechMetrics()
        assert m.stress_indicators == []

    def test_repeated_empty_events_stay_at_zero(self, analyzer, clock):
        for i in range(40):
            clock.advance(250 if i % 2 else 1800)
            m = analyzer.analyze_event("", False)
            assert m.confidence == 0
            assert m.stress_indicators == []
            assert m.pause_count == 0

    def test_single_event_has_no_pauses(self, analyzer):
        m = analyzer.analyze_event("hello there", True)
        assert m.pause_count == 0
        assert m.average_pause_duration_ms == 0.0
        # Zero elapsed span: no speed yet
        assert m.words_per_second == 0.0


class TestSpeakingSpeed:
    def test_confidence_never_drops_as_speed_rises(self, clock):
        confidences = []
        for per_fragment in range(1, 9):
            a = SpeechStressAnalyzer(StressConfig(), clock=clock)
            words = iter(f"word{i}" for i in range(100))
            for k in range(4):
                if k:
                    clock.advance(900)
                m = a.analyze_event(" ".join(next(words) for _ in range(per_fragment)), True)
            assert m.repeated_words == 0
            assert m.pause_count == 0
            confidences.append(m.confidence)
        # 4 fragments over 2.7 s: 1.5, 3.0, 4.4, 5.9, 7.4 ... wps
        assert confidences == [0, 0, 9, 24, 30, 30, 30, 30]

    def test_fast_speech_indicator_and_score(self, analyzer, clock):
        analyzer.analyze_event("one two three four five six seven eight nine ten", False)
        clock.advance(500)
        m = analyzer.analyze_event("alpha beta gamma delta epsilon zeta eta theta iota kappa", False)
        assert m.words_per_second == pytest.approx(40.0)
        assert m.stress_indicators == ["Rapid speech (40.0 wps)"]
        assert m.pause_count == 0
        # Speed term is capped at 30
        assert m.confidence == 30

    def test_old_events_leave_the_window(self, analyzer, clock):
        analyzer.analyze_event("one two three", True)
        clock.advance(20_000)
        analyzer.analyze_event("four", True)
        clock.advance(20_000)
        m = analyzer.analyze_event("five", True)
        assert [e.text for e in analyzer.events] == ["four", "five"]
        assert m.words_per_second == pytest.approx(2 / 20.0)

    def test_speed_uses_elapsed_span_inside_window(self, clock):
        a = SpeechStressAnalyzer(StressConfig(window_ms=10_000), clock=clock)
        a.analyze_event("one two", True)
        clock.advance(9_000)
        m = a.analyze_event("three four", True)
        assert m.words_per_second == pytest.approx(4 / 9.0)


class TestRepetition:
    def test_excess_repetitions_counted(self, analyzer):
        m = analyzer.analyze_event("help help help help help", True)
        # 5 occurrences, first two are normal
        assert m.repeated_words == 3
        assert m.stress_indicators == ["3 word repetitions detected"]
        assert m.confidence == 15

    def test_short_words_ignored(self, analyzer):
        m = analyzer.analyze_event("no no no no no", True)
        assert m.repeated_words == 0

    def test_two_occurrences_not_repetition(self, analyzer):
        m = analyzer.analyze_event("please please come", True)
        assert m.repeated_words == 0

    def test_history_holds_last_fifty_words(self, analyzer, clock):
        for i in range(6):
            analyzer.analyze_event(" ".join(f"w{i}x{j}" for j in range(10)), True)
            clock.advance(100)
        history = analyzer.word_history
        assert len(history) == 50
        assert history[-1] == "w5x9"
        assert history[0] == "w1x0"


class TestPauses:
    def test_long_gaps_count_as_pauses(self, analyzer, clock):
        analyzer.analyze_event("hello there", True)
        clock.advance(1500)
        analyzer.analyze_event("are you", True)
        clock.advance(1500)
        analyzer.analyze_event("still here", True)
        clock.advance(1500)
        m = analyzer.analyze_event("okay", True)
        # Three gaps between fragments plus the silence since the last spoken fragment
        assert m.pause_count == 4
        assert m.average_pause_duration_ms == pytest.approx(1500.0)
        assert m.confidence == 20

    def test_short_gaps_are_not_pauses(self, analyzer, clock):
        analyzer.analyze_event("hello there", False)
        clock.advance(200)
        analyzer.analyze_event("hello there friend", False)
        clock.advance(200)
        m = analyzer.analyze_event("hello there friend how", True)
        assert m.pause_count == 0
        assert m.average_pause_duration_ms == 0.0

    def test_gap_after_empty_fragment_is_skipped(self, analyzer, clock):
        analyzer.analyze_event("hello", True)
        clock.advance(1500)
        analyzer.analyze_event("", False)
        clock.advance(1500)
        m = analyzer.analyze_event("there", True)
        # hello -> "" gap (1500) and silence since "hello" (3000)
        assert m.pause_count == 2
        assert m.average_pause_duration_ms == pytest.approx(2250.0)

    def test_current_metrics_sees_ongoing_silence(self, analyzer, clock):
        analyzer.analyze_event("hello there friend", True)
        clock.advance(2000)
        m = analyzer.current_metrics()
        assert m.pause_count == 2
        assert m.average_pause_duration_ms == pytest.approx(2000.0)


class TestConfidence:
    def test_combined_stress_gets_bonus(self, analyzer, clock):
        analyzer.analyze_event("fire fire fire fire fire fire", False)
        clock.advance(500)
        m = analyzer.analyze_event("fire fire fire fire fire fire", False)
        assert m.repeated_words == 10
        assert len(m.stress_indicators) == 2
        # speed 30 + repetition 25 + bonus 20
        assert m.confidence == 75
        assert analyzer.should_trigger_early_warning(m)

    def test_confidence_stays_in_range_and_indicators_known(self, analyzer, clock):
        texts = ["wait", "fire fire fire fire", "", "help help help me", "please", "run run run run run"]
        for i in range(30):
            clock.advance(150 if i % 3 else 1200)
            m = analyzer.analyze_event(texts[i % len(texts)], i % 2 == 0)
            assert 0 <= m.confidence <= 100
            for indicator in m.stress_indicators:
                assert indicator.startswith(INDICATOR_PREFIXES) or indicator.endswith("word repetitions detected")

    def test_below_threshold_does_not_trigger(self, analyzer):
        assert not analyzer.should_trigger_early_warning(SpeechMetrics(confidence=59))
        assert analyzer.should_trigger_early_warning(SpeechMetrics(confidence=60))


class TestReset:
    def test_reset_clears_state(self, analyzer, clock):
        analyzer.analyze_event("fire fire fire fire fire fire", False)
        clock.advance(500)
        analyzer.analyze_event("fire fire fire fire fire fire", False)
        analyzer.reset()
        assert analyzer.word_history == []
        assert analyzer.events == []
        clock.advance(5000)
        m = analyzer.analyze_event("", False)
        assert m == SpeechMetrics()


class TestStressConfigFromEnv:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STRESS_WINDOW_MS", raising=False)
        monkeypatch.delenv("EARLY_WARNING_THRESHOLD", raising=False)
        c = StressConfig.from_env()
        assert c.window_ms == 30_000
        assert c.early_warning_threshold == 60

    def test_overrides_and_invalid_values(self, monkeypatch):
        monkeypatch.setenv("STRESS_WINDOW_MS", "10000")
        monkeypatch.setenv("EARLY_WARNING_THRESHOLD", "not-a-number")
        c = StressConfig.from_env()
        assert c.window_ms == 10_000
        assert c.early_warning_threshold == 60
