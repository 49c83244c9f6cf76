"""Tests for the local rule-table classifier."""

import pytest

from gatekeeper.analysis.classifier import (
    LocalClassifier,
    calculate_severity,
    merge_categories,
    spans_from_matches,
)
from gatekeeper.analysis.rules import has_clean_indicators
from gatekeeper.lib.models import ModerationCategory

HARASSMENT = ModerationCategory.HARASSMENT
HATE = ModerationCategory.HATE_SPEECH
PROFANITY = ModerationCategory.PROFANITY
THREATS = ModerationCategory.THREATS
SELF_HARM = ModerationCategory.SELF_HARM


@pytest.fixture
def classifier() -> LocalClassifier:
    return LocalClassifier()


def test_harassment_is_amplified_by_context(classifier):
    result = classifier.classify("fuck you, you stupid idiot")
    meta = result.local_meta

    assert result.categories[HARASSMENT] == pytest.approx(0.7)
    assert meta.raw_severity == pytest.approx(0.7)
    assert meta.harm_reduction == pytest.approx(1.872)
    assert meta.adjusted_severity == 1.0
    assert result.confidence == pytest.approx(0.85)
    assert result.flagged
    assert meta.adjusted_severity >= 0.7


def test_reclaimed_term_scores_below_allow_threshold(classifier):
    result = classifier.classify("as a gay person, I reclaim queer")
    meta = result.local_meta

    assert "queer" in meta.detected_terms
    assert meta.raw_severity == pytest.approx(0.6)
    assert meta.adjusted_severity == pytest.approx(0.06)
    assert meta.adjusted_severity < 0.1
    # Heavy mitigation on a severe term lowers confidence
    assert result.confidence == pytest.approx(0.7 * 0.7)
    assert not result.flagged


def test_kill_yourself_hits_threats_and_self_harm(classifier):
    result = classifier.classify("kill yourself")

    assert result.categories[THREATS] == pytest.approx(0.95)
    assert result.categories[SELF_HARM] == pytest.approx(0.95)
    assert result.local_meta.triggered_high_priority


def test_clean_greeting(classifier):
    result = classifier.classify("hello, how are you?")

    assert result.local_meta.clean_indicators
    assert result.local_meta.detected_terms == []
    assert result.confidence == pytest.approx(0.9)
    assert result.local_meta.adjusted_severity == 0.0
    assert not result.flagged


def test_unmatched_long_text_has_neutral_confidence(classifier):
    result = classifier.classify("the committee will reconvene after the holiday break")
    assert result.categories == {}
    assert result.confidence == pytest.approx(0.5)


def test_obfuscated_input_is_normalized_before_matching(classifier):
    result = classifier.classify("f.u.c.k y0u")

    assert result.normalized == "fuck you"
    assert result.local_meta.has_obfuscation
    assert HARASSMENT in result.categories


def test_profanity_confidence_does_not_override_severe_match(classifier):
    # The slur sets severity 0.75 at confidence 0.80; "damn" has higher
    # confidence but severity is already past 0.7
    assert classifier.classify("what a retard, damn").confidence == pytest.approx(0.80)
    assert classifier.classify("damn it").confidence == pytest.approx(0.85)


def test_match_offsets_point_into_normalized_text(classifier):
    result = classifier.classify("well DAMN that hurt")
    match = result.local_meta.matches[0]

    assert result.normalized[match.start : match.end] == "damn"
    spans = spans_from_matches(result.local_meta.matches)
    assert spans[0].original == "damn"
    assert spans[0].categories == [PROFANITY]


def test_context_analysis_can_be_disabled():
    classifier = LocalClassifier(analyze_context=False)
    result = classifier.classify("fuck you, you stupid idiot")

    assert result.local_meta.harm_reduction == 1.0
    assert result.local_meta.adjusted_severity == pytest.approx(0.7)
    assert not result.local_meta.context_applied


def test_calculate_severity_weights_categories():
    assert calculate_severity({}) == 0.0
    assert calculate_severity({PROFANITY: 1.0}) == pytest.approx(0.4)
    assert calculate_severity({PROFANITY: 1.0, HARASSMENT: 0.5}) == pytest.approx(0.45)
    assert calculate_severity({HATE: 0.9}) == pytest.approx(0.9)


def test_merge_categories_takes_max():
    merged = merge_categories({HATE: 0.2, PROFANITY: 0.9}, {HATE: 0.7}, {})
    assert merged == {HATE: 0.7, PROFANITY: 0.9}


def test_clean_indicators():
    assert has_clean_indicators("ok")
    assert has_clean_indicators("thanks for the detailed explanation yesterday")
    assert not has_clean_indicators("this sentence is long enough to need a rule")
    assert not has_clean_indicators("wow!!")
