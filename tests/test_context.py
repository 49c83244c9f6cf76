"""Tests for context evaluation and harm reduction."""

import itertools

import pytest

from gatekeeper.analysis.context import ContextEvaluator
from gatekeeper.lib.models import ContextFactors, Intent, Sentiment, Target


@pytest.fixture
def evaluator() -> ContextEvaluator:
    return ContextEvaluator()


def test_attack_on_person(evaluator):
    factors = evaluator.evaluate("fuck you, you stupid idiot")
    assert factors.intent == Intent.ATTACK
    assert factors.target == Target.PERSON
    assert factors.sentiment == Sentiment.NEGATIVE
    assert evaluator.calculate_harm_reduction(factors) == pytest.approx(1.2 * 1.3 * 1.2)


def test_reclamation(evaluator):
    factors = evaluator.evaluate("as a gay person, I reclaim queer")
    assert factors.is_reclamation
    assert factors.intent == Intent.RECLAIM
    assert evaluator.calculate_harm_reduction(factors) == pytest.approx(0.1)


def test_context_feeds_educational_and_reclamation_checks(evaluator):
    text = "that word again"
    assert not evaluator.evaluate(text).is_educational

    factors = evaluator.evaluate(text, context="We are reading a paper on the history of slurs")
    assert factors.is_educational
    assert factors.intent == Intent.EDUCATIONAL


def test_quoted_speech(evaluator):
    assert evaluator.detect_quoted_speech('he said "get lost"')
    assert evaluator.detect_quoted_speech("someone called me a name")
    assert evaluator.detect_quoted_speech("she texted 'go away'")
    # Contractions are not quotes
    assert not evaluator.detect_quoted_speech("don't worry, it's fine")


def test_intent_priority(evaluator):
    assert (
        evaluator.classify_intent(
            "you are", is_quoted=True, is_educational=True, is_reclamation=True
        )
        == Intent.RECLAIM
    )
    assert evaluator.classify_intent("you are", is_quoted=True, is_educational=True) == Intent.EDUCATIONAL
    assert evaluator.classify_intent("you are", is_quoted=True) == Intent.QUOTE
    assert evaluator.classify_intent("you are") == Intent.ATTACK
    assert evaluator.classify_intent("the weather is nice") == Intent.DISCUSS


def test_target_priority(evaluator):
    assert evaluator.identify_target("I'm such an idiot") == Target.SELF
    assert evaluator.identify_target("your idea") == Target.PERSON
    assert evaluator.identify_target("all politicians lie") == Target.GROUP
    assert evaluator.identify_target("the word itself") == Target.ABSTRACT
    assert evaluator.identify_target("nice weather") == Target.NONE


def test_sentiment_needs_a_margin(evaluator):
    assert evaluator.analyze_sentiment("I love this, amazing and wonderful") == Sentiment.POSITIVE
    assert evaluator.analyze_sentiment("disgusting, vile trash") == Sentiment.NEGATIVE
    assert evaluator.analyze_sentiment("I hate this but love that") == Sentiment.NEUTRAL
    assert evaluator.analyze_sentiment("hate") == Sentiment.NEUTRAL


def test_harm_reduction_bounds(evaluator):
    for values in itertools.product(
        [True, False],
        [True, False],
        [True, False],
        [True, False],
        list(Intent),
        list(Target),
        list(Sentiment),
    ):
        factors = ContextFactors(
            is_reclamation=values[0],
            is_educational=values[1],
            is_quoted=values[2],
            is_self_referential=values[3],
            intent=values[4],
            target=values[5],
            sentiment=values[6],
        )
        reduction = evaluator.calculate_harm_reduction(factors)
        assert 0.1 <= reduction <= 2.0


def test_neutral_factors_do_not_change_severity(evaluator):
    assert evaluator.calculate_harm_reduction(ContextFactors()) == 1.0
