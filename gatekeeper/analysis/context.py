"""Context evaluation for flagged content.

Works out how a term is being used (attacking, quoting, discussing,
reclaiming) and who it is aimed at, then turns those signals into a
harm-reduction multiplier for the local classifier.
"""

import re

from gatekeeper.lib.models import ContextFactors, Intent, Sentiment, Target
from gatekeeper.lib.utils import clamp

# =============================================================================
# Pattern Families
# =============================================================================

QUOTE_PATTERNS = [
    re.compile(r"[“”]([^“”]+)[“”]"),
    re.compile(r"(?<!\w)[‘’']([^‘’']+)[‘’'](?!\w)"),
    re.compile(r'"([^"]+)"'),
    re.compile(
        r"\b(he|she|they|someone|the person)\s+"
        r"(said|called|yelled|screamed|wrote|texted|messaged|told)\s+",
        re.IGNORECASE,
    ),
    re.compile(r"\b(called me|told me|said to me|yelled at me)\s+", re.IGNORECASE),
    re.compile(r"\bwas called\s+", re.IGNORECASE),
    re.compile(r"\bi was told\s+", re.IGNORECASE),
    re.compile(r"\bquote[sd]?\s*:?\s*", re.IGNORECASE),
]

EDUCATIONAL_PATTERNS = [
    re.compile(r"\b(historically|etymology|linguistic|academic|scholarly)\b", re.IGNORECASE),
    re.compile(
        r"\b(the word|the term|the phrase|the slur)\s+[\"']?\w+[\"']?\s+"
        r"(means|refers|originated|comes from)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(defined as|definition of|meaning of)\b", re.IGNORECASE),
    re.compile(r"\b(in the context of|when discussing|when studying)\b", re.IGNORECASE),
    re.compile(
        r"\b(research|study|analysis|paper|article|book)\s+(on|about|regarding)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(history of|origin of|evolution of)\b", re.IGNORECASE),
]

RECLAMATION_PATTERNS = [
    re.compile(
        r"\b(as a|being a|i'm a|i am a|we as)\s+(black|gay|queer|trans|disabled|jewish)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(my|our)\s+(community|people|culture|identity)\b", re.IGNORECASE),
    re.compile(r"\b(we|us)\s+(can say|use the word|reclaim)\b", re.IGNORECASE),
    re.compile(r"\bin (our|my) (community|culture)\b", re.IGNORECASE),
    re.compile(r"\breclaim(ing|ed)?\b", re.IGNORECASE),
    re.compile(r"\bown(ing|ed)?\s+(the word|it|that)\b", re.IGNORECASE),
]

SELF_REFERENCE_PATTERNS = [
    re.compile(r"\b(i am|i'm|i was|i've been|i feel like)\s+(such )?(a|an)?\s*", re.IGNORECASE),
    re.compile(r"\b(myself|me)\b", re.IGNORECASE),
    re.compile(r"\bi\s+(called|call)\s+myself\b", re.IGNORECASE),
]

ATTACK_PATTERNS = [
    re.compile(r"\b(you|you're|your|they|they're|their|those)\s+(are|is|a|an)?\s*", re.IGNORECASE),
    re.compile(r"\b(all|every|typical)\s+\w+s?\s+(are|is)\b", re.IGNORECASE),
    re.compile(r"\b(go back|get out|leave|die|kill yourself)\b", re.IGNORECASE),
    re.compile(r"\b(should be|deserve to|need to)\s+(die|suffer|be killed|be hurt)\b", re.IGNORECASE),
    re.compile(r"\b(hate|despise|loathe)\s+(you|them|all)\b", re.IGNORECASE),
]

SELF_TARGET_RE = re.compile(r"\b(i|me|myself|i'm|i am)\b")
SELF_DESCRIPTION_RE = re.compile(r"\b(i'm|i am|i feel|myself)\s+(a|an|such|like|so)?\s*\w*\b")
PERSON_TARGET_RE = re.compile(r"\b(you|you're|your|you are)\b")
GROUP_TARGET_RE = re.compile(r"\b(all|every|those|these|they|them|their)\s+\w+s?\b")
ABSTRACT_TARGET_RE = re.compile(
    r"\b(the word|the term|the concept|in general|generally|typically)\b"
)

POSITIVE_WORDS = [
    "love", "proud", "beautiful", "amazing", "wonderful", "great", "awesome",
    "support", "celebrate", "embrace", "empower", "uplift", "inspiring",
]

NEGATIVE_WORDS = [
    "hate", "despise", "disgusting", "terrible", "horrible", "awful", "vile",
    "die", "kill", "destroy", "eliminate", "remove", "eradicate", "stupid",
    "ugly", "worthless", "pathetic", "trash", "garbage", "scum", "idiot",
]


def _word_start_re(words: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(rf"\b{re.escape(word)}") for word in words]


POSITIVE_RES = _word_start_re(POSITIVE_WORDS)
NEGATIVE_RES = _word_start_re(NEGATIVE_WORDS)

# =============================================================================
# Harm Reduction Factors
# =============================================================================

INTENT_FACTORS: dict[Intent, float] = {
    Intent.RECLAIM: 0.2,
    Intent.EDUCATIONAL: 0.3,
    Intent.QUOTE: 0.5,
    Intent.DISCUSS: 0.7,
    Intent.ATTACK: 1.2,
}

TARGET_FACTORS: dict[Target, float] = {
    Target.PERSON: 1.3,
    Target.GROUP: 1.2,
}

SENTIMENT_FACTORS: dict[Sentiment, float] = {
    Sentiment.NEGATIVE: 1.2,
    Sentiment.POSITIVE: 0.8,
}

MIN_REDUCTION = 0.1
MAX_REDUCTION = 2.0


def _any_match(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def default_factors() -> ContextFactors:
    """Neutral factors for when context analysis is disabled."""
    return ContextFactors(intent=Intent.UNKNOWN, target=Target.NONE, sentiment=Sentiment.NEUTRAL)


class ContextEvaluator:
    """Derives ContextFactors from text and optional conversational context."""

    def evaluate(self, text: str, context: str | None = None) -> ContextFactors:
        """
        Analyze the usage context of a piece of text.

        Conversational context only feeds the educational and reclamation
        checks. Everything else looks at the text alone.
        """
        framing = f"{context}\n{text}" if context else text

        is_quoted = self.detect_quoted_speech(text)
        is_educational = self.detect_educational(framing)
        is_reclamation = self.detect_reclamation(framing)
        is_self_referential = self.detect_self_reference(text)

        intent = self.classify_intent(
            text,
            is_quoted=is_quoted,
            is_educational=is_educational,
            is_reclamation=is_reclamation,
        )

        return ContextFactors(
            intent=intent,
            target=self.identify_target(text),
            is_reclamation=is_reclamation,
            is_educational=is_educational,
            is_quoted=is_quoted,
            is_self_referential=is_self_referential,
            sentiment=self.analyze_sentiment(text),
        )

    def detect_quoted_speech(self, text: str) -> bool:
        return _any_match(QUOTE_PATTERNS, text)

    def detect_educational(self, text: str) -> bool:
        return _any_match(EDUCATIONAL_PATTERNS, text)

    def detect_reclamation(self, text: str) -> bool:
        return _any_match(RECLAMATION_PATTERNS, text)

    def detect_self_reference(self, text: str) -> bool:
        return _any_match(SELF_REFERENCE_PATTERNS, text)

    def classify_intent(
        self,
        text: str,
        *,
        is_quoted: bool = False,
        is_educational: bool = False,
        is_reclamation: bool = False,
    ) -> Intent:
        """Priority: reclaim > educational > quote > attack > discuss."""
        if is_reclamation:
            return Intent.RECLAIM
        if is_educational:
            return Intent.EDUCATIONAL
        if is_quoted:
            return Intent.QUOTE
        if _any_match(ATTACK_PATTERNS, text):
            return Intent.ATTACK
        return Intent.DISCUSS

    def identify_target(self, text: str) -> Target:
        """Priority: self > person > group > abstract > none."""
        lower = text.lower()

        if SELF_TARGET_RE.search(lower) and SELF_DESCRIPTION_RE.search(lower):
            return Target.SELF
        if PERSON_TARGET_RE.search(lower):
            return Target.PERSON
        if GROUP_TARGET_RE.search(lower):
            return Target.GROUP
        if ABSTRACT_TARGET_RE.search(lower):
            return Target.ABSTRACT
        return Target.NONE

    def analyze_sentiment(self, text: str) -> Sentiment:
        """Bag-of-words sentiment; one word of difference stays neutral."""
        lower = text.lower()
        positive = sum(1 for p in POSITIVE_RES if p.search(lower))
        negative = sum(1 for p in NEGATIVE_RES if p.search(lower))

        if negative > positive + 1:
            return Sentiment.NEGATIVE
        if positive > negative + 1:
            return Sentiment.POSITIVE
        return Sentiment.NEUTRAL

    def calculate_harm_reduction(self, factors: ContextFactors) -> float:
        """
        Multiplier applied to raw severity.

        Values below 1.0 mitigate, values above 1.0 aggravate. The result is
        clamped to [0.1, 2.0].
        """
        reduction = 1.0

        if factors.is_reclamation:
            reduction *= 0.2
        if factors.is_educational:
            reduction *= 0.3
        if factors.is_quoted:
            reduction *= 0.5
        if factors.is_self_referential and factors.target == Target.SELF:
            reduction *= 0.6

        reduction *= INTENT_FACTORS.get(factors.intent, 1.0)
        reduction *= TARGET_FACTORS.get(factors.target, 1.0)
        reduction *= SENTIMENT_FACTORS.get(factors.sentiment, 1.0)

        return clamp(reduction, MIN_REDUCTION, MAX_REDUCTION)


context_evaluator = ContextEvaluator()
