"""Local rule-table classifier.

No network calls: normalizes the text, runs the rule tables, applies the
context harm-reduction factor and reports a confidence so the fast-path
policy can decide whether a remote opinion is needed.
"""

import time

from gatekeeper.analysis.context import ContextEvaluator, context_evaluator, default_factors
from gatekeeper.analysis.normalizer import TextNormalizer, default_normalizer
from gatekeeper.analysis.rules import (
    CATEGORY_WEIGHTS,
    RULE_TABLES,
    RuleTable,
    has_clean_indicators,
)
from gatekeeper.lib.models import (
    CategoryScores,
    FlaggedSpan,
    LocalMeta,
    LocalProviderResult,
    RuleMatch,
)
from gatekeeper.lib.utils import elapsed_ms

CLEAN_CONFIDENCE = 0.90
NO_MATCH_CONFIDENCE = 0.50
FLAG_THRESHOLD = 0.3
SOFT_CONFIDENCE_SEVERITY_CAP = 0.7

# Heavy context mitigation on a severe term means the verdict hinges on context
HEAVY_REDUCTION = 0.5
SEVERE_RAW = 0.5
CONTEXT_CONFIDENCE_PENALTY = 0.7


def calculate_severity(categories: CategoryScores) -> float:
    """Weighted max over category scores."""
    severity = 0.0
    for category, score in categories.items():
        severity = max(severity, score * CATEGORY_WEIGHTS.get(category, 0.5))
    return min(severity, 1.0)


def merge_categories(*scores: CategoryScores) -> CategoryScores:
    """Per-category max across several score maps."""
    merged: CategoryScores = {}
    for score_map in scores:
        for category, score in score_map.items():
            merged[category] = max(merged.get(category, 0.0), score)
    return merged


def spans_from_matches(matches: list[RuleMatch]) -> list[FlaggedSpan]:
    return [
        FlaggedSpan(
            start=m.start,
            end=m.end,
            original=m.term,
            normalized=m.term.lower(),
            categories=m.categories,
            severity=m.severity,
        )
        for m in matches
    ]


class LocalClassifier:
    """Pattern-based classifier over the static rule tables."""

    name = "local"

    def __init__(
        self,
        normalizer: TextNormalizer | None = None,
        evaluator: ContextEvaluator | None = None,
        rule_tables: tuple[RuleTable, ...] = RULE_TABLES,
        normalize_text: bool = True,
        analyze_context: bool = True,
    ):
        self.normalizer = normalizer or default_normalizer
        self.evaluator = evaluator or context_evaluator
        self.rule_tables = rule_tables
        self.normalize_text = normalize_text
        self.analyze_context = analyze_context

    def classify(self, text: str, context: str | None = None) -> LocalProviderResult:
        """
        Score text against the rule tables.

        Args:
            text: Raw input text
            context: Optional conversational context

        Returns:
            LocalProviderResult with raw and context-adjusted severity
        """
        start = time.perf_counter()

        normalized = self.normalizer.normalize(text).normalized if self.normalize_text else text
        obfuscated = self.normalizer.has_obfuscation(text)

        categories: CategoryScores = {}
        matches: list[RuleMatch] = []
        max_severity = 0.0
        max_confidence = 0.0
        high_priority = False

        for table in self.rule_tables:
            for rule in table.rules:
                match = rule.pattern.search(normalized)
                if match is None:
                    continue

                for category in rule.categories:
                    categories[category] = max(categories.get(category, 0.0), rule.severity)
                max_severity = max(max_severity, rule.severity)

                if table.soft_confidence:
                    if rule.confidence > max_confidence and max_severity < SOFT_CONFIDENCE_SEVERITY_CAP:
                        max_confidence = rule.confidence
                else:
                    max_confidence = max(max_confidence, rule.confidence)

                if table.high_priority:
                    high_priority = True

                matches.append(
                    RuleMatch(
                        term=match.group(0),
                        start=match.start(),
                        end=match.end(),
                        table=table.name,
                        categories=list(rule.categories),
                        severity=rule.severity,
                        confidence=rule.confidence,
                    )
                )

        clean = not matches and has_clean_indicators(text)
        if clean:
            max_confidence = CLEAN_CONFIDENCE
        if max_confidence == 0.0:
            max_confidence = NO_MATCH_CONFIDENCE

        if self.analyze_context:
            factors = self.evaluator.evaluate(text, context)
            reduction = self.evaluator.calculate_harm_reduction(factors)
        else:
            factors = default_factors()
            reduction = 1.0

        raw_severity = max_severity
        adjusted_severity = min(raw_severity * reduction, 1.0)
        if reduction < HEAVY_REDUCTION and raw_severity > SEVERE_RAW:
            max_confidence *= CONTEXT_CONFIDENCE_PENALTY

        detected_terms = [m.term for m in matches]

        return LocalProviderResult(
            provider=self.name,
            flagged=adjusted_severity > FLAG_THRESHOLD,
            confidence=max_confidence,
            categories=categories,
            latency_ms=elapsed_ms(start),
            raw_response={
                "normalized": normalized,
                "harm_reduction": reduction,
                "detected_terms": detected_terms,
                "triggered_high_priority": high_priority,
            },
            normalized=normalized,
            local_meta=LocalMeta(
                has_obfuscation=obfuscated,
                detected_terms=detected_terms,
                matches=matches,
                clean_indicators=clean,
                context_applied=reduction < 1.0,
                context_factors=factors,
                harm_reduction=reduction,
                raw_severity=raw_severity,
                adjusted_severity=adjusted_severity,
                triggered_high_priority=high_priority,
            ),
        )
