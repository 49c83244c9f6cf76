"""Analysis package - script routing, normalization, context and local rules."""

from gatekeeper.analysis.classifier import (
    LocalClassifier,
    calculate_severity,
    merge_categories,
)
from gatekeeper.analysis.context import (
    ContextEvaluator,
    context_evaluator,
    default_factors,
)
from gatekeeper.analysis.normalizer import (
    NormalizationResult,
    TextNormalizer,
    has_obfuscation,
    normalize,
)
from gatekeeper.analysis.script import (
    LanguageAnalysis,
    analyze_language,
    detect_script,
    has_non_latin_content,
    is_latin_script,
)

__all__ = [
    # Classifier
    "LocalClassifier",
    "calculate_severity",
    "merge_categories",
    # Context
    "ContextEvaluator",
    "context_evaluator",
    "default_factors",
    # Normalizer
    "NormalizationResult",
    "TextNormalizer",
    "has_obfuscation",
    "normalize",
    # Script
    "LanguageAnalysis",
    "analyze_language",
    "detect_script",
    "has_non_latin_content",
    "is_latin_script",
]
