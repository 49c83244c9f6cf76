"""Fast-path policy: decide obvious cases locally.

The first matching rule wins:

1. non-Latin or mixed script -> escalate
2. an always-verify category scored above 0.3 -> escalate
3. local confidence below the floor -> escalate
4. adjusted severity at or above the block threshold -> deny
5. adjusted severity at or below the allow threshold with no detected
   terms -> allow
6. anything else -> escalate

Short or ambiguous inputs without context are never denied here: a lone
word like "negro" or "fag" means something harmless in another language
or dialect often enough that a remote classifier has to look at it.
"""

import logging
import re
from dataclasses import dataclass

from gatekeeper.analysis.script import LanguageAnalysis
from gatekeeper.config import FastPathConfig
from gatekeeper.lib.models import LocalProviderResult, ModerationAction

logger = logging.getLogger(__name__)

ALWAYS_VERIFY_SCORE = 0.3
SHORT_TEXT_CHARS = 5
SINGLE_WORD_CHARS = 10

# Slurs in English that are ordinary words elsewhere
HOMOPHONE_TRAPS = frozenset(
    {
        "negro",
        "negra",
        "mi negro",
        "mi negra",
        "el negro",
        "la negra",
        "niger",
        "fag",
        "fags",
        "faggot",
        "faggots",
        "kike",
        "chink",
        "spic",
        "gook",
        "dyke",
    }
)

_WHITESPACE_RE = re.compile(r"\s+")


def is_short_ambiguous(text: str) -> bool:
    """Too short or too ambiguous to deny without context."""
    stripped = _WHITESPACE_RE.sub(" ", text.strip().lower())
    if len(stripped) <= SHORT_TEXT_CHARS:
        return True
    if " " not in stripped and len(stripped) <= SINGLE_WORD_CHARS:
        return True
    return stripped.strip(".,!?;:'\"") in HOMOPHONE_TRAPS


def should_override_deny(text: str, context: str | None) -> bool:
    return not context and is_short_ambiguous(text)


@dataclass
class FastPathDecision:
    """Verdict of the local policy."""

    can_fast_path: bool
    action: ModerationAction
    reason: str
    overridden: bool = False


class FastPathPolicy:
    """Local decision policy over LocalClassifier output."""

    def __init__(self, config: FastPathConfig | None = None):
        self.config = config or FastPathConfig()

    def evaluate(
        self,
        local_result: LocalProviderResult,
        language: LanguageAnalysis,
        text: str = "",
        context: str | None = None,
    ) -> FastPathDecision:
        """
        Decide whether the local result is enough.

        `action` carries the policy verdict even when the fast path is
        disabled, so callers can fall back to it.
        """
        decision = self._decide(local_result, language)

        if decision.action == ModerationAction.DENY and should_override_deny(text, context):
            decision = FastPathDecision(
                can_fast_path=False,
                action=ModerationAction.ESCALATE,
                reason="Short or ambiguous input without context, needs verification",
                overridden=True,
            )

        if not self.config.enabled and decision.can_fast_path:
            decision = FastPathDecision(
                can_fast_path=False,
                action=decision.action,
                reason=f"Fast path disabled ({decision.reason})",
                overridden=decision.overridden,
            )
        return decision

    def _decide(
        self, local_result: LocalProviderResult, language: LanguageAnalysis
    ) -> FastPathDecision:
        cfg = self.config
        meta = local_result.local_meta

        if language.should_skip_fast_path:
            return FastPathDecision(False, ModerationAction.ESCALATE, language.reason)

        for category in cfg.always_verify_categories:
            score = local_result.categories.get(category, 0.0)
            if score > ALWAYS_VERIFY_SCORE:
                return FastPathDecision(
                    False,
                    ModerationAction.ESCALATE,
                    f"High-priority category {category.value} detected "
                    f"({score * 100:.0f}%), needs API verification",
                )

        if local_result.confidence < cfg.min_confidence:
            return FastPathDecision(
                False,
                ModerationAction.ESCALATE,
                f"Local confidence {local_result.confidence * 100:.0f}% below threshold "
                f"{cfg.min_confidence * 100:.0f}%",
            )

        if meta.adjusted_severity >= cfg.block_threshold:
            return FastPathDecision(
                True,
                ModerationAction.DENY,
                f"High local severity {meta.adjusted_severity * 100:.0f}% >= "
                f"{cfg.block_threshold * 100:.0f}% threshold",
            )

        if meta.adjusted_severity <= cfg.allow_threshold and not meta.detected_terms:
            reason = (
                "Clean text indicators detected, high confidence allow"
                if meta.clean_indicators
                else f"Low local severity {meta.adjusted_severity * 100:.0f}% <= "
                f"{cfg.allow_threshold * 100:.0f}% threshold"
            )
            return FastPathDecision(True, ModerationAction.ALLOW, reason)

        return FastPathDecision(
            False,
            ModerationAction.ESCALATE,
            f"Local severity {meta.adjusted_severity * 100:.0f}% in uncertain range, needs API",
        )
