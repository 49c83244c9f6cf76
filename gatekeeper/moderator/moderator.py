"""The Moderator - entry point of the Gatekeeper engine.

Runs every input through up to four tiers:
1. LOCAL: script routing, normalization, rule tables and the fast-path policy
2. API: the configured primary remote classifier
3. COUNCIL: several remote classifiers vote on borderline cases
4. HUMAN: cases the council cannot settle wait in the review queue

Every call ends with exactly one audit log entry.
"""

import asyncio
import logging
import time
from typing import Any

from gatekeeper.analysis.classifier import (
    LocalClassifier,
    calculate_severity,
    merge_categories,
    spans_from_matches,
)
from gatekeeper.analysis.script import analyze_language
from gatekeeper.config import ModeratorConfig, Settings, get_settings
from gatekeeper.council.council import Council
from gatekeeper.lib.llm import LLMClient
from gatekeeper.lib.models import (
    AuditInput,
    AuditLogEntry,
    CategoryScores,
    CouncilDecision,
    CouncilResult,
    DecisionSource,
    DecisionTier,
    FinalDecision,
    HumanDecision,
    HumanReviewItem,
    HumanReviewReason,
    HumanReviewRef,
    LocalProviderResult,
    ModerationAction,
    ModerationResult,
    ModerationStats,
    ProviderResult,
    QuickCheckResult,
    TierInfo,
)
from gatekeeper.lib.utils import bounded_wait, clamp, elapsed_ms, truncate
from gatekeeper.moderator.fast_path import (
    FastPathDecision,
    FastPathPolicy,
    should_override_deny,
)
from gatekeeper.providers.base import RemoteProvider
from gatekeeper.providers.local import LocalProvider
from gatekeeper.providers.registry import create_provider

logger = logging.getLogger(__name__)

QUICK_CHECK_THRESHOLD = 0.3
OVERRIDE_WARNING = "Short or ambiguous input without context, deny downgraded to escalate"


def _plain_result(result: ProviderResult) -> ProviderResult:
    """Strip subclass fields so the audit log validates back identically."""
    return ProviderResult.model_validate(result.model_dump(include=set(ProviderResult.model_fields)))


class Moderator:
    """
    Tiered moderation engine.

    Holds the local classifier, the primary remote provider and the council.
    The council owns the review queue and audit log.
    """

    def __init__(
        self,
        config: ModeratorConfig | None = None,
        settings: Settings | None = None,
        primary: RemoteProvider | None = None,
        council: Council | None = None,
        llm_client: LLMClient | None = None,
    ):
        """
        Initialize moderator.

        Args:
            config: Engine policy. Defaults to settings.moderator.
            settings: Settings carrying API keys
            primary: Primary remote provider. Built from config.provider
                when omitted.
            council: Council. Built from config.council when omitted.
            llm_client: Shared remote client. When omitted the moderator
                creates one and closes it on exit.
        """
        self.settings = settings or get_settings()
        self.config = config or self.settings.moderator

        self._owns_client = llm_client is None
        self.llm_client = llm_client or LLMClient(self.settings)

        self.classifier = LocalClassifier(
            normalize_text=self.config.normalize_text,
            analyze_context=self.config.analyze_context,
        )
        self.fast_path = FastPathPolicy(self.config.fast_path)
        self.primary = primary or create_provider(
            self.config.provider,
            llm_client=self.llm_client,
            settings=self.settings,
            classifier=self.classifier,
        )
        self.council = council or Council(
            self.config.council,
            llm_client=self.llm_client,
            settings=self.settings,
        )

    async def __aenter__(self) -> "Moderator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the LLM client if this moderator created it."""
        if self._owns_client:
            await self.llm_client.close()

    # =========================================================================
    # Moderation
    # =========================================================================

    async def moderate(self, text: str, context: str | None = None) -> ModerationResult:
        """
        Moderate a piece of text.

        Args:
            text: Raw user input
            context: Optional conversational context (previous messages,
                thread topic)

        Returns:
            Frozen ModerationResult. Remote failures never raise; they fall
            back to the local result with a warning.
        """
        start = time.perf_counter()
        warnings: list[str] = []

        # Tier 1: local
        language = analyze_language(text)
        local_result = self.classifier.classify(text, context)
        local_latency = local_result.latency_ms
        decision = self.fast_path.evaluate(local_result, language, text, context)

        if local_result.local_meta.has_obfuscation:
            warnings.append("Obfuscation detected in input")

        if decision.can_fast_path:
            logger.info(f"Fast path {decision.action.value}: {decision.reason}")
            tier_info = TierInfo(
                tier=DecisionTier.LOCAL,
                reason=decision.reason,
                local_latency_ms=local_latency,
                skipped_api=True,
                skipped_council=True,
                language=language.script,
            )
            severity = local_result.local_meta.adjusted_severity
            return self._finish(
                start=start,
                text=text,
                context=context,
                local_result=local_result,
                primary_result=local_result,
                council_result=None,
                review_item=None,
                action=decision.action,
                severity=severity,
                confidence=local_result.confidence,
                categories=local_result.categories,
                tier_info=tier_info,
                source=DecisionSource.PRIMARY,
                warnings=warnings,
            )

        # Tier 2: primary remote
        logger.info(f"Escalating '{truncate(text, 40)}' past local tier: {decision.reason}")
        remote_text = text if language.should_skip_fast_path else local_result.normalized

        api_start = time.perf_counter()
        primary_result, fallback_reason = await self._run_primary(remote_text, local_result)
        api_latency = elapsed_ms(api_start)

        tier = DecisionTier.API
        if fallback_reason:
            warnings.append(fallback_reason)
            reason = f"{decision.reason}; {fallback_reason}"
            categories = dict(local_result.categories)
        else:
            reason = f"{decision.reason}; decided by {primary_result.provider}"
            categories = merge_categories(primary_result.categories, local_result.categories)

        # Tier 3: council
        council_result: CouncilResult | None = None
        council_latency: float | None = None
        review_item: HumanReviewItem | None = None
        source = DecisionSource.PRIMARY

        if self.config.council.enabled and self.council.should_escalate(primary_result):
            logger.info(
                f"Primary confidence {primary_result.confidence * 100:.0f}% in escalation band, "
                f"convening council"
            )
            council_start = time.perf_counter()
            council_result = await self.council.convene(remote_text, primary_result)
            council_latency = elapsed_ms(council_start)

            for member in council_result.failed_members:
                warnings.append(f"Council member {member} failed or timed out")

            if council_result.votes:
                categories = merge_categories(
                    categories, *(vote.categories for vote in council_result.votes)
                )
                tier = DecisionTier.COUNCIL
                source = DecisionSource.COUNCIL
                reason = council_result.decision_reason
            else:
                reason = f"{reason}; {council_result.decision_reason}"

            if council_result.decision == CouncilDecision.HUMAN_REVIEW:
                tier = DecisionTier.HUMAN
                source = DecisionSource.HUMAN
                review_reason = (
                    HumanReviewReason.LOW_CONFIDENCE
                    if council_result.unanimous
                    else HumanReviewReason.COUNCIL_SPLIT
                )
                review_item = self.council.queue_for_human_review(
                    text,
                    local_result.normalized,
                    _plain_result(primary_result),
                    council_result,
                    review_reason,
                )

        # Final decision
        reduction = local_result.local_meta.harm_reduction
        severity = clamp(calculate_severity(categories) * reduction)
        action = self._final_action(
            severity, council_result, decision, genuine_remote=fallback_reason is None
        )
        confidence = (
            council_result.average_confidence if council_result else primary_result.confidence
        )

        if action == ModerationAction.DENY and should_override_deny(text, context):
            action = ModerationAction.ESCALATE
            warnings.append(OVERRIDE_WARNING)

        tier_info = TierInfo(
            tier=tier,
            reason=reason,
            local_latency_ms=local_latency,
            api_latency_ms=api_latency,
            council_latency_ms=council_latency,
            skipped_api=False,
            skipped_council=council_result is None,
            language=language.script,
        )
        return self._finish(
            start=start,
            text=text,
            context=context,
            local_result=local_result,
            primary_result=primary_result,
            council_result=council_result,
            review_item=review_item,
            action=action,
            severity=severity,
            confidence=confidence,
            categories=categories,
            tier_info=tier_info,
            source=source,
            warnings=warnings,
        )

    async def _run_primary(
        self, text: str, local_result: LocalProviderResult
    ) -> tuple[ProviderResult, str | None]:
        """
        Call the primary provider under a bounded wait.

        Returns:
            Tuple of (result, fallback_reason). fallback_reason is None when
            the result came from a remote classifier.
        """
        primary = self.primary

        if isinstance(primary, LocalProvider):
            return local_result, "Local-only configuration, using local result"

        if not primary.is_available():
            logger.warning(f"Primary provider {primary.name} unavailable, using local result")
            return local_result, f"Primary provider {primary.name} unavailable, using local result"

        try:
            result = await bounded_wait(primary.analyze(text), self.config.primary_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Primary provider {primary.name} timed out after {self.config.primary_timeout}s"
            )
            return local_result, (
                f"Primary provider {primary.name} timed out after "
                f"{self.config.primary_timeout}s, using local result"
            )
        except Exception as e:
            logger.error(f"Primary provider {primary.name} failed: {e}")
            return local_result, f"Primary provider {primary.name} failed ({e}), using local result"

        logger.info(
            f"Primary {primary.name}: flagged={result.flagged} "
            f"confidence={result.confidence:.2f} ({result.latency_ms:.0f}ms)"
        )
        return result, None

    def _final_action(
        self,
        severity: float,
        council_result: CouncilResult | None,
        decision: FastPathDecision,
        genuine_remote: bool,
    ) -> ModerationAction:
        if council_result is not None and council_result.votes:
            if council_result.decision == CouncilDecision.FLAGGED:
                return ModerationAction.DENY
            if council_result.decision == CouncilDecision.CLEAN:
                return ModerationAction.ALLOW
            return ModerationAction.ESCALATE

        if genuine_remote:
            if severity >= self.config.deny_threshold:
                return ModerationAction.DENY
            if severity < self.config.allow_threshold:
                return ModerationAction.ALLOW
            return ModerationAction.ESCALATE

        return decision.action

    def _finish(
        self,
        *,
        start: float,
        text: str,
        context: str | None,
        local_result: LocalProviderResult,
        primary_result: ProviderResult,
        council_result: CouncilResult | None,
        review_item: HumanReviewItem | None,
        action: ModerationAction,
        severity: float,
        confidence: float,
        categories: CategoryScores,
        tier_info: TierInfo,
        source: DecisionSource,
        warnings: list[str],
    ) -> ModerationResult:
        """Record the audit entry and build the frozen result."""
        processing_time = elapsed_ms(start)

        entry = self.council.audit_log.record(
            input=AuditInput(original=text, normalized=local_result.normalized, context=context),
            local_result=local_result,
            primary_result=_plain_result(primary_result),
            escalated=council_result is not None,
            council_result=council_result,
            final_decision=FinalDecision(
                flagged=action == ModerationAction.DENY,
                action=action,
                confidence=confidence,
                decision_source=source,
            ),
            tier_info=tier_info,
            human_review=(
                HumanReviewRef(item_id=review_item.id, status=review_item.status)
                if review_item
                else None
            ),
            processing_time_ms=processing_time,
        )

        logger.info(
            f"Moderation {action.value} at tier {tier_info.tier.value} "
            f"(severity {severity:.2f}, {processing_time:.0f}ms)"
        )

        return ModerationResult(
            action=action,
            severity=clamp(severity),
            confidence=clamp(confidence),
            categories=categories,
            flagged_spans=spans_from_matches(local_result.local_meta.matches),
            tier_info=tier_info,
            warnings=warnings,
            context_factors=local_result.local_meta.context_factors,
            original=text,
            normalized=local_result.normalized,
            processing_time_ms=processing_time,
            review_item_id=review_item.id if review_item else None,
            audit_entry_id=entry.id,
        )

    def quick_check(self, text: str) -> QuickCheckResult:
        """Local-only verdict, no network."""
        start = time.perf_counter()
        result = self.classifier.classify(text)
        severity = result.local_meta.adjusted_severity
        return QuickCheckResult(
            flagged=severity > QUICK_CHECK_THRESHOLD,
            severity=severity,
            latency_ms=elapsed_ms(start),
        )

    # =========================================================================
    # Human Review and Audit
    # =========================================================================

    def get_human_review_queue(self) -> list[HumanReviewItem]:
        return self.council.get_human_review_queue()

    def claim_review_item(self, item_id: str, reviewer: str) -> HumanReviewItem:
        return self.council.claim_review_item(item_id, reviewer)

    def submit_human_decision(self, item_id: str, decision: HumanDecision) -> bool:
        return self.council.submit_human_decision(item_id, decision)

    def get_audit_log(self, limit: int | None = None) -> list[AuditLogEntry]:
        return self.council.audit_log.get(limit)

    def export_audit_log(self) -> str:
        return self.council.audit_log.export()

    def get_stats(self) -> ModerationStats:
        return self.council.get_stats()

    def get_provider_info(self) -> dict[str, Any]:
        """Primary provider description, council members and fast-path state."""
        return {
            "primary": self.primary.get_info(),
            "council": self.council.get_members() if self.config.council.enabled else [],
            "fast_path_enabled": self.config.fast_path.enabled,
        }


def create_moderator(
    config: ModeratorConfig | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> Moderator:
    """Create a Moderator. Extra keyword arguments go to the constructor."""
    return Moderator(config=config, settings=settings, **kwargs)
