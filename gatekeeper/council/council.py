"""Council of remote classifiers for borderline decisions.

Queries every member concurrently and aggregates the votes with a hybrid
rule: unanimous votes decide automatically, confident majorities decide,
everything else goes to a human.
"""

import asyncio
import logging

from gatekeeper.config import CouncilConfig, Settings
from gatekeeper.council.audit import AuditLog
from gatekeeper.council.review import HumanReviewQueue
from gatekeeper.lib.exceptions import GatekeeperError
from gatekeeper.lib.llm import LLMClient
from gatekeeper.lib.models import (
    CouncilDecision,
    CouncilResult,
    CouncilVote,
    DecisionTier,
    HumanDecision,
    HumanReviewItem,
    HumanReviewReason,
    ModerationStats,
    ProviderResult,
    ReviewStatus,
)
from gatekeeper.lib.utils import bounded_wait
from gatekeeper.providers.base import RemoteProvider
from gatekeeper.providers.registry import create_provider

logger = logging.getLogger(__name__)

NO_MEMBERS_REASON = "No council members available, using primary result"
ALL_FAILED_REASON = "All council members failed, using primary result"


class Council:
    """
    Panel of remote classifiers.

    Owns the human review queue and the audit log so that every decision
    the engine makes ends up in one place.
    """

    def __init__(
        self,
        config: CouncilConfig | None = None,
        members: list[RemoteProvider] | None = None,
        llm_client: LLMClient | None = None,
        settings: Settings | None = None,
        review_queue: HumanReviewQueue | None = None,
        audit_log: AuditLog | None = None,
    ):
        """
        Initialize council.

        Args:
            config: Council policy. Defaults to CouncilConfig().
            members: Explicit member providers. When omitted, members are
                built from config.members through the provider factory.
            llm_client: Shared remote client for factory-built members
            settings: Settings carrying API keys
            review_queue: Queue for human review items
            audit_log: Audit log for decisions
        """
        self.config = config or CouncilConfig()
        self.llm_client = llm_client
        self.settings = settings
        self.review_queue = review_queue or HumanReviewQueue()
        self.audit_log = audit_log or AuditLog()
        self._warned_min_members = False

        if members is not None:
            self.members = [m for m in members if m.is_available()]
            self._check_member_count()
        else:
            self.members = self._initialize_members()

    def _initialize_members(self) -> list[RemoteProvider]:
        """Build available members from the configured kinds."""
        members: list[RemoteProvider] = []

        for kind in self.config.members:
            try:
                provider = create_provider(kind, llm_client=self.llm_client, settings=self.settings)
            except GatekeeperError as e:
                logger.error(f"Failed to initialize council member {kind}: {e.message}")
                continue

            if provider.is_available():
                members.append(provider)
            else:
                logger.warning(
                    f"Council member {provider.name} is not available (missing API key?)"
                )

        self.members = members
        self._check_member_count()
        return members

    def _check_member_count(self) -> None:
        if len(self.members) < self.config.min_members and not self._warned_min_members:
            logger.warning(
                f"Only {len(self.members)} council members available "
                f"(minimum: {self.config.min_members})"
            )
            self._warned_min_members = True

    def get_members(self) -> list[str]:
        return [m.name for m in self.members]

    def configure(self, config: CouncilConfig) -> None:
        """Replace the policy; rebuild members if the member list changed."""
        rebuild = list(config.members) != list(self.config.members)
        self.config = config
        if rebuild:
            self._initialize_members()

    # =========================================================================
    # Escalation and Voting
    # =========================================================================

    def should_escalate(self, primary_result: ProviderResult) -> bool:
        """True when the primary confidence sits in the escalation band."""
        confidence = primary_result.confidence
        return self.config.escalate_min <= confidence <= self.config.escalate_max

    async def _collect_vote(self, member: RemoteProvider, text: str) -> CouncilVote:
        result = await bounded_wait(member.analyze(text), self.config.member_timeout)
        if isinstance(result, CouncilVote):
            return result
        return CouncilVote(**result.model_dump(include=set(ProviderResult.model_fields)))

    async def convene(self, text: str, primary_result: ProviderResult) -> CouncilResult:
        """
        Ask every member for a vote and aggregate.

        Members run concurrently, each under its own bounded wait. A member
        that errors or times out contributes no vote.
        """
        if not self.members:
            logger.warning(NO_MEMBERS_REASON)
            return self._degenerate_result(primary_result, NO_MEMBERS_REASON)

        logger.info(f"Convening council: {', '.join(self.get_members())}")

        tasks = [self._collect_vote(member, text) for member in self.members]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        votes: list[CouncilVote] = []
        failed: list[str] = []
        for member, result in zip(self.members, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.error(
                    f"Council member {member.name} timed out after {self.config.member_timeout}s"
                )
                failed.append(member.name)
            elif isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Council member {member.name} failed: {result}")
                failed.append(member.name)
            else:
                votes.append(result)

        if not votes:
            logger.warning(ALL_FAILED_REASON)
            degenerate = self._degenerate_result(primary_result, ALL_FAILED_REASON)
            return degenerate.model_copy(update={"failed_members": failed})

        council_result = self.aggregate_votes(votes).model_copy(update={"failed_members": failed})
        logger.info(
            f"Council decision: {council_result.decision.value} ({council_result.decision_reason})"
        )
        return council_result

    def _degenerate_result(self, primary_result: ProviderResult, reason: str) -> CouncilResult:
        return CouncilResult(
            votes=[],
            unanimous=True,
            majority_flagged=primary_result.flagged,
            majority_confidence=primary_result.confidence,
            average_confidence=primary_result.confidence,
            decision=CouncilDecision.FLAGGED if primary_result.flagged else CouncilDecision.CLEAN,
            decision_reason=reason,
        )

    def aggregate_votes(self, votes: list[CouncilVote]) -> CouncilResult:
        """Hybrid aggregation over a non-empty list of votes."""
        flagged_votes = [v for v in votes if v.flagged]
        clean_votes = [v for v in votes if not v.flagged]
        flagged_count = len(flagged_votes)
        clean_count = len(clean_votes)

        unanimous = flagged_count == len(votes) or clean_count == len(votes)
        majority_flagged = flagged_count > clean_count
        average_confidence = sum(v.confidence for v in votes) / len(votes)

        majority_side = flagged_votes if majority_flagged else clean_votes
        majority_confidence = sum(v.confidence for v in majority_side) / len(majority_side)

        majority_decision = CouncilDecision.FLAGGED if majority_flagged else CouncilDecision.CLEAN
        high = max(flagged_count, clean_count)
        low = min(flagged_count, clean_count)

        if unanimous and self.config.unanimous_auto_decide:
            decision = majority_decision
            reason = f"Unanimous council decision ({len(votes)}-0)"
        elif flagged_count != clean_count:
            if majority_confidence >= self.config.majority_confidence_threshold:
                decision = majority_decision
                reason = (
                    f"Majority decision ({high}-{low}) with "
                    f"{majority_confidence * 100:.0f}% confidence"
                )
            elif self.config.send_low_confidence_to_human:
                decision = CouncilDecision.HUMAN_REVIEW
                reason = (
                    f"Majority ({high}-{low}) but low confidence "
                    f"({majority_confidence * 100:.0f}%)"
                )
            else:
                decision = majority_decision
                reason = "Majority decision with low confidence (human review disabled)"
        elif self.config.send_splits_to_human:
            decision = CouncilDecision.HUMAN_REVIEW
            reason = f"Council split ({flagged_count}-{clean_count})"
        else:
            decision = CouncilDecision.FLAGGED
            reason = "Council split, defaulting to flagged (human review disabled)"

        return CouncilResult(
            votes=votes,
            unanimous=unanimous,
            majority_flagged=majority_flagged,
            majority_confidence=majority_confidence,
            average_confidence=average_confidence,
            decision=decision,
            decision_reason=reason,
        )

    # =========================================================================
    # Human Review
    # =========================================================================

    def queue_for_human_review(
        self,
        text: str,
        normalized: str,
        primary_result: ProviderResult,
        council_result: CouncilResult | None,
        reason: HumanReviewReason,
    ) -> HumanReviewItem:
        return self.review_queue.enqueue(text, normalized, primary_result, council_result, reason)

    def get_human_review_queue(self) -> list[HumanReviewItem]:
        return self.review_queue.pending()

    def claim_review_item(self, item_id: str, reviewer: str) -> HumanReviewItem:
        return self.review_queue.claim(item_id, reviewer)

    def submit_human_decision(self, item_id: str, decision: HumanDecision) -> bool:
        return self.review_queue.submit_decision(item_id, decision)

    # =========================================================================
    # Audit
    # =========================================================================

    def get_stats(self) -> ModerationStats:
        """Counters over the audit log and review queue."""
        entries = self.audit_log.entries()
        escalated = [e for e in entries if e.escalated]
        with_council = [e for e in escalated if e.council_result is not None]

        actions: dict = {}
        for entry in entries:
            action = entry.final_decision.action
            actions[action] = actions.get(action, 0) + 1

        return ModerationStats(
            total_decisions=len(entries),
            decided_locally=sum(1 for e in entries if e.tier_info.tier == DecisionTier.LOCAL),
            decided_by_api=sum(1 for e in entries if e.tier_info.tier == DecisionTier.API),
            escalated_to_council=len(escalated),
            sent_to_human_review=sum(1 for e in entries if e.human_review is not None),
            council_unanimous=sum(1 for e in with_council if e.council_result.unanimous),
            council_majority=sum(
                1
                for e in with_council
                if not e.council_result.unanimous
                and e.council_result.decision != CouncilDecision.HUMAN_REVIEW
            ),
            council_split=sum(
                1 for e in with_council if e.council_result.decision == CouncilDecision.HUMAN_REVIEW
            ),
            actions=actions,
            pending_reviews=self.review_queue.count(ReviewStatus.PENDING),
            decided_reviews=self.review_queue.count(ReviewStatus.DECIDED),
        )
