"""Human review queue.

Holds cases the automated tiers could not settle. Items move
pending -> in_review -> decided, and reach decided at most once.
"""

import logging
import threading

from gatekeeper.analysis.rules import HIGH_PRIORITY_CATEGORIES
from gatekeeper.lib.exceptions import ReviewItemNotFoundError, ReviewStateError
from gatekeeper.lib.models import (
    CouncilResult,
    HumanDecision,
    HumanReviewItem,
    HumanReviewReason,
    ProviderResult,
    ReviewStatus,
)

logger = logging.getLogger(__name__)

CONFIDENCE_WEIGHT = 50.0
SPLIT_BONUS = 25.0
CATEGORY_BONUS = 20.0
CATEGORY_BONUS_SCORE = 0.5
MAX_PRIORITY = 100.0


def calculate_priority(
    primary_result: ProviderResult,
    council_result: CouncilResult | None = None,
) -> float:
    """
    Review priority in [0, 100].

    confidence x 50, plus 25 for a non-unanimous council, plus 20 for each
    of child_safety, threats and self_harm scoring above 0.5.
    """
    priority = primary_result.confidence * CONFIDENCE_WEIGHT

    if council_result is not None and not council_result.unanimous:
        priority += SPLIT_BONUS

    for category in HIGH_PRIORITY_CATEGORIES:
        if primary_result.categories.get(category, 0.0) > CATEGORY_BONUS_SCORE:
            priority += CATEGORY_BONUS

    return min(priority, MAX_PRIORITY)


class HumanReviewQueue:
    """Thread-safe in-memory review queue."""

    def __init__(self):
        self._items: dict[str, HumanReviewItem] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def enqueue(
        self,
        text: str,
        normalized: str,
        primary_result: ProviderResult,
        council_result: CouncilResult | None,
        reason: HumanReviewReason,
    ) -> HumanReviewItem:
        """Add a case to the queue."""
        item = HumanReviewItem(
            text=text,
            normalized=normalized,
            primary_result=primary_result,
            council_result=council_result,
            reason=reason,
            priority=calculate_priority(primary_result, council_result),
        )
        with self._lock:
            self._items[item.id] = item

        logger.info(
            f"Queued review item {item.id} ({reason.value}, priority {item.priority:.0f})"
        )
        return item.model_copy(deep=True)

    def pending(self) -> list[HumanReviewItem]:
        """Pending items, highest priority first, insertion order on ties."""
        with self._lock:
            items = [i for i in self._items.values() if i.status == ReviewStatus.PENDING]
            ordered = sorted(items, key=lambda i: -i.priority)
            return [i.model_copy(deep=True) for i in ordered]

    def get(self, item_id: str) -> HumanReviewItem:
        """
        Look up an item.

        Raises:
            ReviewItemNotFoundError: If no item has this id
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise ReviewItemNotFoundError(item_id)
            return item.model_copy(deep=True)

    def claim(self, item_id: str, reviewer: str) -> HumanReviewItem:
        """
        Assign a pending item to a reviewer.

        Raises:
            ReviewItemNotFoundError: If no item has this id
            ReviewStateError: If the item is not pending
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise ReviewItemNotFoundError(item_id)
            if item.status != ReviewStatus.PENDING:
                raise ReviewStateError(
                    f"Cannot claim review item {item_id}",
                    item_id=item_id,
                    expected_status=ReviewStatus.PENDING.value,
                    actual_status=item.status.value,
                )
            item.status = ReviewStatus.IN_REVIEW
            item.assigned_to = reviewer
            claimed = item.model_copy(deep=True)

        logger.info(f"Review item {item_id} claimed by {reviewer}")
        return claimed

    def decide(self, item_id: str, decision: HumanDecision) -> HumanReviewItem:
        """
        Record a reviewer's verdict.

        Raises:
            ReviewItemNotFoundError: If no item has this id
            ReviewStateError: If the item was already decided
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise ReviewItemNotFoundError(item_id)
            if item.status == ReviewStatus.DECIDED:
                raise ReviewStateError(
                    f"Review item {item_id} already decided",
                    item_id=item_id,
                    actual_status=item.status.value,
                )
            item.status = ReviewStatus.DECIDED
            item.human_decision = decision
            if item.assigned_to is None and decision.decided_by:
                item.assigned_to = decision.decided_by
            decided = item.model_copy(deep=True)

        logger.info(
            f"Review item {item_id} decided by {decision.decided_by or 'unknown'}: "
            f"{'flagged' if decision.flagged else 'clean'}"
        )
        return decided

    def submit_decision(self, item_id: str, decision: HumanDecision) -> bool:
        """Lenient variant of decide(): False for unknown or already-decided items."""
        try:
            self.decide(item_id, decision)
        except (ReviewItemNotFoundError, ReviewStateError) as e:
            logger.warning(f"Human decision rejected: {e.message}")
            return False
        return True

    def count(self, status: ReviewStatus) -> int:
        with self._lock:
            return sum(1 for i in self._items.values() if i.status == status)
