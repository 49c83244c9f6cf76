"""Council package - multi-provider voting, human review and audit."""

from gatekeeper.council.audit import AuditLog, load_audit_export
from gatekeeper.council.council import (
    ALL_FAILED_REASON,
    NO_MEMBERS_REASON,
    Council,
)
from gatekeeper.council.review import HumanReviewQueue, calculate_priority

__all__ = [
    # Audit
    "AuditLog",
    "load_audit_export",
    # Council
    "ALL_FAILED_REASON",
    "NO_MEMBERS_REASON",
    "Council",
    # Review
    "HumanReviewQueue",
    "calculate_priority",
]
