"""Moderator package - fast-path policy and tiered orchestration."""

from gatekeeper.moderator.fast_path import (
    HOMOPHONE_TRAPS,
    FastPathDecision,
    FastPathPolicy,
    is_short_ambiguous,
    should_override_deny,
)
from gatekeeper.moderator.moderator import Moderator, create_moderator

__all__ = [
    # Fast path
    "HOMOPHONE_TRAPS",
    "FastPathDecision",
    "FastPathPolicy",
    "is_short_ambiguous",
    "should_override_deny",
    # Moderator
    "Moderator",
    "create_moderator",
]
