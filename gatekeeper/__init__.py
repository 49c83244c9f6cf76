"""Gatekeeper - tiered content moderation.

Local rule tables decide the obvious cases, a remote classifier handles the
rest, a council of classifiers votes on borderline inputs and a human
review queue catches what the council cannot settle.
"""

from gatekeeper.config import ModeratorConfig, Settings, get_settings
from gatekeeper.lib.models import (
    ModerationAction,
    ModerationCategory,
    ModerationResult,
)
from gatekeeper.moderator import Moderator, create_moderator

__version__ = "0.1.0"

__all__ = [
    "ModerationAction",
    "ModerationCategory",
    "ModerationResult",
    "ModeratorConfig",
    "Moderator",
    "Settings",
    "create_moderator",
    "get_settings",
]
