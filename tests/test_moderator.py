"""End-to-end tests for the tiered Moderator with fake providers."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from conftest import make_result, make_vote
from gatekeeper.config import CouncilConfig, FastPathConfig, ModeratorConfig, ProviderKind
from gatekeeper.council import Council, load_audit_export
from gatekeeper.lib.exceptions import LLMConnectionError
from gatekeeper.lib.models import (
    DecisionSource,
    DecisionTier,
    HumanDecision,
    HumanReviewReason,
    ModerationAction,
    ModerationCategory,
    ScriptType,
)
from gatekeeper.moderator import Moderator, create_moderator
from gatekeeper.moderator.moderator import OVERRIDE_WARNING
from gatekeeper.providers import LocalProvider

# Escalates locally: no rule matches, so local confidence is 0.5.
# Attack intent and a group target make the harm reduction 1.44.
GROUP_TEXT = "they are all the same and everyone knows it"


@pytest.fixture
def build(settings, fake_provider):
    def factory(primary_result=None, members=None, primary_available=True, **config):
        cfg = ModeratorConfig(**config)
        primary = fake_provider(
            "openai",
            result=primary_result or make_result("openai", False, 0.95),
            available=primary_available,
        )
        council = Council(cfg.council, members=members or [], settings=settings)
        return Moderator(
            config=cfg,
            settings=settings,
            primary=primary,
            council=council,
            llm_client=AsyncMock(),
        )

    return factory


# =============================================================================
# Local Tier
# =============================================================================


async def test_clean_greeting_is_allowed_locally(build):
    moderator = build()
    result = await moderator.moderate("hello, how are you?")

    assert result.action == ModerationAction.ALLOW
    assert not result.flagged
    assert result.tier_info.tier == DecisionTier.LOCAL
    assert result.tier_info.skipped_api
    assert result.tier_info.skipped_council
    assert result.tier_info.language == ScriptType.LATIN
    assert result.flagged_spans == []
    moderator.primary.analyze.assert_not_awaited()


async def test_harassment_is_denied_locally(build):
    moderator = build()
    result = await moderator.moderate("fuck you, you stupid idiot")

    assert result.action == ModerationAction.DENY
    assert result.flagged
    assert result.tier_info.tier == DecisionTier.LOCAL
    assert result.severity == 1.0
    assert result.categories[ModerationCategory.HARASSMENT] == pytest.approx(0.7)
    assert "fuck you" in [span.original for span in result.flagged_spans]
    moderator.primary.analyze.assert_not_awaited()


async def test_kill_yourself_always_escalates(settings):
    async with create_moderator(settings=settings) as moderator:
        result = await moderator.moderate("kill yourself")

    assert result.action == ModerationAction.ESCALATE
    assert not result.tier_info.skipped_api
    assert ModerationCategory.THREATS in result.categories
    assert ModerationCategory.SELF_HARM in result.categories
    assert any("unavailable" in w for w in result.warnings)


async def test_results_are_frozen(build):
    result = await build().moderate("hello")
    with pytest.raises(ValidationError):
        result.action = ModerationAction.DENY


# =============================================================================
# Primary Tier
# =============================================================================


@pytest.mark.parametrize(
    ("primary_result", "expected"),
    [
        (make_result("openai", True, 0.95, hate_speech=0.8), ModerationAction.DENY),
        (make_result("openai", False, 0.95), ModerationAction.ALLOW),
        (make_result("openai", False, 0.9, harassment=0.4), ModerationAction.ESCALATE),
    ],
)
async def test_primary_result_sets_action_by_severity(build, primary_result, expected):
    moderator = build(primary_result=primary_result)
    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == expected
    assert result.tier_info.tier == DecisionTier.API
    assert result.tier_info.api_latency_ms is not None
    assert result.tier_info.skipped_council
    assert result.confidence == pytest.approx(primary_result.confidence)
    moderator.primary.analyze.assert_awaited_once_with(GROUP_TEXT)


async def test_primary_sees_normalized_latin_text(build):
    moderator = build()
    await moderator.moderate("Th3y ARE all the same and everyone knows it")
    moderator.primary.analyze.assert_awaited_once_with(GROUP_TEXT)


async def test_non_latin_text_goes_to_primary_verbatim(build):
    moderator = build(primary_result=make_result("openai", True, 0.95, harassment=0.9))
    text = "ты идиот и все это знают"

    result = await moderator.moderate(text)

    moderator.primary.analyze.assert_awaited_once_with(text)
    assert result.tier_info.language == ScriptType.CYRILLIC
    assert result.tier_info.tier == DecisionTier.API
    assert "cyrillic" in result.tier_info.reason


async def test_remote_categories_merge_with_local(build):
    moderator = build(primary_result=make_result("openai", True, 0.95, harassment=0.2, threats=0.8))
    result = await moderator.moderate("i will hurt them all, every one of them")

    assert result.categories[ModerationCategory.THREATS] == pytest.approx(0.85)
    assert result.categories[ModerationCategory.HARASSMENT] == pytest.approx(0.2)


# =============================================================================
# Fallbacks
# =============================================================================


async def test_primary_failure_falls_back_to_local(build):
    moderator = build()
    moderator.primary.analyze.side_effect = LLMConnectionError("connection refused")

    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.ESCALATE
    assert any("failed" in w for w in result.warnings)
    assert "failed" in result.tier_info.reason
    assert len(moderator.get_audit_log()) == 1


async def test_primary_timeout_falls_back_to_local(build):
    async def slow(text):
        await asyncio.sleep(5)

    moderator = build(primary_timeout=0.05)
    moderator.primary.analyze.side_effect = slow

    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.ESCALATE
    assert any("timed out" in w for w in result.warnings)


async def test_unavailable_primary_is_not_called(build):
    moderator = build(primary_available=False)
    result = await moderator.moderate(GROUP_TEXT)

    moderator.primary.analyze.assert_not_awaited()
    assert any("unavailable" in w for w in result.warnings)


async def test_fallback_uses_local_policy_verdict(build):
    moderator = build(primary_available=False, fast_path=FastPathConfig(enabled=False))
    result = await moderator.moderate("hello, how are you?")

    assert result.action == ModerationAction.ALLOW
    assert result.tier_info.tier == DecisionTier.API
    assert "Fast path disabled" in result.tier_info.reason


async def test_local_only_configuration(settings):
    config = ModeratorConfig(provider=ProviderKind.LOCAL, council=CouncilConfig(enabled=False))
    moderator = Moderator(config=config, settings=settings, llm_client=AsyncMock())

    assert isinstance(moderator.primary, LocalProvider)
    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.ESCALATE
    assert any("Local-only" in w for w in result.warnings)


# =============================================================================
# Council and Human Tiers
# =============================================================================


async def test_unanimous_council_decides(build, fake_provider):
    members = [
        fake_provider("anthropic", result=make_vote("anthropic", True, 0.9, hate_speech=0.9)),
        fake_provider("gemini", result=make_vote("gemini", True, 0.9)),
    ]
    moderator = build(
        primary_result=make_result("openai", True, 0.5, harassment=0.6), members=members
    )

    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.DENY
    assert result.tier_info.tier == DecisionTier.COUNCIL
    assert not result.tier_info.skipped_council
    assert result.tier_info.council_latency_ms is not None
    assert result.confidence == pytest.approx(0.9)
    assert result.categories[ModerationCategory.HATE_SPEECH] == pytest.approx(0.9)

    entry = moderator.get_audit_log()[0]
    assert entry.escalated
    assert entry.final_decision.decision_source == DecisionSource.COUNCIL
    assert len(entry.council_result.votes) == 2


async def test_council_split_goes_to_human_review(build, fake_provider):
    members = [
        fake_provider("anthropic", result=make_vote("anthropic", True, 0.8)),
        fake_provider("gemini", result=make_vote("gemini", False, 0.8)),
    ]
    moderator = build(
        primary_result=make_result("openai", True, 0.5, harassment=0.6), members=members
    )

    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.ESCALATE
    assert result.tier_info.tier == DecisionTier.HUMAN
    assert result.review_item_id is not None

    queue = moderator.get_human_review_queue()
    assert [item.id for item in queue] == [result.review_item_id]
    assert queue[0].reason == HumanReviewReason.COUNCIL_SPLIT
    assert queue[0].text == GROUP_TEXT

    entry = moderator.get_audit_log()[0]
    assert entry.human_review.item_id == result.review_item_id
    assert entry.final_decision.decision_source == DecisionSource.HUMAN

    claimed = moderator.claim_review_item(result.review_item_id, "alice")
    assert claimed.assigned_to == "alice"
    decision = HumanDecision(flagged=True, decided_by="alice", notes="group insult")
    assert moderator.submit_human_decision(result.review_item_id, decision)
    assert not moderator.submit_human_decision(result.review_item_id, decision)
    assert moderator.get_human_review_queue() == []


async def test_unanimous_low_confidence_council_is_queued_as_low_confidence(build, fake_provider):
    members = [
        fake_provider("anthropic", result=make_vote("anthropic", True, 0.4)),
        fake_provider("gemini", result=make_vote("gemini", True, 0.4)),
    ]
    moderator = build(
        primary_result=make_result("openai", True, 0.5),
        members=members,
        council=CouncilConfig(unanimous_auto_decide=False),
    )

    result = await moderator.moderate(GROUP_TEXT)

    assert result.tier_info.tier == DecisionTier.HUMAN
    assert moderator.get_human_review_queue()[0].reason == HumanReviewReason.LOW_CONFIDENCE


async def test_council_not_convened_when_disabled(build, fake_provider):
    member = fake_provider("anthropic", result=make_vote("anthropic", True, 0.9))
    moderator = build(
        primary_result=make_result("openai", True, 0.5, harassment=0.6),
        members=[member],
        council=CouncilConfig(enabled=False, min_members=1),
    )

    result = await moderator.moderate(GROUP_TEXT)

    assert result.tier_info.skipped_council
    member.analyze.assert_not_awaited()


async def test_failed_council_member_is_reported(build, fake_provider):
    broken = fake_provider("gemini")
    broken.analyze.side_effect = LLMConnectionError("down")
    members = [fake_provider("anthropic", result=make_vote("anthropic", False, 0.9)), broken]
    moderator = build(primary_result=make_result("openai", True, 0.5), members=members)

    result = await moderator.moderate(GROUP_TEXT)

    assert result.action == ModerationAction.ALLOW
    assert any("gemini" in w for w in result.warnings)


# =============================================================================
# Short Ambiguous Inputs
# =============================================================================


async def test_short_ambiguous_input_is_never_auto_denied(build):
    moderator = build(
        primary_result=make_result("openai", True, 0.95, hate_speech=1.0), deny_threshold=0.6
    )

    result = await moderator.moderate("fag")

    assert result.action == ModerationAction.ESCALATE
    assert OVERRIDE_WARNING in result.warnings


async def test_context_lifts_the_short_input_override(build):
    moderator = build(
        primary_result=make_result("openai", True, 0.95, hate_speech=1.0), deny_threshold=0.6
    )

    result = await moderator.moderate("fag", context="he kept shouting it at the new kid")

    assert result.action == ModerationAction.DENY
    assert OVERRIDE_WARNING not in result.warnings


# =============================================================================
# Quick Check, Audit and Stats
# =============================================================================


def test_quick_check(build):
    moderator = build()

    flagged = moderator.quick_check("fuck you, you stupid idiot")
    assert flagged.flagged
    assert flagged.severity == 1.0

    clean = moderator.quick_check("hello")
    assert not clean.flagged
    assert clean.severity == 0.0
    assert moderator.get_audit_log() == []


async def test_every_call_is_audited_and_export_round_trips(build, fake_provider):
    members = [
        fake_provider("anthropic", result=make_vote("anthropic", True, 0.8)),
        fake_provider("gemini", result=make_vote("gemini", False, 0.8)),
    ]
    moderator = build(
        primary_result=make_result("openai", True, 0.5, harassment=0.6), members=members
    )

    first = await moderator.moderate("hello, how are you?")
    second = await moderator.moderate("fuck you, you stupid idiot")
    third = await moderator.moderate(GROUP_TEXT, context="forum thread about football")

    log = moderator.get_audit_log()
    assert [e.id for e in log] == [third.audit_entry_id, second.audit_entry_id, first.audit_entry_id]
    assert [e.sequence for e in log] == [3, 2, 1]
    assert log[0].input.context == "forum thread about football"

    restored = load_audit_export(moderator.export_audit_log())
    assert restored == list(reversed(log))


async def test_audit_entries_do_not_share_state_with_callers(build):
    moderator = build()
    result = await moderator.moderate("hello, how are you?")
    original_reason = result.tier_info.reason

    result.tier_info.reason = "edited by caller"
    entry = moderator.get_audit_log()[0]
    assert entry.tier_info.reason == original_reason

    confidence = entry.local_result.confidence
    entry.local_result.confidence = 0.0
    entry.tier_info.reason = "edited again"
    stored = moderator.get_audit_log()[0]
    assert stored.local_result.confidence == confidence
    assert stored.tier_info.reason == original_reason
    assert moderator.get_audit_log(limit=0) == []


async def test_stats_and_provider_info(build, fake_provider):
    members = [
        fake_provider("anthropic", result=make_vote("anthropic", True, 0.9)),
        fake_provider("gemini", result=make_vote("gemini", True, 0.9)),
    ]
    moderator = build(
        primary_result=make_result("openai", True, 0.5, harassment=0.6), members=members
    )

    await moderator.moderate("hello, how are you?")
    await moderator.moderate("fuck you, you stupid idiot")
    await moderator.moderate(GROUP_TEXT)

    stats = moderator.get_stats()
    assert stats.total_decisions == 3
    assert stats.decided_locally == 2
    assert stats.escalated_to_council == 1
    assert stats.council_unanimous == 1
    assert stats.actions == {ModerationAction.ALLOW: 1, ModerationAction.DENY: 2}

    info = moderator.get_provider_info()
    assert info["primary"].name == "openai"
    assert info["council"] == ["anthropic", "gemini"]
    assert info["fast_path_enabled"]
