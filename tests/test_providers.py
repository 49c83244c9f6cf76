"""Tests for the provider layer with mocked remote clients."""

from unittest.mock import AsyncMock

import pytest

from gatekeeper.config import ProviderKind
from gatekeeper.lib.exceptions import ConfigurationError
from gatekeeper.lib.llm import LLMResponse, ModerationResponse
from gatekeeper.lib.models import (
    CouncilVote,
    LocalProviderResult,
    ModerationCategory,
    TokenUsage,
)
from gatekeeper.providers import (
    LLMJudgeProvider,
    LocalProvider,
    OpenAIModerationProvider,
    PerspectiveProvider,
    create_provider,
    get_all_provider_info,
    get_available_providers,
)
from gatekeeper.providers.openai_moderation import map_openai_categories

# =============================================================================
# Local
# =============================================================================


async def test_local_provider_is_always_available(settings):
    provider = LocalProvider(settings=settings)
    assert provider.is_available()
    assert not provider.requires_api_key

    result = await provider.analyze("fuck you, you stupid idiot")
    assert isinstance(result, LocalProviderResult)
    assert result.flagged


# =============================================================================
# OpenAI Moderation
# =============================================================================


async def test_openai_maps_categories(keyed_settings):
    client = AsyncMock()
    client.moderate.return_value = ModerationResponse(
        flagged=True,
        category_scores={"harassment": 0.8, "hate": 0.3, "self-harm/intent": 0.6},
        model="omni-moderation-latest",
    )
    provider = OpenAIModerationProvider(llm_client=client, settings=keyed_settings)

    result = await provider.analyze("some text")

    client.moderate.assert_awaited_once_with("some text", model="omni-moderation-latest")
    assert result.flagged
    assert result.confidence == pytest.approx(0.8)
    assert result.categories[ModerationCategory.HARASSMENT] == pytest.approx(0.8)
    assert result.categories[ModerationCategory.HATE_SPEECH] == pytest.approx(0.3)
    assert result.categories[ModerationCategory.SELF_HARM] == pytest.approx(0.6)


async def test_openai_empty_scores_give_conservative_result(keyed_settings):
    client = AsyncMock()
    client.moderate.return_value = ModerationResponse(
        flagged=False, category_scores={}, model="omni-moderation-latest"
    )
    provider = OpenAIModerationProvider(llm_client=client, settings=keyed_settings)

    result = await provider.analyze("some text")

    assert not result.flagged
    assert result.confidence == 0.5
    assert result.categories == {}


def test_openai_availability_follows_key(settings, keyed_settings):
    assert not OpenAIModerationProvider(settings=settings).is_available()
    assert OpenAIModerationProvider(settings=keyed_settings).is_available()


def test_map_openai_categories_takes_max_of_sources():
    scores = map_openai_categories({"hate": 0.2, "hate/threatening": 0.9})
    assert scores[ModerationCategory.HATE_SPEECH] == pytest.approx(0.9)
    assert scores[ModerationCategory.THREATS] == pytest.approx(0.9)


def test_map_openai_categories_omits_unscored_categories():
    scores = map_openai_categories({"harassment": 0.4})
    assert scores == {ModerationCategory.HARASSMENT: pytest.approx(0.4)}
    assert map_openai_categories({}) == {}


# =============================================================================
# LLM Judges
# =============================================================================


def _llm_response(content: str) -> LLMResponse:
    return LLMResponse(content=content, token_usage=TokenUsage(), model="test-model")


async def test_judge_parses_fenced_verdict(keyed_settings):
    client = AsyncMock()
    client.complete.return_value = _llm_response(
        "Here you go:\n```json\n"
        '{"flagged": true, "confidence": 0.85, '
        '"categories": {"Hate Speech": 0.9, "profanity": 0.4, "nonsense": 0.7}, '
        '"reasoning": "Slur aimed at a group"}\n```'
    )
    provider = LLMJudgeProvider(ProviderKind.ANTHROPIC, llm_client=client, settings=keyed_settings)

    vote = await provider.analyze("text")

    assert isinstance(vote, CouncilVote)
    assert vote.provider == "anthropic"
    assert vote.flagged
    assert vote.confidence == pytest.approx(0.85)
    assert vote.categories == {
        ModerationCategory.HATE_SPEECH: 0.9,
        ModerationCategory.PROFANITY: 0.4,
    }
    assert vote.reasoning == "Slur aimed at a group"
    assert client.complete.await_args.kwargs["caller"] == "anthropic"


async def test_judge_unparseable_reply_is_conservative(keyed_settings):
    client = AsyncMock()
    client.complete.return_value = _llm_response("I cannot help with that.")
    provider = LLMJudgeProvider(ProviderKind.GEMINI, llm_client=client, settings=keyed_settings)

    vote = await provider.analyze("text")

    assert isinstance(vote, CouncilVote)
    assert not vote.flagged
    assert vote.confidence == 0.5
    assert vote.categories == {}


def test_parse_verdict_tolerates_loose_shapes(keyed_settings):
    provider = LLMJudgeProvider(ProviderKind.DEEPSEEK, settings=keyed_settings)

    vote = provider.parse_verdict({"harassment": 0.8, "flagged": "yes", "confidence": "high"}, 12.0)

    assert vote.flagged
    assert vote.confidence == 0.5
    assert vote.categories == {ModerationCategory.HARASSMENT: 0.8}
    assert vote.latency_ms == 12.0

    clamped = provider.parse_verdict({"flagged": False, "confidence": 3, "categories": {}}, 1.0)
    assert clamped.confidence == 1.0


def test_judge_availability_depends_on_transport(settings):
    anthropic_only = settings.model_copy(update={"anthropic_api_key": "test-anthropic"})
    openrouter_only = settings.model_copy(update={"openrouter_api_key": "test-openrouter"})

    assert LLMJudgeProvider(ProviderKind.ANTHROPIC, settings=anthropic_only).is_available()
    assert not LLMJudgeProvider(ProviderKind.GEMINI, settings=anthropic_only).is_available()
    assert LLMJudgeProvider(ProviderKind.GEMINI, settings=openrouter_only).is_available()
    assert LLMJudgeProvider(ProviderKind.DEEPSEEK, settings=openrouter_only).is_available()


def test_judge_rejects_non_judge_kind(settings):
    with pytest.raises(ConfigurationError):
        LLMJudgeProvider(ProviderKind.OPENAI, settings=settings)


# =============================================================================
# Perspective
# =============================================================================


async def test_perspective_maps_attributes(keyed_settings):
    client = AsyncMock()
    client.post_json.return_value = {
        "attributeScores": {
            "TOXICITY": {"summaryScore": {"value": 0.9}},
            "INSULT": {"summaryScore": {"value": 0.6}},
            "THREAT": {"summaryScore": {"value": 0.2}},
        }
    }
    provider = PerspectiveProvider(llm_client=client, settings=keyed_settings)

    result = await provider.analyze("text")

    assert result.flagged
    assert result.confidence == pytest.approx(0.9)
    assert result.categories[ModerationCategory.HARASSMENT] == pytest.approx(0.9)
    assert result.categories[ModerationCategory.THREATS] == pytest.approx(0.2)
    assert client.post_json.await_args.kwargs["params"] == {"key": "test-perspective"}


async def test_perspective_below_threshold_is_not_flagged(keyed_settings):
    client = AsyncMock()
    client.post_json.return_value = {
        "attributeScores": {"TOXICITY": {"summaryScore": {"value": 0.7}}}
    }
    provider = PerspectiveProvider(llm_client=client, settings=keyed_settings)

    result = await provider.analyze("text")
    assert not result.flagged


async def test_perspective_missing_scores_is_conservative(keyed_settings):
    client = AsyncMock()
    client.post_json.return_value = {"error": "quota"}
    provider = PerspectiveProvider(llm_client=client, settings=keyed_settings)

    result = await provider.analyze("text")
    assert not result.flagged
    assert result.confidence == 0.5


# =============================================================================
# Registry
# =============================================================================


def test_create_provider_by_kind(settings):
    assert isinstance(create_provider("local", settings=settings), LocalProvider)
    assert isinstance(create_provider(ProviderKind.OPENAI, settings=settings), OpenAIModerationProvider)
    assert isinstance(create_provider("perspective", settings=settings), PerspectiveProvider)
    judge = create_provider("gemini", settings=settings)
    assert isinstance(judge, LLMJudgeProvider)
    assert judge.model == "google/gemini-2.0-flash-001"


def test_create_provider_rejects_unknown_kind(settings):
    with pytest.raises(ConfigurationError):
        create_provider("mystery", settings=settings)


def test_available_providers_without_keys(settings, keyed_settings):
    assert [p.name for p in get_available_providers(settings=settings)] == ["local"]
    assert len(get_available_providers(settings=keyed_settings)) == len(ProviderKind)


def test_provider_info(settings):
    info = {i.name: i for i in get_all_provider_info(settings=settings)}

    assert set(info) == {kind.value for kind in ProviderKind}
    assert info["local"].available
    assert not info["openai"].available
    assert info["openai"].pricing == "free"
    assert info["anthropic"].pricing == "pay-per-request"
