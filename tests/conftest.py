"""Shared fixtures: settings without real keys and fake providers."""

from unittest.mock import AsyncMock

import pytest

from gatekeeper.config import Settings, reset_settings
from gatekeeper.lib.models import CouncilVote, ModerationCategory, ProviderResult
from gatekeeper.providers.base import ProviderSpec, RemoteProvider


class FakeProvider(RemoteProvider):
    """Provider whose analyze() is an AsyncMock."""

    def __init__(self, name: str, result=None, available: bool = True, settings=None):
        super().__init__(llm_client=AsyncMock(), settings=settings)
        self._spec = ProviderSpec(name=name, display_name=name.title(), requires_api_key=False)
        self.available = available
        self.analyze = AsyncMock(return_value=result or ProviderResult(provider=name))

    @property
    def spec(self) -> ProviderSpec:
        return self._spec

    def is_available(self) -> bool:
        return self.available

    async def analyze(self, text: str) -> ProviderResult:
        raise NotImplementedError


def make_vote(provider: str, flagged: bool, confidence: float, **scores: float) -> CouncilVote:
    return CouncilVote(
        provider=provider,
        flagged=flagged,
        confidence=confidence,
        categories={ModerationCategory(k): v for k, v in scores.items()},
        reasoning=f"{provider} says {'flagged' if flagged else 'clean'}",
    )


def make_result(provider: str, flagged: bool, confidence: float, **scores: float) -> ProviderResult:
    return ProviderResult(
        provider=provider,
        flagged=flagged,
        confidence=confidence,
        categories={ModerationCategory(k): v for k, v in scores.items()},
    )


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    """Settings with every API key empty, ignoring .env and the environment."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        anthropic_api_key="",
        openrouter_api_key="",
        perspective_api_key="",
    )


@pytest.fixture
def keyed_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="test-openai",
        anthropic_api_key="test-anthropic",
        openrouter_api_key="test-openrouter",
        perspective_api_key="test-perspective",
    )


@pytest.fixture
def fake_provider(settings):
    def factory(name: str = "fake", result=None, available: bool = True) -> FakeProvider:
        return FakeProvider(name, result=result, available=available, settings=settings)

    return factory
