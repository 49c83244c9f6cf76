"""Provider factory over the closed ProviderKind set."""

import logging

from gatekeeper.analysis.classifier import LocalClassifier
from gatekeeper.config import ProviderKind, Settings
from gatekeeper.lib.exceptions import ConfigurationError
from gatekeeper.lib.llm import LLMClient
from gatekeeper.lib.models import ProviderInfo
from gatekeeper.providers.base import RemoteProvider
from gatekeeper.providers.llm_judge import LLMJudgeProvider
from gatekeeper.providers.local import LocalProvider
from gatekeeper.providers.openai_moderation import OpenAIModerationProvider
from gatekeeper.providers.perspective import PerspectiveProvider

logger = logging.getLogger(__name__)


def create_provider(
    kind: ProviderKind | str,
    llm_client: LLMClient | None = None,
    settings: Settings | None = None,
    classifier: LocalClassifier | None = None,
) -> RemoteProvider:
    """
    Create a provider by kind.

    Args:
        kind: ProviderKind or its string value
        llm_client: Shared remote client for network-backed providers
        settings: Settings carrying API keys
        classifier: LocalClassifier to wrap for the local kind

    Returns:
        Provider implementing the RemoteProvider contract

    Raises:
        ConfigurationError: If the kind is unknown
    """
    try:
        kind = ProviderKind(kind)
    except ValueError:
        raise ConfigurationError(f"Unknown provider: {kind}", field="provider")

    if kind == ProviderKind.LOCAL:
        return LocalProvider(classifier=classifier, settings=settings)
    if kind == ProviderKind.OPENAI:
        return OpenAIModerationProvider(llm_client=llm_client, settings=settings)
    if kind == ProviderKind.PERSPECTIVE:
        return PerspectiveProvider(llm_client=llm_client, settings=settings)
    return LLMJudgeProvider(kind, llm_client=llm_client, settings=settings)


def get_available_providers(
    llm_client: LLMClient | None = None,
    settings: Settings | None = None,
) -> list[RemoteProvider]:
    """All providers whose credentials are configured."""
    providers = [create_provider(kind, llm_client, settings) for kind in ProviderKind]
    return [p for p in providers if p.is_available()]


def get_all_provider_info(
    llm_client: LLMClient | None = None,
    settings: Settings | None = None,
) -> list[ProviderInfo]:
    """Describe every provider kind."""
    return [create_provider(kind, llm_client, settings).get_info() for kind in ProviderKind]
