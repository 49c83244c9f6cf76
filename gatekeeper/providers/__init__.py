"""Providers package - local and remote moderation classifiers."""

from gatekeeper.providers.base import ProviderSpec, RemoteProvider
from gatekeeper.providers.llm_judge import LLMJudgeProvider
from gatekeeper.providers.local import LocalProvider
from gatekeeper.providers.openai_moderation import OpenAIModerationProvider
from gatekeeper.providers.perspective import PerspectiveProvider
from gatekeeper.providers.registry import (
    create_provider,
    get_all_provider_info,
    get_available_providers,
)

__all__ = [
    # Contract
    "ProviderSpec",
    "RemoteProvider",
    # Providers
    "LLMJudgeProvider",
    "LocalProvider",
    "OpenAIModerationProvider",
    "PerspectiveProvider",
    # Factory
    "create_provider",
    "get_all_provider_info",
    "get_available_providers",
]
