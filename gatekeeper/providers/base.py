"""Abstract base class for moderation providers.

Defines the contract that every classifier, local or remote, implements.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

from gatekeeper.config import Settings, get_settings
from gatekeeper.lib.llm import LLMClient, get_llm_client
from gatekeeper.lib.models import ModerationCategory, ProviderInfo, ProviderResult

logger = logging.getLogger(__name__)

ALL_CATEGORIES = list(ModerationCategory)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class ProviderSpec:
    """Static description of a provider."""

    name: str  # Short identifier (e.g., "openai")
    display_name: str  # Human-readable name (e.g., "OpenAI Moderation")
    requires_api_key: bool = True
    categories: list[ModerationCategory] = field(default_factory=lambda: list(ALL_CATEGORIES))
    requests_per_minute: int | None = None
    requests_per_day: int | None = None
    pricing: Literal["free", "pay-per-request", "subscription"] = "free"
    pricing_details: str = ""


# =============================================================================
# Abstract Base Class
# =============================================================================


class RemoteProvider(ABC):
    """
    Abstract base class for all moderation providers.

    Subclasses must implement:
    - spec: ProviderSpec property
    - is_available(): Whether the provider can be called right now
    - analyze(): Classify a piece of text
    """

    def __init__(
        self,
        llm_client: LLMClient | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize provider.

        Args:
            llm_client: Optional shared client. If not provided, the module
                default is used on demand.
            settings: Optional settings. Defaults to the cached settings.
        """
        self._llm_client = llm_client
        self.settings = settings or get_settings()

    @property
    @abstractmethod
    def spec(self) -> ProviderSpec:
        """Provider description."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the provider is configured."""
        pass

    @abstractmethod
    async def analyze(self, text: str) -> ProviderResult:
        """
        Classify text.

        Args:
            text: Text to classify

        Returns:
            ProviderResult with per-category scores

        Raises:
            LLMError: On transport failures (auth, rate limit, connection)
        """
        pass

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def display_name(self) -> str:
        return self.spec.display_name

    @property
    def requires_api_key(self) -> bool:
        return self.spec.requires_api_key

    async def _get_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = await get_llm_client()
        return self._llm_client

    def get_info(self) -> ProviderInfo:
        """Describe the provider and whether it is usable."""
        spec = self.spec
        return ProviderInfo(
            name=spec.name,
            display_name=spec.display_name,
            available=self.is_available(),
            requires_api_key=spec.requires_api_key,
            categories=spec.categories,
            requests_per_minute=spec.requests_per_minute,
            requests_per_day=spec.requests_per_day,
            pricing=spec.pricing,
            pricing_details=spec.pricing_details,
        )

    def conservative_result(self, latency_ms: float, raw: dict | None = None) -> ProviderResult:
        """Neutral verdict used when a response cannot be interpreted."""
        return ProviderResult(
            provider=self.name,
            flagged=False,
            confidence=0.5,
            categories={},
            latency_ms=latency_ms,
            raw_response=raw,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
