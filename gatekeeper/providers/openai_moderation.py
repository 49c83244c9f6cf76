"""OpenAI moderation endpoint provider."""

import logging
import time

from gatekeeper.config import PROVIDER_MODELS, ProviderKind
from gatekeeper.lib.models import CategoryScores, ModerationCategory, ProviderResult
from gatekeeper.lib.utils import elapsed_ms
from gatekeeper.providers.base import ProviderSpec, RemoteProvider

logger = logging.getLogger(__name__)

# Our category -> OpenAI category names whose max becomes our score
CATEGORY_MAP: dict[ModerationCategory, tuple[str, ...]] = {
    ModerationCategory.HATE_SPEECH: ("hate", "hate/threatening"),
    ModerationCategory.HARASSMENT: ("harassment",),
    ModerationCategory.SEXUAL_HARASSMENT: ("sexual",),
    ModerationCategory.VIOLENCE: ("violence", "violence/graphic"),
    ModerationCategory.THREATS: ("harassment/threatening", "hate/threatening"),
    ModerationCategory.SELF_HARM: ("self-harm", "self-harm/intent", "self-harm/instructions"),
    ModerationCategory.DRUGS_ILLEGAL: ("illicit", "illicit/violent"),
    ModerationCategory.CHILD_SAFETY: ("sexual/minors",),
}


def map_openai_categories(scores: dict[str, float]) -> CategoryScores:
    """Fold OpenAI category scores into ModerationCategory scores.

    Categories OpenAI did not score are left out rather than reported as 0.
    """
    mapped: CategoryScores = {}
    for category, names in CATEGORY_MAP.items():
        present = [scores[name] for name in names if name in scores]
        if present:
            mapped[category] = max(present)
    return mapped


class OpenAIModerationProvider(RemoteProvider):
    """OpenAI's free moderation endpoint through the OpenAI SDK."""

    SPEC = ProviderSpec(
        name=ProviderKind.OPENAI.value,
        display_name="OpenAI Moderation",
        categories=list(CATEGORY_MAP),
        requests_per_minute=1000,
        pricing="free",
        pricing_details="Free for all OpenAI API users",
    )

    @property
    def spec(self) -> ProviderSpec:
        return self.SPEC

    @property
    def model(self) -> str:
        return PROVIDER_MODELS[ProviderKind.OPENAI].model_id

    def is_available(self) -> bool:
        return self.settings.has_openai_key

    async def analyze(self, text: str) -> ProviderResult:
        start = time.perf_counter()
        client = await self._get_client()

        response = await client.moderate(text, model=self.model)
        scores = response.category_scores
        if not scores:
            logger.warning("OpenAI moderation returned no category scores")
            return self.conservative_result(elapsed_ms(start), response.model_dump())

        return ProviderResult(
            provider=self.name,
            flagged=response.flagged,
            confidence=max(scores.values()),
            categories=map_openai_categories(scores),
            latency_ms=elapsed_ms(start),
            raw_response=response.model_dump(),
        )
