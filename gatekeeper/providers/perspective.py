"""Google Perspective API provider over httpx."""

import logging
import time

from gatekeeper.config import ProviderKind
from gatekeeper.lib.models import CategoryScores, ModerationCategory, ProviderResult
from gatekeeper.lib.utils import elapsed_ms, safe_get
from gatekeeper.providers.base import ProviderSpec, RemoteProvider

logger = logging.getLogger(__name__)

PERSPECTIVE_URL = "https://commentanalyzer.googleapis.com/v1alpha1/comments:analyze"
FLAG_SCORE = 0.7

REQUESTED_ATTRIBUTES = (
    "TOXICITY",
    "SEVERE_TOXICITY",
    "IDENTITY_ATTACK",
    "INSULT",
    "PROFANITY",
    "THREAT",
    "SEXUALLY_EXPLICIT",
)

# Our category -> Perspective attributes whose max becomes our score
ATTRIBUTE_MAP: dict[ModerationCategory, tuple[str, ...]] = {
    ModerationCategory.HATE_SPEECH: ("IDENTITY_ATTACK",),
    ModerationCategory.HARASSMENT: ("TOXICITY", "INSULT"),
    ModerationCategory.THREATS: ("THREAT",),
    ModerationCategory.PROFANITY: ("PROFANITY",),
    ModerationCategory.SEXUAL_HARASSMENT: ("SEXUALLY_EXPLICIT",),
    ModerationCategory.VIOLENCE: ("SEVERE_TOXICITY",),
}


def map_perspective_attributes(attribute_scores: dict) -> CategoryScores:
    def value(attr: str) -> float:
        return float(safe_get(attribute_scores, attr, "summaryScore", "value", default=0.0))

    return {
        category: max(value(attr) for attr in attrs)
        for category, attrs in ATTRIBUTE_MAP.items()
    }


class PerspectiveProvider(RemoteProvider):
    """Google Perspective toxicity attributes."""

    SPEC = ProviderSpec(
        name=ProviderKind.PERSPECTIVE.value,
        display_name="Google Perspective API",
        categories=list(ATTRIBUTE_MAP),
        requests_per_minute=60,
        requests_per_day=10000,
        pricing="free",
        pricing_details="Free tier with rate limits",
    )

    @property
    def spec(self) -> ProviderSpec:
        return self.SPEC

    def is_available(self) -> bool:
        return self.settings.has_perspective_key

    async def analyze(self, text: str) -> ProviderResult:
        start = time.perf_counter()
        client = await self._get_client()

        data = await client.post_json(
            PERSPECTIVE_URL,
            {
                "comment": {"text": text},
                "languages": ["en"],
                "requestedAttributes": {attr: {} for attr in REQUESTED_ATTRIBUTES},
            },
            params={"key": self.settings.perspective_api_key},
            service="Perspective",
        )

        attribute_scores = data.get("attributeScores") if isinstance(data, dict) else None
        if not attribute_scores:
            logger.warning("Perspective response has no attribute scores")
            return self.conservative_result(elapsed_ms(start), data if isinstance(data, dict) else None)

        categories = map_perspective_attributes(attribute_scores)
        max_score = max(categories.values())

        return ProviderResult(
            provider=self.name,
            flagged=max_score > FLAG_SCORE,
            confidence=max_score,
            categories=categories,
            latency_ms=elapsed_ms(start),
            raw_response=data,
        )
