"""LLM-as-judge moderation providers.

Anthropic, Gemini and DeepSeek are prompted with the same classification
instructions and must answer with a JSON verdict. Anthropic goes through
the Anthropic SDK, the other two through OpenRouter.
"""

import logging
import time
from typing import Any

from gatekeeper.config import PROVIDER_MODELS, ModelProvider, ProviderKind, Settings
from gatekeeper.lib.exceptions import ConfigurationError, LLMResponseParseError
from gatekeeper.lib.llm import LLMClient, extract_json
from gatekeeper.lib.models import CategoryScores, CouncilVote, ModerationCategory
from gatekeeper.lib.utils import elapsed_ms
from gatekeeper.providers.base import ProviderSpec, RemoteProvider

logger = logging.getLogger(__name__)

FLAG_SCORE = 0.5


# =============================================================================
# Prompt Templates
# =============================================================================


MODERATION_SYSTEM_PROMPT = """You are a content moderation classifier for a trust & safety system. Your role is to ANALYZE and CLASSIFY text to help platforms identify potentially harmful content.

You are NOT the target of this content. You are a safety tool examining content that users have submitted to be checked. Analyze the content objectively and provide classification scores even if it contains slurs, threats, or other harmful language. Refusing to analyze defeats the purpose of content moderation.

## Categories to evaluate (score 0.0-1.0)
- hate_speech: Attacks based on race, ethnicity, religion, gender, sexual orientation, disability
- harassment: Bullying, intimidation directed at individuals
- sexual_harassment: Unwanted sexual content or advances
- violence: Graphic violence, gore, threats of physical harm
- threats: Direct threats to harm someone
- self_harm: Content promoting or glorifying self-harm or suicide
- drugs_illegal: Promotion of illegal drugs or activities
- profanity: Strong profane language
- child_safety: Any content that could endanger minors
- personal_info: Doxxing, sharing private information
- spam_scam: Spam, scams, phishing attempts

## Context matters
- ATTACK (directed at someone with intent to harm) vs DISCUSSION (talking about a topic)
- QUOTE (reporting what someone else said) vs EDUCATIONAL (academic/documentary)
- RECLAMATION (in-group use of reclaimed terms)

## Output Format
Respond ONLY with a JSON object:
```json
{
    "flagged": true,
    "confidence": 0.0,
    "categories": {"category_name": 0.0},
    "reasoning": "Brief explanation"
}
```
"""

MODERATION_USER_PROMPT = '''Text to analyze:
"""
{text}
"""'''


# =============================================================================
# Provider
# =============================================================================

JUDGE_SPECS: dict[ProviderKind, ProviderSpec] = {
    ProviderKind.ANTHROPIC: ProviderSpec(
        name=ProviderKind.ANTHROPIC.value,
        display_name="Anthropic Claude",
        requests_per_minute=50,
        pricing="pay-per-request",
        pricing_details="Haiku: billed per input/output token",
    ),
    ProviderKind.GEMINI: ProviderSpec(
        name=ProviderKind.GEMINI.value,
        display_name="Google Gemini",
        requests_per_minute=60,
        pricing="pay-per-request",
        pricing_details="Flash via OpenRouter: billed per input/output token",
    ),
    ProviderKind.DEEPSEEK: ProviderSpec(
        name=ProviderKind.DEEPSEEK.value,
        display_name="DeepSeek",
        pricing="pay-per-request",
        pricing_details="DeepSeek chat via OpenRouter: billed per input/output token",
    ),
}


def normalize_category_scores(raw: dict[str, Any]) -> CategoryScores:
    """Map loosely formatted category keys ("Hate Speech", "self-harm") to categories."""
    known = {c.value: c for c in ModerationCategory}
    scores: CategoryScores = {}
    for key, value in raw.items():
        name = str(key).strip().lower().replace("-", "_").replace(" ", "_")
        if name not in known:
            continue
        try:
            scores[known[name]] = min(max(float(value), 0.0), 1.0)
        except (TypeError, ValueError):
            continue
    return scores


class LLMJudgeProvider(RemoteProvider):
    """Chat model prompted to return a moderation verdict."""

    def __init__(
        self,
        kind: ProviderKind,
        llm_client: LLMClient | None = None,
        settings: Settings | None = None,
        model: str | None = None,
    ):
        if kind not in JUDGE_SPECS:
            raise ConfigurationError(f"{kind.value} is not an LLM judge provider", field="kind")
        super().__init__(llm_client=llm_client, settings=settings)
        self.kind = kind
        self.model = model or PROVIDER_MODELS[kind].model_id

    @property
    def spec(self) -> ProviderSpec:
        return JUDGE_SPECS[self.kind]

    def is_available(self) -> bool:
        transport = self.settings.get_model_provider(self.model)
        if transport == ModelProvider.ANTHROPIC:
            return self.settings.has_anthropic_key
        if transport == ModelProvider.OPENAI:
            return self.settings.has_openai_key
        return self.settings.has_openrouter_key

    async def analyze(self, text: str) -> CouncilVote:
        start = time.perf_counter()
        client = await self._get_client()

        response = await client.complete(
            model=self.model,
            messages=[{"role": "user", "content": MODERATION_USER_PROMPT.format(text=text)}],
            system=MODERATION_SYSTEM_PROMPT,
            max_tokens=1024,
            temperature=0.1,
            caller=self.name,
        )

        try:
            parsed = extract_json(response.content)
        except LLMResponseParseError as e:
            logger.warning(f"{self.display_name} returned an unparseable verdict: {e.message}")
            fallback = self.conservative_result(
                elapsed_ms(start), {"content": response.content}
            )
            return CouncilVote(**fallback.model_dump())

        return self.parse_verdict(parsed, elapsed_ms(start))

    def parse_verdict(self, parsed: dict[str, Any], latency_ms: float) -> CouncilVote:
        """Turn a parsed JSON verdict into a vote."""
        raw_categories = parsed.get("categories")
        if not isinstance(raw_categories, dict):
            # Some models put category scores at the top level
            raw_categories = parsed
        categories = normalize_category_scores(raw_categories)

        flagged = parsed.get("flagged")
        if not isinstance(flagged, bool):
            flagged = any(score > FLAG_SCORE for score in categories.values())

        confidence = parsed.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = 0.5

        reasoning = parsed.get("reasoning")
        return CouncilVote(
            provider=self.name,
            flagged=flagged,
            confidence=confidence,
            categories=categories,
            latency_ms=latency_ms,
            raw_response=parsed,
            reasoning=str(reasoning) if reasoning is not None else None,
        )
