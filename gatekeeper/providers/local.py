"""Local pattern-matching provider."""

from gatekeeper.analysis.classifier import LocalClassifier
from gatekeeper.config import Settings
from gatekeeper.lib.models import LocalProviderResult, ModerationCategory
from gatekeeper.providers.base import ProviderSpec, RemoteProvider


class LocalProvider(RemoteProvider):
    """LocalClassifier behind the provider contract. Always available."""

    SPEC = ProviderSpec(
        name="local",
        display_name="Local Pattern Matching",
        requires_api_key=False,
        categories=[
            ModerationCategory.HATE_SPEECH,
            ModerationCategory.HARASSMENT,
            ModerationCategory.PROFANITY,
            ModerationCategory.THREATS,
            ModerationCategory.SELF_HARM,
            ModerationCategory.VIOLENCE,
        ],
        pricing="free",
        pricing_details="No API calls, runs in-process",
    )

    def __init__(
        self,
        classifier: LocalClassifier | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(settings=settings)
        self.classifier = classifier or LocalClassifier(
            normalize_text=self.settings.moderator.normalize_text,
            analyze_context=self.settings.moderator.analyze_context,
        )

    @property
    def spec(self) -> ProviderSpec:
        return self.SPEC

    def is_available(self) -> bool:
        return True

    async def analyze(self, text: str) -> LocalProviderResult:
        return self.classifier.classify(text)
