"""Pydantic models for Gatekeeper."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


# =============================================================================
# Enums
# =============================================================================


class ModerationCategory(str, Enum):
    """Closed set of moderation categories."""

    HATE_SPEECH = "hate_speech"
    HARASSMENT = "harassment"
    SEXUAL_HARASSMENT = "sexual_harassment"
    VIOLENCE = "violence"
    THREATS = "threats"
    SELF_HARM = "self_harm"
    DRUGS_ILLEGAL = "drugs_illegal"
    PROFANITY = "profanity"
    CHILD_SAFETY = "child_safety"
    PERSONAL_INFO = "personal_info"
    SPAM_SCAM = "spam_scam"


class ModerationAction(str, Enum):
    """Externally visible outcome of a moderation call."""

    ALLOW = "allow"
    DENY = "deny"
    ESCALATE = "escalate"


class DecisionTier(str, Enum):
    """Pipeline stage that produced the final decision."""

    LOCAL = "local"
    API = "api"
    COUNCIL = "council"
    HUMAN = "human"


class ScriptType(str, Enum):
    """Dominant Unicode script of a text."""

    LATIN = "latin"
    CJK = "cjk"
    CYRILLIC = "cyrillic"
    ARABIC = "arabic"
    HEBREW = "hebrew"
    THAI = "thai"
    DEVANAGARI = "devanagari"
    GREEK = "greek"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class Intent(str, Enum):
    """Intent behind the usage of a flagged term."""

    ATTACK = "attack"
    DISCUSS = "discuss"
    QUOTE = "quote"
    RECLAIM = "reclaim"
    EDUCATIONAL = "educational"
    UNKNOWN = "unknown"


class Target(str, Enum):
    """Who the content is aimed at."""

    PERSON = "person"
    GROUP = "group"
    SELF = "self"
    ABSTRACT = "abstract"
    NONE = "none"


class Sentiment(str, Enum):
    """Bag-of-words sentiment."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class CouncilDecision(str, Enum):
    """Aggregated council outcome."""

    FLAGGED = "flagged"
    CLEAN = "clean"
    HUMAN_REVIEW = "human_review"


class HumanReviewReason(str, Enum):
    """Why an item was queued for a human."""

    COUNCIL_SPLIT = "council_split"
    LOW_CONFIDENCE = "low_confidence"
    HIGH_SEVERITY = "high_severity"
    APPEAL = "appeal"


class ReviewStatus(str, Enum):
    """Human review lifecycle status."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    DECIDED = "decided"


class DecisionSource(str, Enum):
    """Which layer the final decision came from."""

    PRIMARY = "primary"
    COUNCIL = "council"
    HUMAN = "human"


CategoryScores = dict[ModerationCategory, float]


# =============================================================================
# Analysis Models
# =============================================================================


class ContextFactors(BaseModel):
    """Contextual signals derived fresh for every call."""

    intent: Intent = Field(default=Intent.UNKNOWN)
    target: Target = Field(default=Target.NONE)
    is_reclamation: bool = Field(default=False, description="In-group use of a slur")
    is_educational: bool = Field(default=False, description="Academic/documentary context")
    is_quoted: bool = Field(default=False, description="Reporting what someone else said")
    is_self_referential: bool = Field(default=False, description="Talking about oneself")
    sentiment: Sentiment = Field(default=Sentiment.NEUTRAL)


class RuleMatch(BaseModel):
    """A single rule-table hit in the normalized text."""

    term: str = Field(description="Matched text")
    start: int = Field(description="Start offset in normalized text")
    end: int = Field(description="End offset in normalized text")
    table: str = Field(description="Rule table the pattern belongs to")
    categories: list[ModerationCategory] = Field(default_factory=list)
    severity: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)


class FlaggedSpan(BaseModel):
    """A flagged portion of the input."""

    start: int = Field(description="Start offset in normalized text")
    end: int = Field(description="End offset in normalized text")
    original: str = Field(description="Text as it appears in the normalized input")
    normalized: str = Field(description="Normalized form of the term")
    categories: list[ModerationCategory] = Field(default_factory=list)
    severity: float = Field(ge=0.0, le=1.0)


# =============================================================================
# Provider Models
# =============================================================================


class ProviderResult(BaseModel):
    """Uniform shape every classifier (local or remote) returns."""

    provider: str = Field(description="Provider name")
    flagged: bool = Field(default=False)
    confidence: float = Field(default=0.5, description="Overall confidence 0.0-1.0")
    categories: CategoryScores = Field(default_factory=dict)
    latency_ms: float = Field(default=0.0)
    raw_response: dict[str, Any] | None = Field(
        default=None, description="Original response for debugging"
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        """Clamp out-of-range confidences from remote backends."""
        return _clamp_unit(v if v is not None else 0.0)

    @field_validator("categories", mode="before")
    @classmethod
    def clamp_categories(cls, v: Any) -> Any:
        """Drop unknown category names and clamp scores into [0, 1]."""
        if not isinstance(v, dict):
            return {}
        known = {c.value for c in ModerationCategory}
        cleaned = {}
        for key, score in v.items():
            name = key.value if isinstance(key, ModerationCategory) else str(key)
            if name in known and score is not None:
                cleaned[name] = _clamp_unit(score)
        return cleaned


class LocalMeta(BaseModel):
    """Diagnostics from the local classifier."""

    has_obfuscation: bool = Field(default=False)
    detected_terms: list[str] = Field(default_factory=list)
    matches: list[RuleMatch] = Field(default_factory=list)
    clean_indicators: bool = Field(default=False)
    context_applied: bool = Field(default=False)
    context_factors: ContextFactors = Field(default_factory=ContextFactors)
    harm_reduction: float = Field(default=1.0)
    raw_severity: float = Field(default=0.0, description="Before context adjustment")
    adjusted_severity: float = Field(default=0.0, description="After context adjustment")
    triggered_high_priority: bool = Field(default=False)


class LocalProviderResult(ProviderResult):
    """ProviderResult with local classifier diagnostics."""

    normalized: str = Field(default="", description="Text the rules ran against")
    local_meta: LocalMeta = Field(default_factory=LocalMeta)


class ProviderInfo(BaseModel):
    """Static description of a provider."""

    name: str
    display_name: str
    available: bool
    requires_api_key: bool
    categories: list[ModerationCategory] = Field(default_factory=list)
    requests_per_minute: int | None = Field(default=None)
    requests_per_day: int | None = Field(default=None)
    pricing: Literal["free", "pay-per-request", "subscription"] = Field(default="free")
    pricing_details: str = Field(default="")


class TokenUsage(BaseModel):
    """Token usage tracking for LLM-backed providers."""

    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    model: str = Field(default="")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# =============================================================================
# Council Models
# =============================================================================


class CouncilVote(ProviderResult):
    """A council member's vote."""

    reasoning: str | None = Field(default=None)


class CouncilResult(BaseModel):
    """Aggregated council outcome."""

    votes: list[CouncilVote] = Field(default_factory=list)
    unanimous: bool = Field(default=True)
    majority_flagged: bool = Field(default=False)
    majority_confidence: float = Field(default=0.0)
    average_confidence: float = Field(default=0.0)
    decision: CouncilDecision
    decision_reason: str = Field(default="")
    failed_members: list[str] = Field(
        default_factory=list, description="Members that timed out or errored"
    )


# =============================================================================
# Moderation Result
# =============================================================================


class TierInfo(BaseModel):
    """Full provenance of a decision."""

    tier: DecisionTier = Field(default=DecisionTier.LOCAL)
    reason: str = Field(default="")
    local_latency_ms: float = Field(default=0.0)
    api_latency_ms: float | None = Field(default=None)
    council_latency_ms: float | None = Field(default=None)
    skipped_api: bool = Field(default=False)
    skipped_council: bool = Field(default=False)
    language: ScriptType = Field(default=ScriptType.UNKNOWN)


class ModerationResult(BaseModel):
    """The externally visible outcome. Immutable once returned."""

    model_config = ConfigDict(frozen=True)

    action: ModerationAction
    severity: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    categories: CategoryScores = Field(default_factory=dict)
    flagged_spans: list[FlaggedSpan] = Field(default_factory=list)
    tier_info: TierInfo
    warnings: list[str] = Field(default_factory=list)

    context_factors: ContextFactors = Field(default_factory=ContextFactors)
    original: str = Field(default="")
    normalized: str = Field(default="")
    processing_time_ms: float = Field(default=0.0)
    review_item_id: str | None = Field(default=None)
    audit_entry_id: str = Field(default="")

    @property
    def flagged(self) -> bool:
        return self.action == ModerationAction.DENY


class QuickCheckResult(BaseModel):
    """Local-only verdict."""

    flagged: bool
    severity: float
    latency_ms: float


# =============================================================================
# Human Review
# =============================================================================


class HumanDecision(BaseModel):
    """A reviewer's verdict."""

    flagged: bool
    categories: list[ModerationCategory] = Field(default_factory=list)
    notes: str = Field(default="")
    decided_by: str = Field(default="")
    decided_at: datetime = Field(default_factory=_utcnow)


class HumanReviewItem(BaseModel):
    """A case routed to the human tier."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    text: str
    normalized: str = Field(default="")
    primary_result: ProviderResult
    council_result: CouncilResult | None = Field(default=None)
    reason: HumanReviewReason
    priority: float = Field(ge=0.0, le=100.0)
    created_at: datetime = Field(default_factory=_utcnow)
    status: ReviewStatus = Field(default=ReviewStatus.PENDING)
    assigned_to: str | None = Field(default=None)
    human_decision: HumanDecision | None = Field(default=None)


# =============================================================================
# Audit Log
# =============================================================================


class AuditInput(BaseModel):
    """Input snapshot of a moderate() call."""

    model_config = ConfigDict(frozen=True)

    original: str
    normalized: str
    context: str | None = Field(default=None)


class FinalDecision(BaseModel):
    """Final decision snapshot."""

    model_config = ConfigDict(frozen=True)

    flagged: bool
    action: ModerationAction
    confidence: float
    decision_source: DecisionSource


class HumanReviewRef(BaseModel):
    """Pointer from an audit entry to a review item."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    status: ReviewStatus


class AuditLogEntry(BaseModel):
    """Append-only record of one moderate() call."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    sequence: int = Field(description="Monotonic creation order")
    timestamp: datetime = Field(default_factory=_utcnow)
    input: AuditInput
    local_result: LocalProviderResult | None = Field(default=None)
    primary_result: ProviderResult
    escalated: bool = Field(default=False)
    council_result: CouncilResult | None = Field(default=None)
    final_decision: FinalDecision
    tier_info: TierInfo
    human_review: HumanReviewRef | None = Field(default=None)
    processing_time_ms: float = Field(default=0.0)


class ModerationStats(BaseModel):
    """Aggregate counters over the audit log and review queue."""

    total_decisions: int = 0
    decided_locally: int = 0
    decided_by_api: int = 0
    escalated_to_council: int = 0
    sent_to_human_review: int = 0
    council_unanimous: int = 0
    council_majority: int = 0
    council_split: int = 0
    actions: dict[ModerationAction, int] = Field(default_factory=dict)
    pending_reviews: int = 0
    decided_reviews: int = 0
