"""Static rule tables for the local classifier.

Patterns run against normalized, lowercased text. The leetspeak character
classes stay in the patterns so the tables still work when normalization
is switched off. Everything here is compiled once at import time and is
safe to share between threads.
"""

import re
from dataclasses import dataclass, field

from gatekeeper.lib.models import ModerationCategory

HATE = ModerationCategory.HATE_SPEECH
HARASSMENT = ModerationCategory.HARASSMENT
PROFANITY = ModerationCategory.PROFANITY
THREATS = ModerationCategory.THREATS
VIOLENCE = ModerationCategory.VIOLENCE
SELF_HARM = ModerationCategory.SELF_HARM


def _p(pattern: str, flags: int = re.IGNORECASE) -> re.Pattern[str]:
    return re.compile(pattern, flags)


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern[str]
    categories: tuple[ModerationCategory, ...]
    severity: float
    confidence: float


@dataclass(frozen=True)
class RuleTable:
    name: str
    rules: tuple[Rule, ...]
    high_priority: bool = False
    # Profanity confidence only replaces the running max while severity is low
    soft_confidence: bool = False
    description: str = field(default="", compare=False)


# =============================================================================
# Severe Slurs
# =============================================================================

SEVERE_SLURS = RuleTable(
    name="severe_slurs",
    description="Unambiguous hate terms; instant block candidates",
    rules=(
        # Racial
        Rule(_p(r"\bn+[i1!|]g+[e3]r+s?\b"), (HATE, PROFANITY), 0.95, 0.95),
        Rule(_p(r"\bn+[i1!|]g+[a@4]+s?\b"), (HATE, PROFANITY), 0.90, 0.90),
        Rule(_p(r"\bk+[i1!|]k+[e3]+s?\b"), (HATE,), 0.90, 0.90),
        Rule(_p(r"\bsp+[i1!|]c+s?\b"), (HATE,), 0.85, 0.85),
        Rule(_p(r"\bch+[i1!|]nk+s?\b"), (HATE,), 0.85, 0.85),
        Rule(_p(r"\bg+[o0]+k+s?\b"), (HATE,), 0.85, 0.85),
        Rule(_p(r"\bw+[e3]tb+[a@4]ck+s?\b"), (HATE,), 0.85, 0.85),
        # Homophobic and transphobic
        Rule(_p(r"\bf+[a@4]g+[o0]+t+s?\b"), (HATE, PROFANITY), 0.90, 0.90),
        Rule(_p(r"\bf+[a@4]g+s?\b"), (HATE, PROFANITY), 0.85, 0.85),
        Rule(_p(r"\bd+y+k+[e3]+s?\b"), (HATE,), 0.80, 0.80),
        Rule(_p(r"\btr+[a@4]nn+(y|[i1!|][e3])+s?\b"), (HATE,), 0.85, 0.85),
        # Reclaimable; lower severity so context can pull it under the allow line
        Rule(_p(r"\bq+u+[e3]+r+s?\b"), (HATE,), 0.60, 0.70),
        # Other severe terms
        Rule(_p(r"\bc+u+n+t+s?\b"), (PROFANITY, HARASSMENT), 0.80, 0.85),
        Rule(_p(r"\br+[e3]t+[a@4]rd+s?\b"), (HATE,), 0.75, 0.80),
    ),
)


# =============================================================================
# Standard Profanity
# =============================================================================

PROFANITY_WORDS = RuleTable(
    name="profanity",
    description="Common profanity; context matters more than the word",
    soft_confidence=True,
    rules=(
        Rule(_p(r"\bf+u+c+k+"), (PROFANITY,), 0.50, 0.80),
        Rule(_p(r"\bs+h+[i1!|]+t+"), (PROFANITY,), 0.45, 0.80),
        Rule(_p(r"\b[a@4]s+s+h+[o0]+l+[e3]+"), (PROFANITY,), 0.50, 0.80),
        Rule(_p(r"\bb+[i1!|]+t+c+h+"), (PROFANITY,), 0.50, 0.75),
        Rule(_p(r"\bd+[a@4]+m+n+"), (PROFANITY,), 0.25, 0.85),
        Rule(_p(r"\bh+[e3]+l+l+\b"), (PROFANITY,), 0.15, 0.85),
        Rule(_p(r"\bc+r+[a@4]+p+"), (PROFANITY,), 0.20, 0.85),
        Rule(_p(r"\bp+[i1!|]+s+s+"), (PROFANITY,), 0.30, 0.80),
    ),
)


# =============================================================================
# Harassment
# =============================================================================

HARASSMENT_PHRASES = RuleTable(
    name="harassment",
    description="Insults aimed at a person",
    rules=(
        Rule(_p(r"\bf+u+c+k+\s+(you|u|off)\b"), (HARASSMENT, PROFANITY), 0.70, 0.85),
        Rule(
            _p(
                r"\b(stupid|dumb|worthless|pathetic|ugly|fat)\s+"
                r"(idiot|moron|loser|bitch|piece\s+of\s+\w+|retard|cow|pig)\b"
            ),
            (HARASSMENT,),
            0.65,
            0.80,
        ),
        Rule(
            _p(
                r"\byou('re|\s+are)\s+(an?\s+)?"
                r"(idiot|moron|loser|worthless|pathetic|stupid|trash|garbage)\b"
            ),
            (HARASSMENT,),
            0.60,
            0.75,
        ),
        Rule(_p(r"\bnobody\s+(likes|loves|wants)\s+you\b"), (HARASSMENT,), 0.55, 0.70),
    ),
)


# =============================================================================
# Threats
# =============================================================================

THREAT_PHRASES = RuleTable(
    name="threats",
    description="Threats of violence; always verified remotely",
    high_priority=True,
    rules=(
        Rule(
            _p(r"\b(kill|murder|shoot|stab)\s+(you|them|him|her|yourself)"),
            (THREATS, VIOLENCE),
            0.90,
            0.85,
        ),
        Rule(_p(r"\bi('ll|'m going to|\s+will)\s+(kill|murder|hurt|harm)"), (THREATS, VIOLENCE), 0.85, 0.80),
        Rule(_p(r"\b(should|deserve to)\s+(die|be killed|suffer)"), (THREATS, VIOLENCE), 0.85, 0.80),
        Rule(_p(r"\bkill\s+yourself\b"), (THREATS, SELF_HARM), 0.95, 0.90),
        Rule(_p(r"\bhope\s+(you|they)\s+die\b"), (THREATS, HARASSMENT), 0.80, 0.80),
    ),
)


# =============================================================================
# Self-Harm
# =============================================================================

SELF_HARM_PHRASES = RuleTable(
    name="self_harm",
    description="Self-harm signals; always verified remotely",
    high_priority=True,
    rules=(
        Rule(_p(r"\b(cut|cutting)\s+(myself|my\s+(wrist|arm|leg))"), (SELF_HARM,), 0.85, 0.75),
        Rule(_p(r"\b(want|going)\s+to\s+(die|end\s+it|kill\s+myself)"), (SELF_HARM,), 0.90, 0.80),
        # Often discussion rather than intent
        Rule(_p(r"\bsuicid(e|al)\b"), (SELF_HARM,), 0.70, 0.60),
        Rule(_p(r"\bself[- ]harm"), (SELF_HARM,), 0.75, 0.65),
        Rule(_p(r"\bkill\s+myself\b"), (SELF_HARM,), 0.95, 0.85),
    ),
)

# Evaluation order matters for the soft-confidence rule
RULE_TABLES: tuple[RuleTable, ...] = (
    SEVERE_SLURS,
    PROFANITY_WORDS,
    HARASSMENT_PHRASES,
    THREAT_PHRASES,
    SELF_HARM_PHRASES,
)


# =============================================================================
# Clean-Text Heuristics
# =============================================================================

SHORT_TEXT_LIMIT = 20
SPECIAL_CHARS_RE = _p(r"[!@#$%^&*]")

SAFE_PATTERNS = (
    _p(r"^(hi|hello|hey|thanks|thank you|please|okay|ok|yes|no|sure|good|great|nice|cool)\b"),
    _p(r"^(i think|i believe|in my opinion|maybe|perhaps)\b"),
    _p(r"\b(have a (nice|good|great) day)\b"),
)


def has_clean_indicators(text: str) -> bool:
    """Short plain text, greetings, opinions and polite closings read as clean."""
    if len(text) < SHORT_TEXT_LIMIT and not SPECIAL_CHARS_RE.search(text):
        return True
    stripped = text.strip()
    return any(p.search(stripped) for p in SAFE_PATTERNS)


# =============================================================================
# Category Weights
# =============================================================================

CATEGORY_WEIGHTS: dict[ModerationCategory, float] = {
    ModerationCategory.HATE_SPEECH: 1.0,
    ModerationCategory.HARASSMENT: 0.9,
    ModerationCategory.SEXUAL_HARASSMENT: 0.9,
    ModerationCategory.VIOLENCE: 0.9,
    ModerationCategory.THREATS: 1.0,
    ModerationCategory.SELF_HARM: 0.8,
    ModerationCategory.DRUGS_ILLEGAL: 0.6,
    ModerationCategory.PROFANITY: 0.4,
    ModerationCategory.CHILD_SAFETY: 1.0,
    ModerationCategory.PERSONAL_INFO: 0.7,
    ModerationCategory.SPAM_SCAM: 0.5,
}

HIGH_PRIORITY_CATEGORIES = (
    ModerationCategory.CHILD_SAFETY,
    ModerationCategory.THREATS,
    ModerationCategory.SELF_HARM,
)
