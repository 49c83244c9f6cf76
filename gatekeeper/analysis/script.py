"""Script detection for routing decisions.

The local rule tables only cover Latin text, so anything written mostly in
another script skips the fast path and goes straight to a remote classifier.
"""

from dataclasses import dataclass

from gatekeeper.lib.models import ScriptType

# =============================================================================
# Unicode Ranges
# =============================================================================

# Bucket order doubles as the tie-break order.
SCRIPT_RANGES: dict[ScriptType, list[tuple[int, int]]] = {
    ScriptType.LATIN: [
        (0x0000, 0x007F),  # Basic Latin
        (0x0080, 0x00FF),  # Latin-1 Supplement
        (0x0100, 0x017F),  # Latin Extended-A
        (0x0180, 0x024F),  # Latin Extended-B
        (0x1E00, 0x1EFF),  # Latin Extended Additional
    ],
    ScriptType.CJK: [
        (0x4E00, 0x9FFF),  # CJK Unified Ideographs
        (0x3400, 0x4DBF),  # Extension A
        (0x20000, 0x2A6DF),  # Extension B
        (0x2A700, 0x2B73F),  # Extension C
        (0x2B740, 0x2B81F),  # Extension D
        (0xF900, 0xFAFF),  # Compatibility Ideographs
        (0x3000, 0x303F),  # CJK Symbols and Punctuation
        (0x3040, 0x309F),  # Hiragana
        (0x30A0, 0x30FF),  # Katakana
        (0x31F0, 0x31FF),  # Katakana Phonetic Extensions
        (0xAC00, 0xD7AF),  # Hangul Syllables
        (0x1100, 0x11FF),  # Hangul Jamo
        (0x3130, 0x318F),  # Hangul Compatibility Jamo
    ],
    ScriptType.CYRILLIC: [(0x0400, 0x04FF), (0x0500, 0x052F)],
    ScriptType.ARABIC: [(0x0600, 0x06FF), (0x0750, 0x077F), (0x08A0, 0x08FF)],
    ScriptType.HEBREW: [(0x0590, 0x05FF)],
    ScriptType.THAI: [(0x0E00, 0x0E7F)],
    ScriptType.DEVANAGARI: [(0x0900, 0x097F)],
    ScriptType.GREEK: [(0x0370, 0x03FF)],
}

DOMINANT_SHARE = 0.8
MIXED_SHARE = 0.2


def _is_skipped(cp: int) -> bool:
    """Whitespace, digits and basic ASCII punctuation carry no script signal."""
    return cp <= 0x40 or 0x5B <= cp <= 0x60 or 0x7B <= cp <= 0x7F


def _bucket_for(cp: int) -> ScriptType | None:
    for script, ranges in SCRIPT_RANGES.items():
        for start, end in ranges:
            if start <= cp <= end:
                return script
    return None


# =============================================================================
# Detection
# =============================================================================


def detect_script(text: str) -> ScriptType:
    """Detect the dominant script of a text."""
    counts = {script: 0 for script in SCRIPT_RANGES}
    total = 0

    for ch in text:
        cp = ord(ch)
        if _is_skipped(cp):
            continue
        total += 1
        bucket = _bucket_for(cp)
        if bucket is not None:
            counts[bucket] += 1

    if total == 0:
        return ScriptType.UNKNOWN

    # sorted() is stable, so equal counts keep bucket order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    top_script, top_count = ranked[0]
    _, second_count = ranked[1]

    if top_count == 0:
        return ScriptType.UNKNOWN
    if top_count / total > DOMINANT_SHARE:
        return top_script
    if second_count > 0 and second_count / total > MIXED_SHARE:
        return ScriptType.MIXED
    return top_script


def is_latin_script(text: str) -> bool:
    """True when the text is primarily Latin script."""
    return detect_script(text) == ScriptType.LATIN


def has_non_latin_content(text: str) -> bool:
    """True when the text needs non-Latin handling."""
    return detect_script(text) not in (ScriptType.LATIN, ScriptType.UNKNOWN)


@dataclass(frozen=True)
class LanguageAnalysis:
    """Script detection result with a routing recommendation."""

    script: ScriptType
    is_latin: bool
    should_skip_fast_path: bool
    reason: str


def analyze_language(text: str) -> LanguageAnalysis:
    """Detect the script and decide whether the fast path applies."""
    script = detect_script(text)
    is_latin = script == ScriptType.LATIN

    if is_latin:
        reason = "Latin script detected, fast-path eligible"
    elif script == ScriptType.UNKNOWN:
        reason = "No alphabetic content detected"
    else:
        reason = f"{script.value} script detected, skipping fast-path for API analysis"

    return LanguageAnalysis(
        script=script,
        is_latin=is_latin,
        should_skip_fast_path=script not in (ScriptType.LATIN, ScriptType.UNKNOWN),
        reason=reason,
    )
