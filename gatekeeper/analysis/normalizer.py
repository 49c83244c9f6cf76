"""Text normalization against adversarial obfuscation.

Reverses the common evasion tricks before the rule tables run:
lookalike Unicode letters, leetspeak, invisible characters, spaced-out
letters and stretched words. The pipeline is deterministic and
normalizing an already normalized string returns it unchanged.
"""

import re
from dataclasses import dataclass, field

# =============================================================================
# Zero-Width and Invisible Characters
# =============================================================================

ZERO_WIDTH_CHARS = (
    "​"  # zero-width space
    "‌"  # zero-width non-joiner
    "‍"  # zero-width joiner
    "‎"  # left-to-right mark
    "‏"  # right-to-left mark
    "⁠"  # word joiner
    "⁡"  # function application
    "⁢"  # invisible times
    "⁣"  # invisible separator
    "⁤"  # invisible plus
    "﻿"  # BOM
    "­"  # soft hyphen
    "͏"  # combining grapheme joiner
    "؜"  # arabic letter mark
    "ᅟ"  # hangul choseong filler
    "ᅠ"  # hangul jungseong filler
    "឴"  # khmer vowel inherent aq
    "឵"  # khmer vowel inherent aa
    "᠎"  # mongolian vowel separator
    "ㅤ"  # hangul filler
    "ﾠ"  # halfwidth hangul filler
)

ZERO_WIDTH_RE = re.compile(f"[{ZERO_WIDTH_CHARS}]")


# =============================================================================
# Homoglyph Table
# =============================================================================

_CYRILLIC = {
    "а": "a", "А": "A", "в": "b", "В": "B", "с": "c", "С": "C",
    "е": "e", "Е": "E", "н": "h", "Н": "H", "і": "i", "І": "I",
    "ї": "i", "к": "k", "К": "K", "м": "m", "М": "M", "о": "o",
    "О": "O", "р": "p", "Р": "P", "ѕ": "s", "т": "t", "Т": "T",
    "у": "y", "У": "Y", "х": "x", "Х": "X", "ј": "j", "ԁ": "d",
}

_GREEK = {
    "α": "a", "Α": "A", "β": "b", "Β": "B", "ε": "e", "Ε": "E",
    "η": "n", "ι": "i", "Ι": "I", "κ": "k", "Κ": "K", "ν": "v",
    "ο": "o", "Ο": "O", "ρ": "p", "Ρ": "P", "τ": "t", "Τ": "T",
    "υ": "u", "Υ": "Y", "χ": "x", "Χ": "X", "Ζ": "Z", "Η": "H",
    "Μ": "M", "Ν": "N",
}

_SMALL_CAPS = {
    "ᴀ": "a", "ʙ": "b", "ᴄ": "c", "ᴅ": "d", "ᴇ": "e", "ꜰ": "f",
    "ɢ": "g", "ʜ": "h", "ɪ": "i", "ᴊ": "j", "ᴋ": "k", "ʟ": "l",
    "ᴍ": "m", "ɴ": "n", "ᴏ": "o", "ᴘ": "p", "ǫ": "q", "ʀ": "r",
    "ꜱ": "s", "ᴛ": "t", "ᴜ": "u", "ᴠ": "v", "ᴡ": "w", "ʏ": "y",
    "ᴢ": "z",
}

_LETTERLIKE = {
    "ℓ": "l", "∂": "d", "№": "no", "℮": "e", "ⅰ": "i", "ⅱ": "ii",
    "ⅲ": "iii", "†": "t", "ƒ": "f", "\u212a": "k", "\u212b": "a", "ℎ": "h",
    "ℬ": "B", "ℰ": "E", "ℱ": "F", "ℋ": "H", "ℐ": "I", "ℒ": "L",
    "ℳ": "M", "ℛ": "R", "ℯ": "e", "ℊ": "g", "ℴ": "o", "ℭ": "C",
    "ℌ": "H", "ℑ": "I", "ℜ": "R", "ℨ": "Z", "ℂ": "C", "ℍ": "H",
    "ℕ": "N", "ℙ": "P", "ℚ": "Q", "ℝ": "R", "ℤ": "Z",
}

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"


def _alphabet_block(start: int, letters: str) -> dict[str, str]:
    return {chr(start + i): letter for i, letter in enumerate(letters)}


def _build_homoglyphs() -> dict[str, str]:
    table: dict[str, str] = {}
    table.update(_CYRILLIC)
    table.update(_GREEK)

    # Mathematical alphanumerics: 13 styles of A-Z followed by a-z
    for style in range(13):
        base = 0x1D400 + style * 52
        table.update(_alphabet_block(base, _UPPER))
        table.update(_alphabet_block(base + 26, _LOWER))
    # Mathematical digits: 5 styles of 0-9
    for style in range(5):
        table.update(_alphabet_block(0x1D7CE + style * 10, "0123456789"))

    # Fullwidth forms
    table.update(_alphabet_block(0xFF21, _UPPER))
    table.update(_alphabet_block(0xFF41, _LOWER))
    table.update(_alphabet_block(0xFF10, "0123456789"))

    # Circled, parenthesized and squared letters
    table.update(_alphabet_block(0x24B6, _UPPER))
    table.update(_alphabet_block(0x24D0, _LOWER))
    table.update(_alphabet_block(0x249C, _LOWER))
    table.update(_alphabet_block(0x1F130, _UPPER))
    table.update(_alphabet_block(0x1F150, _UPPER))
    table.update(_alphabet_block(0x1F170, _UPPER))

    table.update(_SMALL_CAPS)
    table.update(_LETTERLIKE)
    return table


HOMOGLYPHS: dict[str, str] = _build_homoglyphs()


# =============================================================================
# Leetspeak Table
# =============================================================================

LEETSPEAK: dict[str, str] = {
    "0": "o",
    "1": "i",
    "2": "z",
    "3": "e",
    "4": "a",
    "5": "s",
    "6": "g",
    "7": "t",
    "8": "b",
    "9": "g",
    "@": "a",
    "$": "s",
    "!": "i",
    "|": "i",
    "+": "t",
    "€": "e",
    "£": "l",
    "¥": "y",
    "^": "a",
}


# =============================================================================
# Spacing and Repetition
# =============================================================================

SPACING_SEPARATORS = r"[\s.\-_*]+"
SPACED_LETTERS_RE = re.compile(rf"\b[a-zA-Z](?:{SPACING_SEPARATORS}[a-zA-Z]){{2,}}\b")
SEPARATOR_RE = re.compile(SPACING_SEPARATORS)

# Case-insensitive so that "AAa" collapses before lowercasing, not after
REPEATED_RE = re.compile(r"(.)\1{2,}", re.IGNORECASE | re.DOTALL)


def collapse_spaced_letters(text: str) -> str:
    """Join runs of three or more single letters: "f u c k" -> "fuck"."""
    return SPACED_LETTERS_RE.sub(lambda m: SEPARATOR_RE.sub("", m.group(0)), text)


def collapse_repeated(text: str) -> str:
    """Collapse 3+ repeated characters to 2, keeping doubles like "book"."""
    return REPEATED_RE.sub(lambda m: m.group(0)[:2], text)


# =============================================================================
# Normalizer
# =============================================================================


@dataclass
class NormalizationResult:
    """Outcome of a normalization pass."""

    normalized: str
    original: str
    changes: list[str] = field(default_factory=list)


class TextNormalizer:
    """
    Obfuscation-reversing normalizer.

    Each instance holds its own copy of the mapping tables, so extra
    mappings added to one instance never leak into another.
    """

    STEPS = ("zero_width", "homoglyphs", "leetspeak", "spacing", "repeated", "lowercase")

    def __init__(self):
        self._homoglyphs = dict(HOMOGLYPHS)
        self._leetspeak = dict(LEETSPEAK)
        self._leet_inside_word_re = self._compile_leet_re()

    def _compile_leet_re(self) -> re.Pattern[str]:
        symbols = "".join(re.escape(ch) for ch in self._leetspeak)
        return re.compile(rf"[a-z][{symbols}]+[a-z]", re.IGNORECASE)

    def normalize(
        self,
        text: str,
        *,
        zero_width: bool = True,
        homoglyphs: bool = True,
        leetspeak: bool = True,
        spacing: bool = True,
        repeated: bool = True,
        lowercase: bool = True,
    ) -> NormalizationResult:
        """
        Run the normalization pipeline.

        Steps run in a fixed order and any of them can be switched off.
        `changes` lists the steps that actually altered the text.
        """
        steps = (
            ("zero_width", zero_width, self.remove_zero_width),
            ("homoglyphs", homoglyphs, self.normalize_homoglyphs),
            ("leetspeak", leetspeak, self.normalize_leetspeak),
            ("spacing", spacing, collapse_spaced_letters),
            ("repeated", repeated, collapse_repeated),
            ("lowercase", lowercase, str.lower),
        )

        changes: list[str] = []
        result = text
        for name, enabled, apply in steps:
            if not enabled:
                continue
            updated = apply(result)
            if updated != result:
                changes.append(name)
                result = updated

        return NormalizationResult(normalized=result, original=text, changes=changes)

    def remove_zero_width(self, text: str) -> str:
        """Strip zero-width and invisible characters."""
        return ZERO_WIDTH_RE.sub("", text)

    def _lookup_homoglyph(self, ch: str) -> str | None:
        mapped = self._homoglyphs.get(ch)
        if mapped is None:
            lower = ch.lower()
            if lower != ch:
                mapped = self._homoglyphs.get(lower)
        return mapped

    def normalize_homoglyphs(self, text: str) -> str:
        """Replace lookalike Unicode characters with ASCII."""
        out = []
        for ch in text:
            mapped = self._lookup_homoglyph(ch)
            out.append(ch if mapped is None else mapped)
        return "".join(out)

    def normalize_leetspeak(self, text: str) -> str:
        """Replace leetspeak digits and symbols with letters."""
        return "".join(self._leetspeak.get(ch, ch) for ch in text)

    def has_obfuscation(self, text: str) -> bool:
        """Check whether text shows any sign of deliberate obfuscation."""
        if any(self._lookup_homoglyph(ch) is not None for ch in text):
            return True
        if self._leet_inside_word_re.search(text):
            return True
        if ZERO_WIDTH_RE.search(text):
            return True
        return SPACED_LETTERS_RE.search(text) is not None

    def add_homoglyphs(self, mappings: dict[str, str]) -> None:
        """Add custom homoglyph mappings to this instance."""
        self._homoglyphs.update(mappings)

    def add_leetspeak(self, mappings: dict[str, str]) -> None:
        """Add custom leetspeak mappings to this instance."""
        self._leetspeak.update(mappings)
        self._leet_inside_word_re = self._compile_leet_re()


default_normalizer = TextNormalizer()


def normalize(text: str, **steps: bool) -> NormalizationResult:
    """Normalize with the shared default normalizer."""
    return default_normalizer.normalize(text, **steps)


def has_obfuscation(text: str) -> bool:
    """Obfuscation check with the shared default normalizer."""
    return default_normalizer.has_obfuscation(text)
