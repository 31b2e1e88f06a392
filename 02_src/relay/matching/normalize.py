"""Text normalization shared by every matching stage."""

import re
import unicodedata

# Hesitations and discourse markers that carry no choice information
FILLER_WORDS: dict[str, tuple[str, ...]] = {
    "pt": ("entao", "ne", "tipo", "assim", "eh", "ah", "hmm", "hum", "ahn", "tipo assim"),
    "en": ("um", "uh", "eh", "ah", "hmm", "er", "erm", "like", "you know"),
}

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_filler_patterns: dict[str, re.Pattern] = {}


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _filler_pattern(language: str) -> re.Pattern | None:
    words = FILLER_WORDS.get(language)
    if not words:
        return None
    pattern = _filler_patterns.get(language)
    if pattern is None:
        # Longest phrases first so "tipo assim" wins over "tipo"
        alternatives = "|".join(
            re.escape(word) for word in sorted(words, key=len, reverse=True)
        )
        pattern = re.compile(rf"\b(?:{alternatives})\b")
        _filler_patterns[language] = pattern
    return pattern


def normalize(text: str, language: str = "pt") -> str:
    """Lowercase, drop accents, filler words and punctuation, collapse spaces."""
    if not text:
        return ""

    cleaned = strip_accents(text.lower())
    cleaned = _PUNCTUATION.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    pattern = _filler_pattern(language)
    if pattern is not None:
        cleaned = pattern.sub(" ", cleaned)

    return _WHITESPACE.sub(" ", cleaned).strip()
