"""InputResolutionEngine: map free-form input onto the presented choices.

Stages run in strict priority and the first hit wins:
numeric literal, spoken number, exact containment, fuzzy similarity.
"""

import re
from typing import Protocol

import Levenshtein

from ..logging_config import get_logger
from ..models import Choice, Match
from .normalize import normalize
from .numbers import find_number_word

logger = get_logger(__name__)

DEFAULT_MIN_SCORE = 0.4

# An integer, optionally followed by an ordinal suffix ("2", "1o", "3rd")
_NUMERIC_TOKEN = re.compile(r"^(\d+)(?:o|a|st|nd|rd|th)?$")


def similarity(text: str, label: str) -> float:
    """Token-based similarity in [0, 1] between normalized input and label.

    The larger of two views: Levenshtein ratio over sorted unique tokens, and
    how well each label token is covered by its closest input token (weighted
    by token length). Depends only on the two strings.
    """
    if not text or not label:
        return 0.0

    text_tokens = sorted(set(text.split()))
    label_tokens = sorted(set(label.split()))

    sorted_ratio = Levenshtein.ratio(" ".join(text_tokens), " ".join(label_tokens))

    total = sum(len(token) for token in label_tokens)
    covered = sum(
        len(token) * max(Levenshtein.ratio(token, other) for other in text_tokens)
        for token in label_tokens
    )

    return max(sorted_ratio, covered / total)


class IInputResolutionEngine(Protocol):
    """Resolves user input against a choice list."""

    def resolve(self, raw_input: str, choices: list[Choice]) -> Match | None:
        """Return the best matching choice, or None when nothing qualifies."""
        ...


class InputResolutionEngine:
    """Pure choice matcher; callers own any state changes after a match."""

    def __init__(self, language: str = "pt", min_score: float = DEFAULT_MIN_SCORE):
        self._language = language
        self._min_score = min_score

    @property
    def language(self) -> str:
        return self._language

    def resolve(self, raw_input: str, choices: list[Choice]) -> Match | None:
        """Return the best matching choice, or None when nothing qualifies."""
        if not raw_input or not raw_input.strip() or not choices:
            return None

        text = normalize(raw_input, self._language)
        if not text:
            return None
        tokens = text.split()

        match = (
            self._match_numeric(tokens, choices)
            or self._match_spoken_number(tokens, choices)
            or self._match_containment(text, choices)
            or self._match_fuzzy(text, choices)
        )

        if match:
            logger.info(
                'Choice matched: "%s" -> "%s" (%s, score %.2f)',
                raw_input[:100],
                match.content,
                match.stage,
                match.score,
            )
        else:
            logger.info(
                'No choice match for: "%s" (%s options)', raw_input[:100], len(choices)
            )
        return match

    def _match_numeric(self, tokens: list[str], choices: list[Choice]) -> Match | None:
        for token in tokens:
            found = _NUMERIC_TOKEN.match(token)
            if found:
                return self._pick(int(found.group(1)), choices, "numeric")
        return None

    def _match_spoken_number(
        self, tokens: list[str], choices: list[Choice]
    ) -> Match | None:
        for value in find_number_word(tokens, self._language):
            match = self._pick(value, choices, "spoken_number")
            if match:
                return match
        return None

    def _match_containment(self, text: str, choices: list[Choice]) -> Match | None:
        for choice in choices:
            label = normalize(choice.label, self._language)
            if not label:
                continue
            if label in text or text in label:
                return Match(choice.id, choice.label, 1.0, stage="containment")
        return None

    def _match_fuzzy(self, text: str, choices: list[Choice]) -> Match | None:
        best: Choice | None = None
        best_score = 0.0
        for choice in choices:
            score = similarity(text, normalize(choice.label, self._language))
            if score > best_score:
                best, best_score = choice, score

        if best is not None and best_score >= self._min_score:
            return Match(best.id, best.label, round(best_score, 4), stage="fuzzy")
        return None

    @staticmethod
    def _pick(number: int, choices: list[Choice], stage: str) -> Match | None:
        if 1 <= number <= len(choices):
            choice = choices[number - 1]
            return Match(choice.id, choice.label, 1.0, stage=stage)
        return None
