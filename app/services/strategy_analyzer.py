"""
Strategy Analyzer
=================

Feedback classifiers: map (text, language) to a difficulty label and a
difficulty adjustment.

Every classifier is a pure function of its inputs and returns a label from
the closed set {hard, ok, easy} with an adjustment in [-0.15, +0.15]. The
keyword classifier is the production rule set; NeutralClassifier stands in
for a learned model until one exists. ClassificationError is reserved for
such a model; neither implementation here can fail.
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Sequence, Tuple

from app.models.feedback import Difficulty

HARD_ADJUSTMENT = -0.15
EASY_ADJUSTMENT = 0.15
NEUTRAL_ADJUSTMENT = 0.0

# Order matters only for readability: the first matching keyword wins, and
# every keyword in a set maps to the same label.
HARD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "en": ("hard", "difficult", "challenging", "tough", "complex", "confusing", "can't solve", "too hard", "struggle"),
    "ru": ("сложно", "трудно", "не понимаю", "непонятно", "тяжело", "запутан"),
}

EASY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "en": ("easy", "simple", "too easy", "boring", "trivial", "very easy", "super easy"),
    "ru": ("легко", "просто", "скучно", "элементарно"),
}


class FeedbackClassifier(ABC):
    """Interface every feedback classifier implements."""

    @abstractmethod
    def classify(self, text: str, language: str) -> Tuple[Difficulty, float]:
        """Return (label, adjustment) for ``text`` written in ``language``."""


class KeywordClassifier(FeedbackClassifier):
    """Rule-based classifier using per-language keyword sets.

    Hard keywords are checked before easy ones, so a message that contains
    both ("too easy at first, then too hard") is labelled hard. A language
    without keyword sets is always neutral.
    """

    def __init__(
        self,
        hard_keywords: Mapping[str, Sequence[str]] = HARD_KEYWORDS,
        easy_keywords: Mapping[str, Sequence[str]] = EASY_KEYWORDS,
    ):
        self._hard = {lang: tuple(k.lower() for k in kws) for lang, kws in hard_keywords.items()}
        self._easy = {lang: tuple(k.lower() for k in kws) for lang, kws in easy_keywords.items()}

    def classify(self, text: str, language: str) -> Tuple[Difficulty, float]:
        lowered = text.lower()

        if any(keyword in lowered for keyword in self._hard.get(language, ())):
            return Difficulty.HARD, HARD_ADJUSTMENT

        if any(keyword in lowered for keyword in self._easy.get(language, ())):
            return Difficulty.EASY, EASY_ADJUSTMENT

        return Difficulty.OK, NEUTRAL_ADJUSTMENT


class NeutralClassifier(FeedbackClassifier):
    """Placeholder for a learned model: every message is neutral."""

    def classify(self, text: str, language: str) -> Tuple[Difficulty, float]:
        return Difficulty.OK, NEUTRAL_ADJUSTMENT


def get_classifier(name: str) -> FeedbackClassifier:
    if name == "keyword":
        return KeywordClassifier()
    if name == "neutral":
        return NeutralClassifier()
    raise ValueError(f"Unknown classifier: {name!r}")
