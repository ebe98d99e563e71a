"""
Complexity Classifier - Maps request text to a complexity tier.

The classifier evaluates an ordered table of regex rules against the text.
Texts frequently match patterns from more than one tier ("what is the
complex ..."), so the table is a sequence rather than a mapping: the first
tier in declaration order with a matching pattern wins. When no pattern
matches, the word count decides.

The tier feeds the dispatcher's default ranking and the capability chosen
by the capability-descending strategy.
"""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class ComplexityTier(str, Enum):
    """Task complexity tiers, from cheapest to most demanding."""

    SIMPLE = "SIMPLE"
    MODERATE = "MODERATE"
    COMPLEX = "COMPLEX"


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Declaration order is match priority.
COMPLEXITY_PATTERNS: tuple[tuple[ComplexityTier, tuple[re.Pattern[str], ...]], ...] = (
    (
        ComplexityTier.SIMPLE,
        _compile(
            r"what is|who is|when|where|can you|could you",
            r"hello|hi there|good morning|help me",
            r"simple|basic|quick|short",
        ),
    ),
    (
        ComplexityTier.MODERATE,
        _compile(
            r"explain|describe|compare|contrast|summarize",
            r"how to|how do I|steps to|process of",
            r"analyze the|provide feedback|what are the implications",
        ),
    ),
    (
        ComplexityTier.COMPLEX,
        _compile(
            r"design a|create a comprehensive|develop a strategy",
            r"ethical implications|philosophical|theoretical|conceptual",
            r"critique|evaluate the merits|assess the validity",
            r"research|investigate|deep dive",
            r"complex|complicated|advanced|sophisticated",
        ),
    ),
)


class ComplexityClassifier:
    """
    Rule-based complexity classifier.

    Pure and total: any string, including the empty string, maps to a tier
    and the same text always maps to the same tier.

    Usage:
        classifier = ComplexityClassifier()
        tier = classifier.classify("Explain how TCP handshakes work")
    """

    SIMPLE_MAX_WORDS = 50
    MODERATE_MAX_WORDS = 150

    def __init__(
        self,
        patterns: tuple[tuple[ComplexityTier, tuple[re.Pattern[str], ...]], ...] = COMPLEXITY_PATTERNS,
    ) -> None:
        self._patterns = patterns

    def match_rule(self, text: str) -> ComplexityTier | None:
        """Return the first tier whose patterns match, or None."""
        for tier, patterns in self._patterns:
            for pattern in patterns:
                if pattern.search(text):
                    logger.debug(f"Pattern matched for {tier.value}: {pattern.pattern}")
                    return tier
        return None

    def classify(self, text: str) -> ComplexityTier:
        """
        Classify request text.

        Args:
            text: The request text

        Returns:
            The matched tier, or a word-count based tier when no rule matches
        """
        tier = self.match_rule(text)
        if tier is not None:
            return tier

        word_count = len(text.split())
        if word_count <= self.SIMPLE_MAX_WORDS:
            return ComplexityTier.SIMPLE
        if word_count <= self.MODERATE_MAX_WORDS:
            return ComplexityTier.MODERATE
        return ComplexityTier.COMPLEX


_default_classifier = ComplexityClassifier()


def classify_task(text: str) -> ComplexityTier:
    """Classify text with the shared default classifier."""
    return _default_classifier.classify(text)
