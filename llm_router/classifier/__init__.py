"""
Classifier module: Request complexity tiers.

Public API:
- ComplexityTier: SIMPLE / MODERATE / COMPLEX
- ComplexityClassifier: Ordered regex rules with a word-count fallback
- COMPLEXITY_PATTERNS: The ordered rule table
- classify_task(): Classify with the shared default classifier
"""

from llm_router.classifier.complexity import (
    COMPLEXITY_PATTERNS,
    ComplexityClassifier,
    ComplexityTier,
    classify_task,
)

__all__ = [
    "COMPLEXITY_PATTERNS",
    "ComplexityClassifier",
    "ComplexityTier",
    "classify_task",
]
