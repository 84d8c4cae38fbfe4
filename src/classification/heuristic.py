"""
Rule-based fallback classifier.

Used whenever the AI classifier cannot produce a result. Deterministic and
free of I/O so the degraded path can always answer.
"""

from typing import Optional, Sequence

from src.classification.normalizer import default_emotion, normalize
from src.classification.rules import (
    CATEGORY_RULES,
    EMOTION_RULES,
    URGENT_KEYWORDS,
    KeywordRule,
    match_labels,
)
from src.models.schemas import AnalysisResult, AnalysisSource, Category, Sentiment, Urgency

HEURISTIC_CONFIDENCE = 60
NEUTRAL_SCORE = 60


class HeuristicClassifier:
    """Infer sentiment, categories, emotions and urgency from rating and keywords."""

    def __init__(
        self,
        category_rules: Optional[Sequence[KeywordRule]] = None,
        emotion_rules: Optional[Sequence[KeywordRule]] = None,
    ):
        self.category_rules = category_rules if category_rules is not None else CATEGORY_RULES
        self.emotion_rules = emotion_rules if emotion_rules is not None else EMOTION_RULES

    def classify(self, comment: str, rating: int) -> AnalysisResult:
        """
        Classify a comment from its rating and keyword matches.

        Args:
            comment: Customer comment
            rating: Customer rating (1-5)

        Returns:
            AnalysisResult flagged with the heuristic source
        """
        comment = comment or ""
        text = comment.lower()

        sentiment, score = self.score(rating)

        categories = match_labels(text, self.category_rules)
        if not categories:
            categories = [Category.SERVICE_QUALITY.value]

        emotions = match_labels(text, self.emotion_rules)
        if not emotions:
            emotions = [default_emotion(rating)]

        return normalize(
            {
                "sentiment": sentiment,
                "sentimentScore": score,
                "categories": categories,
                "emotions": emotions,
                "urgency": self.urgency(text, rating),
                "actionableInsights": (
                    f"Review this {sentiment} feedback regarding {categories[0]}. "
                    f"Customer rated {rating}/5 stars."
                ),
                "confidenceScore": HEURISTIC_CONFIDENCE,
            },
            rating=rating,
            source=AnalysisSource.HEURISTIC,
        )

    @staticmethod
    def score(rating: int):
        """Map a rating to (sentiment, sentiment score)."""
        if rating >= 4:
            return Sentiment.POSITIVE.value, rating * 20
        if rating <= 2:
            return Sentiment.NEGATIVE.value, rating * 20
        return Sentiment.NEUTRAL.value, NEUTRAL_SCORE

    @staticmethod
    def urgency(text: str, rating: int) -> str:
        # The heuristic never escalates to critical
        if rating == 1 or any(keyword in text for keyword in URGENT_KEYWORDS):
            return Urgency.HIGH.value
        if rating == 2:
            return Urgency.MEDIUM.value
        return Urgency.LOW.value
