"""
Normalization of candidate analysis results.

``normalize`` clamps and defaults any candidate (AI payload or heuristic
output) into a well-formed AnalysisResult and never fails.
``from_untrusted`` is the entry point for AI payloads: it rejects payloads
with the wrong shape before normalizing them.
"""

from typing import Any, List, Mapping, Optional, Sequence, Union
import math

from src.models.schemas import (
    AnalysisResult,
    AnalysisShapeError,
    AnalysisSource,
    Category,
    Emotion,
    Sentiment,
    Urgency,
    CATEGORY_VALUES,
    EMOTION_VALUES,
    SENTIMENT_VALUES,
    URGENCY_VALUES,
    MAX_LABELS,
    MAX_INSIGHTS_LENGTH,
)

DEFAULT_SENTIMENT_SCORE = 50
DEFAULT_CONFIDENCE_SCORE = 75

# (wire name, python name) of the fields an AI payload must carry
REQUIRED_FIELDS = (
    ("sentiment", "sentiment"),
    ("sentimentScore", "sentiment_score"),
    ("categories", "categories"),
    ("emotions", "emotions"),
    ("urgency", "urgency"),
    ("actionableInsights", "actionable_insights"),
    ("confidenceScore", "confidence_score"),
)

_MISSING = object()


def _field(raw: Mapping[str, Any], wire_name: str, python_name: str) -> Any:
    if wire_name in raw:
        return raw[wire_name]
    return raw.get(python_name, _MISSING)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _clamp_score(value: Any, default: int) -> int:
    if value is _MISSING or value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return max(0, min(100, value))
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number):
        return default
    if math.isinf(number):
        return 100 if number > 0 else 0
    return int(max(0, min(100, round(number))))


def _labels(value: Any, taxonomy: Sequence[str]) -> List[str]:
    """Keep a label list only if every member belongs to the taxonomy."""
    if not isinstance(value, (list, tuple)):
        return []
    if not all(isinstance(label, str) and label in taxonomy for label in value):
        return []
    labels: List[str] = []
    for label in value:
        if label not in labels:
            labels.append(label)
    return labels[:MAX_LABELS]


def default_emotion(rating: Optional[int]) -> str:
    if rating is not None and rating >= 4:
        return Emotion.SATISFIED.value
    return Emotion.DISAPPOINTED.value


def review_placeholder(reference: Optional[str] = None) -> str:
    if reference:
        return f"Review feedback {reference} manually and determine appropriate action."
    return "Review this feedback manually and determine appropriate action."


def normalize(
    raw: Union[Mapping[str, Any], AnalysisResult],
    rating: Optional[int] = None,
    reference: Optional[str] = None,
    source: Optional[AnalysisSource] = None,
) -> AnalysisResult:
    """
    Clamp and default a candidate analysis into a valid AnalysisResult.

    Args:
        raw: Candidate result, keyed by wire (camelCase) or python names
        rating: Customer rating, used to pick the fallback emotion
        reference: Record reference quoted in the manual-review placeholder
        source: Overrides the source recorded on the result

    Returns:
        A result whose scores lie in [0, 100], whose urgency is canonical and
        whose categories and emotions are non-empty taxonomy subsets.
    """
    if isinstance(raw, AnalysisResult):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raw = {}

    sentiment = _field(raw, "sentiment", "sentiment")
    if sentiment not in SENTIMENT_VALUES:
        sentiment = Sentiment.NEUTRAL.value

    categories = _labels(_field(raw, "categories", "categories"), CATEGORY_VALUES)
    if not categories:
        categories = [Category.SERVICE_QUALITY.value]

    emotions = _labels(_field(raw, "emotions", "emotions"), EMOTION_VALUES)
    if not emotions:
        emotions = [default_emotion(rating)]

    urgency = _field(raw, "urgency", "urgency")
    if urgency not in URGENCY_VALUES:
        urgency = Urgency.LOW.value

    insights = _field(raw, "actionableInsights", "actionable_insights")
    if not isinstance(insights, str) or not insights.strip():
        insights = review_placeholder(reference)
    insights = insights.strip()[:MAX_INSIGHTS_LENGTH]

    if source is None:
        source = _field(raw, "source", "source")
        if source not in (AnalysisSource.AI.value, AnalysisSource.HEURISTIC.value):
            source = AnalysisSource.AI

    return AnalysisResult(
        sentiment=sentiment,
        sentiment_score=_clamp_score(_field(raw, "sentimentScore", "sentiment_score"), DEFAULT_SENTIMENT_SCORE),
        categories=categories,
        emotions=emotions,
        urgency=urgency,
        actionable_insights=insights,
        confidence_score=_clamp_score(_field(raw, "confidenceScore", "confidence_score"), DEFAULT_CONFIDENCE_SCORE),
        source=source,
    )


def check_shape(raw: Any) -> Mapping[str, Any]:
    """
    Verify that an untrusted payload has the analysis response shape.

    Raises:
        AnalysisShapeError: If a field is missing or has the wrong type
    """
    if not isinstance(raw, Mapping):
        raise AnalysisShapeError(f"Expected a JSON object, got {type(raw).__name__}")

    missing = [wire for wire, python in REQUIRED_FIELDS if _field(raw, wire, python) is _MISSING]
    if missing:
        raise AnalysisShapeError(f"Missing analysis fields: {', '.join(missing)}")

    for wire, python in (("sentimentScore", "sentiment_score"), ("confidenceScore", "confidence_score")):
        if not _is_number(_field(raw, wire, python)):
            raise AnalysisShapeError(f"Field '{wire}' must be a number")

    for wire in ("categories", "emotions"):
        value = _field(raw, wire, wire)
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise AnalysisShapeError(f"Field '{wire}' must be a list of strings")

    for wire, python in (("sentiment", "sentiment"), ("urgency", "urgency"), ("actionableInsights", "actionable_insights")):
        if not isinstance(_field(raw, wire, python), str):
            raise AnalysisShapeError(f"Field '{wire}' must be a string")

    return raw


def from_untrusted(
    raw: Any,
    rating: Optional[int] = None,
    reference: Optional[str] = None,
) -> AnalysisResult:
    """Build an AI AnalysisResult from an untrusted payload, rejecting bad shapes."""
    return normalize(check_shape(raw), rating=rating, reference=reference, source=AnalysisSource.AI)
