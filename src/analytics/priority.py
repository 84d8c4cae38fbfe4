"""
Urgency ordering and response-time policy.

Shared by the urgency dashboard, the actionable-insights queue and the
per-record flags shown next to each feedback record. Every function takes a
record snapshot; nothing is cached on the record.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Union

from src.models.schemas import FeedbackRecord, Sentiment, Urgency

# Highest priority first
URGENCY_PRIORITY = (
    Urgency.CRITICAL.value,
    Urgency.HIGH.value,
    Urgency.MEDIUM.value,
    Urgency.LOW.value,
)

URGENT_LEVELS = (Urgency.CRITICAL.value, Urgency.HIGH.value)

# Days a record may wait for a response before it is overdue
OVERDUE_AFTER_DAYS: Dict[str, int] = {
    Urgency.CRITICAL.value: 1,
    Urgency.HIGH.value: 2,
    Urgency.MEDIUM.value: 5,
    Urgency.LOW.value: 14,
}

SECONDS_PER_DAY = 24 * 60 * 60


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def urgency_rank(urgency: Optional[Union[str, Urgency]]) -> int:
    """Position of an urgency level in the priority order (0 = critical)."""
    if isinstance(urgency, Urgency):
        urgency = urgency.value
    if urgency in URGENCY_PRIORITY:
        return URGENCY_PRIORITY.index(urgency)
    return len(URGENCY_PRIORITY)


def is_positive(record: FeedbackRecord) -> bool:
    return record.sentiment == Sentiment.POSITIVE


def is_negative(record: FeedbackRecord) -> bool:
    return record.sentiment == Sentiment.NEGATIVE


def is_urgent(record: FeedbackRecord) -> bool:
    return record.urgency in URGENT_LEVELS


def needs_immediate_action(record: FeedbackRecord) -> bool:
    """Critical urgency, or negative sentiment with a rating of 2 or less."""
    return record.urgency == Urgency.CRITICAL or (is_negative(record) and record.rating <= 2)


def days_since_submission(record: FeedbackRecord, now: Optional[datetime] = None) -> int:
    elapsed = _now(now) - record.created_at
    return int(elapsed.total_seconds() // SECONDS_PER_DAY)


def is_overdue(record: FeedbackRecord, now: Optional[datetime] = None) -> bool:
    threshold = OVERDUE_AFTER_DAYS.get(record.urgency, OVERDUE_AFTER_DAYS[Urgency.LOW.value])
    return days_since_submission(record, now) > threshold


def sentiment_category(score: Optional[int]) -> str:
    """Qualitative label for a sentiment score."""
    if score is None:
        return "unknown"
    if score >= 70:
        return "very positive"
    if score >= 50:
        return "positive"
    if score >= 30:
        return "neutral"
    if score >= 10:
        return "negative"
    return "very negative"


def priority_flags(record: FeedbackRecord, now: Optional[datetime] = None) -> Dict[str, object]:
    """Derived flags shown alongside a feedback record."""
    return {
        "isPositive": is_positive(record),
        "isNegative": is_negative(record),
        "isUrgent": is_urgent(record),
        "needsImmediateAction": needs_immediate_action(record),
        "sentimentCategory": sentiment_category(record.sentiment_score),
        "daysSinceSubmission": days_since_submission(record, now),
        "isOverdue": is_overdue(record, now),
    }
