"""Unit tests for urgency ordering and response-time flags."""
import pytest
from datetime import datetime, timedelta, timezone
from src.analytics.priority import (
    days_since_submission,
    is_overdue,
    is_urgent,
    needs_immediate_action,
    priority_flags,
    sentiment_category,
    urgency_rank,
)
from src.models.schemas import FeedbackRecord, Urgency


NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _record(urgency="low", days_ago=0, **overrides):
    values = dict(
        feedback_id="fb001",
        rating=3,
        comment="The queue at the branch was long",
        created_at=NOW - timedelta(days=days_ago),
        urgency=urgency,
    )
    values.update(overrides)
    return FeedbackRecord(**values)


class TestUrgencyRank:
    """Test urgency ordering."""

    def test_order(self):
        levels = ["low", "critical", "medium", "high"]
        assert sorted(levels, key=urgency_rank) == ["critical", "high", "medium", "low"]

    def test_enum_and_unknown(self):
        assert urgency_rank(Urgency.CRITICAL) == 0
        assert urgency_rank(None) == 4


class TestFlags:
    """Test per-record flags."""

    def test_high_urgency_overdue_after_two_days(self):
        assert is_overdue(_record("high", days_ago=3), NOW) is True
        assert is_overdue(_record("high", days_ago=2), NOW) is False

    @pytest.mark.parametrize("urgency,threshold", [("critical", 1), ("medium", 5), ("low", 14)])
    def test_overdue_thresholds(self, urgency, threshold):
        assert is_overdue(_record(urgency, days_ago=threshold), NOW) is False
        assert is_overdue(_record(urgency, days_ago=threshold + 1), NOW) is True

    def test_days_since_submission_floors(self):
        record = _record(created_at=NOW - timedelta(days=2, hours=23))
        assert days_since_submission(record, NOW) == 2

    def test_naive_now_is_utc(self):
        record = _record(days_ago=1)
        assert days_since_submission(record, NOW.replace(tzinfo=None)) == 1

    def test_is_urgent(self):
        assert is_urgent(_record("critical"))
        assert is_urgent(_record("high"))
        assert not is_urgent(_record("medium"))

    def test_needs_immediate_action(self):
        assert needs_immediate_action(_record("critical", rating=5, sentiment="positive"))
        assert needs_immediate_action(_record("low", rating=2, sentiment="negative"))
        assert not needs_immediate_action(_record("low", rating=3, sentiment="negative"))
        assert not needs_immediate_action(_record("high", rating=1))

    @pytest.mark.parametrize("score,expected", [
        (95, "very positive"), (70, "very positive"), (50, "positive"),
        (30, "neutral"), (10, "negative"), (9, "very negative"), (None, "unknown"),
    ])
    def test_sentiment_category(self, score, expected):
        assert sentiment_category(score) == expected

    def test_priority_flags(self):
        record = _record("high", days_ago=3, rating=1, sentiment="negative", sentiment_score=12)

        flags = priority_flags(record, NOW)

        assert flags == {
            "isPositive": False,
            "isNegative": True,
            "isUrgent": True,
            "needsImmediateAction": True,
            "sentimentCategory": "negative",
            "daysSinceSubmission": 3,
            "isOverdue": True,
        }
