"""
Dashboard metrics computed from classified feedback records.

Each report fetches the records matching its filters from the feedback
store, drops everything the visibility predicate excludes (closed records)
and aggregates the rest with pandas. Reports are stateless: concurrent
requests share nothing but the store.
"""

from typing import Callable, Dict, List, Optional, Sequence
from datetime import datetime, timedelta, timezone
import logging

import pandas as pd

from src.analytics.priority import URGENT_LEVELS, is_overdue, urgency_rank
from src.models.schemas import FeedbackQuery, FeedbackRecord, FeedbackStatus, Sentiment
from src.models.reports import (
    ActionableInsights,
    BranchComparison,
    BranchComparisonSummary,
    BranchPerformance,
    CategoryInsight,
    CategoryInsights,
    EmotionAnalysis,
    EmotionInsight,
    EmotionSummary,
    InsightItem,
    PulseBreakdown,
    PulseMetrics,
    ReportFilter,
    ReportPeriod,
    SentimentDistribution,
    SentimentGroup,
    SentimentOverview,
    SentimentOverviewSummary,
    SentimentTrends,
    ServicePerformance,
    ServiceTypeMetrics,
    TrendPeriod,
    TrendPoint,
    UrgencyDashboard,
    UrgencyGroup,
)

logger = logging.getLogger(__name__)

# Closed records are hidden from every report
HIDDEN_STATUSES = [FeedbackStatus.CLOSED.value]

FRAME_COLUMNS = [
    "feedback_id",
    "rating",
    "service_type",
    "branch",
    "status",
    "created_at",
    "sentiment",
    "sentiment_score",
    "categories",
    "emotions",
    "urgency",
]

TREND_FORMATS = {
    TrendPeriod.HOURLY.value: "%Y-%m-%d-%H",
    TrendPeriod.DAILY.value: "%Y-%m-%d",
    TrendPeriod.WEEKLY.value: "%Y-W%U",
    TrendPeriod.MONTHLY.value: "%Y-%m",
}

SECONDS_PER_DAY = 24 * 60 * 60

REPORT_NAMES = {
    "sentiment-overview": "sentiment_overview",
    "service-metrics": "service_type_metrics",
    "trends": "sentiment_trends",
    "categories": "category_insights",
    "emotions": "emotion_analysis",
    "urgency": "urgency_dashboard",
    "pulse": "pulse_metrics",
    "insights": "actionable_insights",
    "branches": "branch_comparison",
}


def performance_rating(avg_sentiment_score: Optional[float]) -> str:
    """Qualitative rating of an average sentiment score."""
    if avg_sentiment_score is None:
        return "Critical"
    if avg_sentiment_score >= 80:
        return "Excellent"
    if avg_sentiment_score >= 70:
        return "Good"
    if avg_sentiment_score >= 60:
        return "Average"
    if avg_sentiment_score >= 50:
        return "Needs Attention"
    return "Critical"


def pulse_rating(csat: float, nps: float) -> str:
    if csat >= 90 and nps >= 50:
        return "Excellent"
    if csat >= 80 and nps >= 30:
        return "Good"
    if csat >= 70 and nps >= 10:
        return "Average"
    return "Needs Improvement"


def branch_performance_score(avg_sentiment_score: Optional[float], avg_rating: Optional[float]) -> float:
    """
    Composite branch score on a ~100 point scale.

    Sentiment carries 70% of the weight; the rating term is scaled so a
    5-star average contributes up to 30 points.
    """
    return round(0.7 * (avg_sentiment_score or 0) + 6 * (avg_rating or 0), 1)


def records_to_frame(records: Sequence[FeedbackRecord]) -> pd.DataFrame:
    rows = [record.model_dump(include=set(FRAME_COLUMNS)) for record in records]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    frame["created_at"] = pd.to_datetime(frame["created_at"], utc=True)
    frame["rating"] = pd.to_numeric(frame["rating"], errors="coerce")
    frame["sentiment_score"] = pd.to_numeric(frame["sentiment_score"], errors="coerce")
    return frame


def _mean(series: pd.Series) -> Optional[float]:
    value = series.mean()
    return None if pd.isna(value) else float(value)


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


def _percentage(part: int, total: int, digits: int = 1) -> float:
    return round(part / total * 100, digits) if total else 0.0


def _sentiment_counts(group: pd.DataFrame) -> Dict[str, int]:
    counts = group["sentiment"].value_counts()
    return {sentiment.value: int(counts.get(sentiment.value, 0)) for sentiment in Sentiment}


def _group_performance(group: pd.DataFrame) -> Dict[str, object]:
    """Stats shared by the service type and branch reports."""
    total = len(group)
    counts = _sentiment_counts(group)
    avg_sentiment_score = _mean(group["sentiment_score"])
    positive_percentage = _percentage(counts["positive"], total)

    return {
        "total_feedback": total,
        "avg_rating": _round(_mean(group["rating"]), 2),
        "avg_sentiment_score": _round(avg_sentiment_score, 1),
        "positive_percentage": positive_percentage,
        "negative_percentage": _percentage(counts["negative"], total),
        "neutral_percentage": _percentage(counts["neutral"], total),
        "satisfaction_score": positive_percentage,
        "high_urgency_count": int(group["urgency"].isin(URGENT_LEVELS).sum()),
        "performance_rating": performance_rating(avg_sentiment_score),
    }


class MetricsAggregator:
    """Compute the dashboard reports from the feedback store."""

    def __init__(
        self,
        store,
        clock: Optional[Callable[[], datetime]] = None,
        default_days: int = 30,
    ):
        """
        Initialize the aggregator.

        Args:
            store: Feedback store exposing ``query_feedback(FeedbackQuery)``
            clock: Returns the current time (timezone-aware); defaults to UTC now
            default_days: Trailing window used when a report gets no dates
        """
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.default_days = default_days

    def run_report(self, name: str, filters: Optional[ReportFilter] = None):
        """Compute a report by its dashboard name (see REPORT_NAMES)."""
        if name not in REPORT_NAMES:
            raise ValueError(f"Unknown report '{name}'. Supported: {list(REPORT_NAMES.keys())}")
        return getattr(self, REPORT_NAMES[name])(filters or ReportFilter())

    def _trailing(self, days: int) -> ReportPeriod:
        return ReportPeriod(start_date=self.clock() - timedelta(days=days), days=days)

    def _window(self, filters: ReportFilter, default_days: Optional[int] = None) -> ReportPeriod:
        """Explicit dates win; otherwise a trailing window, or no window at all."""
        if filters.start_date or filters.end_date:
            return ReportPeriod(start_date=filters.start_date, end_date=filters.end_date)
        if default_days is None:
            return ReportPeriod()
        return self._trailing(filters.days or default_days)

    def _fetch(self, period: ReportPeriod, **criteria) -> List[FeedbackRecord]:
        query = FeedbackQuery(
            start_date=period.start_date,
            end_date=period.end_date,
            exclude_statuses=HIDDEN_STATUSES,
            **criteria
        )
        records = self.store.query_feedback(query)
        visible = [record for record in records if query.matches(record)]
        logger.debug(f"Fetched {len(records)} records, {len(visible)} visible")
        return visible

    def sentiment_overview(self, filters: ReportFilter) -> SentimentOverview:
        """Sentiment distribution with per-sentiment averages."""
        period = self._window(filters, self.default_days)
        frame = records_to_frame(self._fetch(
            period,
            require_sentiment=True,
            service_type=filters.service_type,
            branch=filters.branch,
        ))

        total = len(frame)
        groups = []
        weighted_rating = 0.0
        weighted_score = 0.0
        for sentiment, group in frame.groupby("sentiment", sort=True):
            count = len(group)
            avg_rating = _mean(group["rating"])
            avg_score = _mean(group["sentiment_score"])
            weighted_rating += (avg_rating or 0) * count
            weighted_score += (avg_score or 0) * count
            groups.append(SentimentGroup(
                sentiment=sentiment,
                count=count,
                percentage=_percentage(count, total, 2),
                avg_rating=_round(avg_rating, 2),
                avg_sentiment_score=_round(avg_score, 1),
            ))

        summary = SentimentOverviewSummary(
            total_feedback=total,
            overall_avg_rating=round(weighted_rating / total, 2) if total else 0.0,
            overall_sentiment_score=round(weighted_score / total, 1) if total else 0.0,
        )
        return SentimentOverview(period=period, summary=summary, data=groups)

    def service_type_metrics(self, filters: ReportFilter) -> ServiceTypeMetrics:
        """Performance of each service type, best satisfaction first."""
        period = self._window(filters, self.default_days)
        frame = records_to_frame(self._fetch(
            period,
            require_sentiment=True,
            branch=filters.branch,
            urgency=filters.urgency,
        ))

        data = [
            ServicePerformance(service_type=service_type, **_group_performance(group))
            for service_type, group in frame.groupby("service_type")
        ]
        data.sort(key=lambda metrics: metrics.satisfaction_score, reverse=True)
        return ServiceTypeMetrics(period=period, data=data)

    def sentiment_trends(self, filters: ReportFilter) -> SentimentTrends:
        """Sentiment counts per time bucket over a trailing window of days."""
        days = filters.days or self.default_days
        frame = records_to_frame(self._fetch(
            self._trailing(days),
            require_sentiment=True,
            service_type=filters.service_type,
            branch=filters.branch,
        ))

        granularity = filters.period if filters.period in TREND_FORMATS else TrendPeriod.DAILY.value
        data = []
        if not frame.empty:
            frame["bucket"] = frame["created_at"].dt.strftime(TREND_FORMATS[granularity])
            for (bucket, sentiment), group in frame.groupby(["bucket", "sentiment"], sort=True):
                data.append(TrendPoint(
                    period=bucket,
                    sentiment=sentiment,
                    count=len(group),
                    avg_rating=_round(_mean(group["rating"]), 2),
                    avg_sentiment_score=_round(_mean(group["sentiment_score"]), 1),
                ))

        return SentimentTrends(period=granularity, days=days, data=data)

    def category_insights(self, filters: ReportFilter) -> CategoryInsights:
        """Per-category volume and sentiment; a record counts for each of its categories."""
        period = self._window(filters, self.default_days)
        frame = records_to_frame(self._fetch(
            period,
            service_type=filters.service_type,
            branch=filters.branch,
            category=filters.category,
        ))

        data = []
        exploded = frame.explode("categories").dropna(subset=["categories"])
        for category, group in exploded.groupby("categories"):
            count = len(group)
            if count < filters.min_count:
                continue
            counts = _sentiment_counts(group)
            data.append(CategoryInsight(
                category=category,
                count=count,
                avg_rating=_round(_mean(group["rating"]), 2),
                avg_sentiment_score=_round(_mean(group["sentiment_score"]), 1),
                positive_count=counts["positive"],
                negative_count=counts["negative"],
                neutral_count=counts["neutral"],
                positive_percentage=_percentage(counts["positive"], count),
                negative_percentage=_percentage(counts["negative"], count),
                neutral_percentage=_percentage(counts["neutral"], count),
                high_urgency_count=int(group["urgency"].isin(URGENT_LEVELS).sum()),
                # Ties go to positive
                dominant_sentiment=(
                    Sentiment.POSITIVE.value
                    if counts["positive"] >= counts["negative"]
                    else Sentiment.NEGATIVE.value
                ),
            ))

        data.sort(key=lambda insight: insight.count, reverse=True)
        return CategoryInsights(period=period, data=data)

    def emotion_analysis(self, filters: ReportFilter) -> EmotionAnalysis:
        """Emotion distribution; percentages are shares of all emotion mentions."""
        period = self._window(filters, self.default_days)
        frame = records_to_frame(self._fetch(
            period,
            service_type=filters.service_type,
            branch=filters.branch,
        ))

        exploded = frame.explode("emotions").dropna(subset=["emotions"])
        total_mentions = len(exploded)
        data = []
        for emotion, group in exploded.groupby("emotions"):
            count = len(group)
            counts = _sentiment_counts(group)
            data.append(EmotionInsight(
                emotion=emotion,
                count=count,
                avg_rating=_round(_mean(group["rating"]), 2),
                avg_sentiment_score=_round(_mean(group["sentiment_score"]), 1),
                positive_count=counts["positive"],
                negative_count=counts["negative"],
                percentage=_percentage(count, total_mentions, 2),
            ))

        data.sort(key=lambda insight: insight.count, reverse=True)
        summary = EmotionSummary(total_emotions=total_mentions, unique_emotions=len(data))
        return EmotionAnalysis(period=period, summary=summary, data=data)

    def urgency_dashboard(self, filters: ReportFilter) -> UrgencyDashboard:
        """Open records per urgency level, critical first."""
        now = self.clock()
        records = self._fetch(
            self._window(filters),
            service_type=filters.service_type,
            branch=filters.branch,
        )
        frame = records_to_frame(records)

        data = []
        for urgency, group in frame.groupby("urgency"):
            oldest = group["created_at"].min().to_pydatetime()
            newest = group["created_at"].max().to_pydatetime()
            data.append(UrgencyGroup(
                urgency=urgency,
                count=len(group),
                avg_sentiment_score=_round(_mean(group["sentiment_score"]), 1),
                oldest_feedback=oldest,
                newest_feedback=newest,
                avg_response_time=round((now - oldest).total_seconds() / SECONDS_PER_DAY, 1),
                overdue_count=sum(
                    1 for record in records
                    if record.urgency == urgency and is_overdue(record, now)
                ),
            ))

        data.sort(key=lambda group: urgency_rank(group.urgency))
        return UrgencyDashboard(data=data)

    def pulse_metrics(self, filters: ReportFilter) -> PulseMetrics:
        """
        CSAT, NPS and CES over a trailing window of days.

        NPS divides by every rated record, so passives (rating 4) dilute it.
        """
        days = filters.days or self.default_days
        label = f"{days} days"
        frame = records_to_frame(self._fetch(
            self._trailing(days),
            service_type=filters.service_type,
            branch=filters.branch,
        ))
        frame = frame.dropna(subset=["rating"])

        total = len(frame)
        if total == 0:
            return PulseMetrics(
                period=label,
                performance_rating=pulse_rating(0.0, 0.0),
                message="No feedback data available for the specified period",
            )

        ratings = frame["rating"]
        satisfied = int((ratings >= 4).sum())
        promoters = int((ratings == 5).sum())
        detractors = int((ratings <= 3).sum())

        csat = round(satisfied / total * 100, 1)
        nps = round((promoters - detractors) / total * 100, 1)
        # Sentiment score stands in for effort; unscored records count as 0
        ces = round(float(frame["sentiment_score"].fillna(0).mean()), 1)

        counts = _sentiment_counts(frame)
        return PulseMetrics(
            csat=csat,
            nps=nps,
            ces=ces,
            avg_rating=round(float(ratings.mean()), 2),
            total_feedback=total,
            period=label,
            breakdown=PulseBreakdown(
                promoters=promoters,
                detractors=detractors,
                passives=total - promoters - detractors,
                satisfied=satisfied,
                unsatisfied=total - satisfied,
            ),
            sentiment_distribution=SentimentDistribution(**counts),
            performance_rating=pulse_rating(csat, nps),
        )

    def actionable_insights(self, filters: ReportFilter) -> ActionableInsights:
        """Recommendations ordered by urgency priority, then newest first."""
        records = self._fetch(
            self._window(filters),
            require_insights=True,
            urgency=filters.urgency,
            service_type=filters.service_type,
            branch=filters.branch,
        )
        records.sort(key=lambda record: (urgency_rank(record.urgency), -record.created_at.timestamp()))

        data = [
            InsightItem(
                feedback_id=record.feedback_id,
                reference_number=record.reference_number,
                customer_name=record.customer_name,
                actionable_insights=record.actionable_insights,
                urgency=record.urgency,
                sentiment=record.sentiment,
                categories=record.categories,
                service_type=record.service_type,
                created_at=record.created_at,
            )
            for record in records[:filters.limit]
        ]
        return ActionableInsights(count=len(data), data=data)

    def branch_comparison(self, filters: ReportFilter) -> BranchComparison:
        """Branch leaderboard by composite performance score."""
        period = self._window(filters, self.default_days)
        frame = records_to_frame(self._fetch(
            period,
            require_sentiment=True,
            require_branch=True,
            service_type=filters.service_type,
        ))

        data = []
        for branch, group in frame.groupby("branch"):
            stats = _group_performance(group)
            data.append(BranchPerformance(
                branch=branch,
                performance_score=branch_performance_score(
                    _mean(group["sentiment_score"]), _mean(group["rating"])
                ),
                **stats
            ))

        data.sort(key=lambda performance: performance.performance_score, reverse=True)
        summary = BranchComparisonSummary(
            total_branches=len(data),
            top_performer=data[0] if data else None,
            lowest_performer=data[-1] if data else None,
        )
        return BranchComparison(period=period, summary=summary, data=data)
