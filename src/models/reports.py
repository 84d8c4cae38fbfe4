"""
Report schemas for the dashboard metrics.

Reports are computed on demand from the feedback store and never persisted.
Every model serializes with camelCase field names (``model_dump(by_alias=True)``).
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Optional, List, Dict
from enum import Enum

from src.models.schemas import Sentiment, Urgency, ServiceType, Category, Emotion


class TrendPeriod(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReportModel(BaseModel):
    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )


class ReportFilter(ReportModel):
    """Filters accepted by the report queries."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days: Optional[int] = Field(None, ge=1)
    period: TrendPeriod = TrendPeriod.DAILY
    service_type: Optional[ServiceType] = None
    branch: Optional[str] = None
    urgency: Optional[Urgency] = None
    category: Optional[Category] = None
    min_count: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ReportPeriod(ReportModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days: Optional[int] = None


# 1. Sentiment overview

class SentimentGroup(ReportModel):
    sentiment: Sentiment
    count: int
    percentage: float
    avg_rating: Optional[float] = None
    avg_sentiment_score: Optional[float] = None


class SentimentOverviewSummary(ReportModel):
    total_feedback: int
    overall_avg_rating: float
    overall_sentiment_score: float


class SentimentOverview(ReportModel):
    period: ReportPeriod
    summary: SentimentOverviewSummary
    data: List[SentimentGroup]


# 2. Service type metrics / 9. Branch comparison

class GroupPerformance(ReportModel):
    total_feedback: int
    avg_rating: Optional[float] = None
    avg_sentiment_score: Optional[float] = None
    positive_percentage: float
    negative_percentage: float
    neutral_percentage: float
    satisfaction_score: float
    high_urgency_count: int
    performance_rating: str


class ServicePerformance(GroupPerformance):
    service_type: ServiceType


class ServiceTypeMetrics(ReportModel):
    period: ReportPeriod
    data: List[ServicePerformance]


class BranchPerformance(GroupPerformance):
    branch: str
    performance_score: float


class BranchComparisonSummary(ReportModel):
    total_branches: int
    top_performer: Optional[BranchPerformance] = None
    lowest_performer: Optional[BranchPerformance] = None


class BranchComparison(ReportModel):
    period: ReportPeriod
    summary: BranchComparisonSummary
    data: List[BranchPerformance]


# 3. Sentiment trends

class TrendPoint(ReportModel):
    period: str
    sentiment: Sentiment
    count: int
    avg_rating: Optional[float] = None
    avg_sentiment_score: Optional[float] = None


class SentimentTrends(ReportModel):
    period: TrendPeriod
    days: int
    data: List[TrendPoint]


# 4. Category insights

class CategoryInsight(ReportModel):
    category: Category
    count: int
    avg_rating: Optional[float] = None
    avg_sentiment_score: Optional[float] = None
    positive_count: int
    negative_count: int
    neutral_count: int
    positive_percentage: float
    negative_percentage: float
    neutral_percentage: float
    high_urgency_count: int
    dominant_sentiment: Sentiment


class CategoryInsights(ReportModel):
    period: ReportPeriod
    data: List[CategoryInsight]


# 5. Emotion analysis

class EmotionInsight(ReportModel):
    emotion: Emotion
    count: int
    avg_rating: Optional[float] = None
    avg_sentiment_score: Optional[float] = None
    positive_count: int
    negative_count: int
    percentage: float


class EmotionSummary(ReportModel):
    total_emotions: int
    unique_emotions: int


class EmotionAnalysis(ReportModel):
    period: ReportPeriod
    summary: EmotionSummary
    data: List[EmotionInsight]


# 6. Urgency dashboard

class UrgencyGroup(ReportModel):
    urgency: Urgency
    count: int
    avg_sentiment_score: Optional[float] = None
    oldest_feedback: datetime
    newest_feedback: datetime
    avg_response_time: float
    overdue_count: int


class UrgencyDashboard(ReportModel):
    data: List[UrgencyGroup]


# 7. Pulse metrics

class PulseBreakdown(ReportModel):
    promoters: int = 0
    detractors: int = 0
    passives: int = 0
    satisfied: int = 0
    unsatisfied: int = 0


class SentimentDistribution(ReportModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


PULSE_BENCHMARKS: Dict[str, Dict[str, str]] = {
    "csat": {
        "excellent": ">90%",
        "good": "80-90%",
        "average": "70-80%",
        "poor": "<70%",
    },
    "nps": {
        "excellent": ">50",
        "good": "30-50",
        "average": "0-30",
        "poor": "<0",
    },
}


class PulseMetrics(ReportModel):
    csat: float = 0.0
    nps: float = 0.0
    ces: float = 0.0
    avg_rating: float = 0.0
    total_feedback: int = 0
    period: str
    breakdown: PulseBreakdown = Field(default_factory=PulseBreakdown)
    sentiment_distribution: SentimentDistribution = Field(default_factory=SentimentDistribution)
    performance_rating: str
    benchmarks: Dict[str, Dict[str, str]] = Field(default_factory=lambda: PULSE_BENCHMARKS)
    message: Optional[str] = None


# 8. Actionable insights

class InsightItem(ReportModel):
    feedback_id: str
    reference_number: Optional[str] = None
    customer_name: Optional[str] = None
    actionable_insights: str
    urgency: Urgency
    sentiment: Optional[Sentiment] = None
    categories: List[Category] = Field(default_factory=list)
    service_type: Optional[ServiceType] = None
    created_at: datetime


class ActionableInsights(ReportModel):
    count: int
    data: List[InsightItem]
