from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FeedbackStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ServiceType(str, Enum):
    BRANCH_VISIT = "Branch Visit"
    MOBILE_APP = "Mobile App"
    ATM_SERVICE = "ATM Service"
    ONLINE_BANKING = "Online Banking"
    CUSTOMER_SERVICE_CALL = "Customer Service Call"
    USSD_BANKING = "USSD Banking"
    POS_TRANSACTION = "POS Transaction"


class Category(str, Enum):
    SERVICE_QUALITY = "service_quality"
    WAIT_TIME = "wait_time"
    STAFF_BEHAVIOR = "staff_behavior"
    PRODUCT_FEATURES = "product_features"
    PRICING = "pricing"
    TECHNICAL_ISSUES = "technical_issues"
    SECURITY_CONCERNS = "security_concerns"
    USER_EXPERIENCE = "user_experience"
    ACCOUNT_MANAGEMENT = "account_management"
    TRANSACTION_ISSUES = "transaction_issues"


class Emotion(str, Enum):
    SATISFIED = "satisfied"
    FRUSTRATED = "frustrated"
    ANGRY = "angry"
    HAPPY = "happy"
    DISAPPOINTED = "disappointed"
    CONFUSED = "confused"
    IMPRESSED = "impressed"
    ANXIOUS = "anxious"
    GRATEFUL = "grateful"
    CONCERNED = "concerned"
    EXCITED = "excited"
    WORRIED = "worried"


class AnalysisSource(str, Enum):
    AI = "ai"
    HEURISTIC = "heuristic"


SENTIMENT_VALUES = [s.value for s in Sentiment]
URGENCY_VALUES = [u.value for u in Urgency]
CATEGORY_VALUES = [c.value for c in Category]
EMOTION_VALUES = [e.value for e in Emotion]

MAX_LABELS = 3
MAX_INSIGHTS_LENGTH = 500


class AnalysisShapeError(ValueError):
    """Raised when an AI analysis payload does not have the expected shape."""


class FeedbackNotFoundError(LookupError):
    """Raised when a feedback record does not exist in the store."""


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FeedbackSubmission(BaseModel):
    """Customer submission, validated before any classification happens."""
    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10, max_length=1000)
    service_type: Optional[ServiceType] = None
    branch: Optional[str] = None
    customer_name: Optional[str] = Field(None, min_length=3, max_length=100)

    @model_validator(mode="after")
    def _branch_required_for_visits(self) -> "FeedbackSubmission":
        if self.service_type == ServiceType.BRANCH_VISIT and not self.branch:
            raise ValueError("branch is required when serviceType is 'Branch Visit'")
        return self


class AnalysisResult(BaseModel):
    """Classifier output, merged into a FeedbackRecord's analysis block."""
    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )

    sentiment: Sentiment
    sentiment_score: int = Field(..., ge=0, le=100)
    categories: List[Category] = Field(..., min_length=1, max_length=MAX_LABELS)
    emotions: List[Emotion] = Field(..., min_length=1, max_length=MAX_LABELS)
    urgency: Urgency = Urgency.LOW
    actionable_insights: str = Field(..., max_length=MAX_INSIGHTS_LENGTH)
    confidence_score: int = Field(..., ge=0, le=100)
    source: AnalysisSource = AnalysisSource.AI


class FeedbackRecord(BaseModel):
    """Customer feedback record with its analysis block."""
    model_config = ConfigDict(
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )

    feedback_id: str
    reference_number: Optional[str] = None
    customer_name: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: str
    service_type: Optional[ServiceType] = None
    branch: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    status: FeedbackStatus = FeedbackStatus.PENDING

    # Analysis block
    sentiment: Optional[Sentiment] = None
    sentiment_score: Optional[int] = Field(None, ge=0, le=100)
    categories: List[Category] = Field(default_factory=list, max_length=MAX_LABELS)
    emotions: List[Emotion] = Field(default_factory=list, max_length=MAX_LABELS)
    urgency: Urgency = Urgency.LOW
    actionable_insights: Optional[str] = Field(None, max_length=MAX_INSIGHTS_LENGTH)
    confidence_score: Optional[int] = Field(None, ge=0, le=100)
    analysis_timestamp: Optional[datetime] = None
    ai_model: Optional[str] = None

    @field_validator("created_at", "updated_at", "analysis_timestamp")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def is_analyzed(self) -> bool:
        return self.sentiment is not None

    def with_analysis(self, analysis: AnalysisResult, model: str, analyzed_at: datetime) -> "FeedbackRecord":
        """Return a copy of this record carrying the given analysis."""
        return self.model_copy(update={
            "sentiment": analysis.sentiment,
            "sentiment_score": analysis.sentiment_score,
            "categories": list(analysis.categories),
            "emotions": list(analysis.emotions),
            "urgency": analysis.urgency,
            "actionable_insights": analysis.actionable_insights,
            "confidence_score": analysis.confidence_score,
            "analysis_timestamp": _as_utc(analyzed_at),
            "ai_model": model,
            "updated_at": _as_utc(analyzed_at),
        })


class FeedbackQuery(BaseModel):
    """
    Predicate over feedback records.

    The record store translates it into its own query language; ``matches``
    evaluates the same predicate in Python.
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    service_type: Optional[ServiceType] = None
    branch: Optional[str] = None
    urgency: Optional[Urgency] = None
    category: Optional[Category] = None
    require_sentiment: bool = False
    require_branch: bool = False
    require_insights: bool = False
    unanalyzed_only: bool = False
    exclude_statuses: List[FeedbackStatus] = Field(default_factory=lambda: [FeedbackStatus.CLOSED])
    limit: Optional[int] = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def matches(self, record: FeedbackRecord) -> bool:
        if record.status in self.exclude_statuses:
            return False
        if self.start_date and record.created_at < self.start_date:
            return False
        if self.end_date and record.created_at > self.end_date:
            return False
        if self.service_type and record.service_type != self.service_type:
            return False
        if self.branch and record.branch != self.branch:
            return False
        if self.urgency and record.urgency != self.urgency:
            return False
        if self.category and self.category not in record.categories:
            return False
        if self.require_sentiment and record.sentiment is None:
            return False
        if self.require_branch and not (record.branch and record.branch.strip()):
            return False
        if self.require_insights and not (record.actionable_insights and record.actionable_insights.strip()):
            return False
        if self.unanalyzed_only and record.is_analyzed:
            return False
        return True


class BatchItemResult(BaseModel):
    """Outcome of classifying one record in a batch."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    feedback_id: str
    success: bool
    analysis: Optional[AnalysisResult] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    """Per-item outcomes of a batch classification plus aggregate counts."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    results: List[BatchItemResult]
    total: int
    succeeded: int
    failed: int
