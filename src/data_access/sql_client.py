import pymssql
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from src.config.settings import Settings
from src.models.schemas import FeedbackNotFoundError, FeedbackQuery, FeedbackRecord

FEEDBACK_COLUMNS = """
    feedback_id, reference_number, customer_name, rating, comment, service_type, branch,
    status, created_at, updated_at, sentiment, sentiment_score, categories, emotions,
    urgency, actionable_insights, confidence_score, analysis_timestamp, ai_model
"""


def _join_labels(labels: List[str]) -> Optional[str]:
    return ','.join(labels) if labels else None


def _split_labels(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [label.strip() for label in value.split(',') if label.strip()]


class SQLClient:
    """SQL Server client for feedback records and their analysis."""

    def __init__(self, config: Settings):
        self.config = config
        self.conn = None

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = pymssql.connect(
            server=self.config.sql_server_host,
            port=self.config.sql_server_port,
            user=self.config.sql_server_username,
            password=self.config.sql_server_password,
            database=self.config.sql_server_database
        )

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_schema(self) -> None:
        """Create the feedback table and its dashboard indexes if they don't exist."""
        if not self.conn:
            self.connect()

        schema_sql = """
        IF OBJECT_ID('customer_insights.customer_feedback', 'U') IS NULL
        BEGIN
            CREATE TABLE customer_insights.customer_feedback (
                feedback_id VARCHAR(64) PRIMARY KEY,
                reference_number VARCHAR(32) UNIQUE,
                customer_name NVARCHAR(100),
                rating INT NOT NULL,
                comment NVARCHAR(1000) NOT NULL,
                service_type VARCHAR(50),
                branch NVARCHAR(100),
                status VARCHAR(20) NOT NULL DEFAULT 'pending',
                created_at DATETIME2 NOT NULL,
                updated_at DATETIME2,
                sentiment VARCHAR(10),
                sentiment_score INT,
                categories VARCHAR(200),
                emotions VARCHAR(200),
                urgency VARCHAR(10) NOT NULL DEFAULT 'low',
                actionable_insights NVARCHAR(500),
                confidence_score INT,
                analysis_timestamp DATETIME2,
                ai_model VARCHAR(50)
            );
            CREATE INDEX customer_feedback_created_idx ON customer_insights.customer_feedback (created_at DESC);
            CREATE INDEX customer_feedback_sentiment_idx ON customer_insights.customer_feedback (sentiment, created_at DESC);
            CREATE INDEX customer_feedback_urgency_idx ON customer_insights.customer_feedback (urgency, status, created_at DESC);
            CREATE INDEX customer_feedback_branch_idx ON customer_insights.customer_feedback (branch, sentiment, created_at DESC);
        END
        """

        with self.conn.cursor() as cursor:
            cursor.execute(schema_sql)
            self.conn.commit()

    def insert_feedback(self, record: FeedbackRecord) -> None:
        """
        Insert a new feedback record.
        """
        if not self.conn:
            self.connect()

        query = f"""
            INSERT INTO customer_insights.customer_feedback ({FEEDBACK_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        with self.conn.cursor() as cursor:
            cursor.execute(query, self._to_row(record))
            self.conn.commit()

    def get_feedback_by_id(self, feedback_id: str) -> FeedbackRecord:
        """
        Retrieve a single feedback record.

        Raises:
            FeedbackNotFoundError: If no record has this ID
        """
        if not self.conn:
            self.connect()

        query = f"""
            SELECT {FEEDBACK_COLUMNS}
            FROM customer_insights.customer_feedback
            WHERE feedback_id = %s
        """

        with self.conn.cursor(as_dict=True) as cursor:
            cursor.execute(query, (feedback_id,))
            row = cursor.fetchone()

        if row is None:
            raise FeedbackNotFoundError(f"No feedback found with ID {feedback_id}")
        return self._from_row(row)

    def query_feedback(self, feedback_query: FeedbackQuery) -> List[FeedbackRecord]:
        """
        Retrieve feedback records matching a query, newest first.
        """
        if not self.conn:
            self.connect()

        where, params = self.build_where(feedback_query)
        top = f"TOP {int(feedback_query.limit)} " if feedback_query.limit else ""
        query = f"""
            SELECT {top}{FEEDBACK_COLUMNS}
            FROM customer_insights.customer_feedback
            WHERE {where}
            ORDER BY created_at DESC
        """

        with self.conn.cursor(as_dict=True) as cursor:
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()

            return [self._from_row(row) for row in rows]

    def update_analysis(self, feedback_id: str, record: FeedbackRecord) -> None:
        """
        Attach the analysis block of ``record`` to a stored feedback record.
        """
        if not self.conn:
            self.connect()

        query = """
            UPDATE customer_insights.customer_feedback
            SET sentiment = %s, sentiment_score = %s, categories = %s, emotions = %s,
                urgency = %s, actionable_insights = %s, confidence_score = %s,
                analysis_timestamp = %s, ai_model = %s, updated_at = %s
            WHERE feedback_id = %s
        """

        with self.conn.cursor() as cursor:
            cursor.execute(
                query,
                (record.sentiment, record.sentiment_score, _join_labels(record.categories),
                 _join_labels(record.emotions), record.urgency, record.actionable_insights,
                 record.confidence_score, record.analysis_timestamp, record.ai_model,
                 record.updated_at, feedback_id)
            )
            if cursor.rowcount == 0:
                raise FeedbackNotFoundError(f"No feedback found with ID {feedback_id}")
            self.conn.commit()

    def update_status(self, feedback_id: str, status: str) -> None:
        """
        Move a feedback record to a new status.
        """
        if not self.conn:
            self.connect()

        query = """
            UPDATE customer_insights.customer_feedback
            SET status = %s, updated_at = %s
            WHERE feedback_id = %s
        """

        with self.conn.cursor() as cursor:
            cursor.execute(query, (status, datetime.now(timezone.utc), feedback_id))
            if cursor.rowcount == 0:
                raise FeedbackNotFoundError(f"No feedback found with ID {feedback_id}")
            self.conn.commit()

    @staticmethod
    def build_where(feedback_query: FeedbackQuery) -> Tuple[str, List[Any]]:
        """Translate a FeedbackQuery into a WHERE clause and its parameters."""
        clauses = ["1=1"]
        params: List[Any] = []

        if feedback_query.exclude_statuses:
            placeholders = ','.join(['%s'] * len(feedback_query.exclude_statuses))
            clauses.append(f"status NOT IN ({placeholders})")
            params.extend(feedback_query.exclude_statuses)

        if feedback_query.start_date:
            clauses.append("created_at >= %s")
            params.append(feedback_query.start_date)

        if feedback_query.end_date:
            clauses.append("created_at <= %s")
            params.append(feedback_query.end_date)

        for column in ("service_type", "branch", "urgency"):
            value = getattr(feedback_query, column)
            if value:
                clauses.append(f"{column} = %s")
                params.append(value)

        if feedback_query.category:
            clauses.append("(',' + categories + ',') LIKE %s")
            params.append(f"%,{feedback_query.category},%")

        if feedback_query.require_sentiment:
            clauses.append("sentiment IS NOT NULL")

        if feedback_query.require_branch:
            clauses.append("branch IS NOT NULL AND LTRIM(RTRIM(branch)) <> ''")

        if feedback_query.require_insights:
            clauses.append("actionable_insights IS NOT NULL AND LTRIM(RTRIM(actionable_insights)) <> ''")

        if feedback_query.unanalyzed_only:
            clauses.append("sentiment IS NULL")

        return " AND ".join(clauses), params

    @staticmethod
    def _to_row(record: FeedbackRecord) -> tuple:
        return (
            record.feedback_id, record.reference_number, record.customer_name, record.rating,
            record.comment, record.service_type, record.branch, record.status, record.created_at,
            record.updated_at, record.sentiment, record.sentiment_score,
            _join_labels(record.categories), _join_labels(record.emotions), record.urgency,
            record.actionable_insights, record.confidence_score, record.analysis_timestamp,
            record.ai_model,
        )

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> FeedbackRecord:
        return FeedbackRecord(
            feedback_id=row['feedback_id'],
            reference_number=row.get('reference_number'),
            customer_name=row.get('customer_name'),
            rating=row['rating'],
            comment=row['comment'],
            service_type=row.get('service_type'),
            branch=row.get('branch'),
            status=row.get('status') or 'pending',
            created_at=row['created_at'],
            updated_at=row.get('updated_at'),
            sentiment=row.get('sentiment'),
            sentiment_score=row.get('sentiment_score'),
            categories=_split_labels(row.get('categories')),
            emotions=_split_labels(row.get('emotions')),
            urgency=row.get('urgency') or 'low',
            actionable_insights=row.get('actionable_insights'),
            confidence_score=row.get('confidence_score'),
            analysis_timestamp=row.get('analysis_timestamp'),
            ai_model=row.get('ai_model')
        )
