"""
Classification pipeline for customer feedback.
Classifies new submissions as they arrive and backfills historical records
that were stored without an analysis.
"""

from typing import List, Optional
from datetime import datetime, timedelta, timezone
import argparse
import asyncio
import logging
import uuid

from src.config.settings import Settings
from src.data_access.sql_client import SQLClient
from src.agents.llm_agent import AIClassifier, ChatAgent
from src.classification.heuristic import HeuristicClassifier
from src.analytics.priority import is_urgent, needs_immediate_action
from src.models.schemas import (
    AnalysisResult,
    AnalysisSource,
    BatchItemResult,
    BatchResult,
    FeedbackQuery,
    FeedbackRecord,
    FeedbackStatus,
    FeedbackSubmission,
)


logger = logging.getLogger(__name__)

FALLBACK_MODEL = "heuristic-fallback"


def generate_reference_number(now: datetime) -> str:
    """Reference quoted to customers, e.g. FB2025110001."""
    millis = int(now.timestamp() * 1000)
    return f"FB{now.year}{millis % 1_000_000:06d}"


class ClassificationPipeline:
    """Pipeline for classifying feedback records, one at a time or in batches."""

    def __init__(
        self,
        config: Settings,
        classifier: Optional[AIClassifier] = None,
        store: Optional[SQLClient] = None,
    ):
        """
        Initialize the classification pipeline.

        Args:
            config: Application settings
            classifier: AI classifier; built from config when not given
            store: Feedback store; built from config when not given
        """
        self.config = config
        self.classifier = classifier or AIClassifier(
            ChatAgent(config),
            fallback=HeuristicClassifier(),
            timeout=config.ai_timeout_seconds
        )
        self.store = store or SQLClient(config)
        self.batch_delay = config.batch_delay_seconds

    async def classify_one(self, record: FeedbackRecord) -> AnalysisResult:
        """Classify a single record. Falls back to the heuristic, never fails."""
        return await self.classifier.classify(
            record.comment,
            record.rating,
            record.service_type,
            reference=record.reference_number or record.feedback_id
        )

    async def classify_batch(self, records: List[FeedbackRecord], persist: bool = False) -> BatchResult:
        """
        Classify records sequentially, isolating failures per record.

        Args:
            records: Records to classify
            persist: Write each analysis back to the store

        Returns:
            BatchResult with one entry per record and success/failure counts
        """
        logger.info(f"Batch analyzing {len(records)} feedback records")

        results = []
        succeeded = 0
        failed = 0

        for i, record in enumerate(records):
            logger.info(f"Processing {i + 1}/{len(records)} ({record.feedback_id})")
            try:
                analysis = await self.classify_one(record)
                if persist:
                    analyzed = self.merge_analysis(record, analysis)
                    await asyncio.to_thread(self.store.update_analysis, record.feedback_id, analyzed)
                results.append(BatchItemResult(feedback_id=record.feedback_id, success=True, analysis=analysis))
                succeeded += 1
            except Exception as e:
                logger.error(f"Failed to analyze feedback {record.feedback_id}: {str(e)}")
                results.append(BatchItemResult(feedback_id=record.feedback_id, success=False, error=str(e)))
                failed += 1

            # Rate limiting between external calls
            if i < len(records) - 1:
                await asyncio.sleep(self.batch_delay)

        logger.info(f"Batch analysis complete: {succeeded} succeeded, {failed} failed")
        return BatchResult(results=results, total=len(records), succeeded=succeeded, failed=failed)

    def merge_analysis(self, record: FeedbackRecord, analysis: AnalysisResult) -> FeedbackRecord:
        model = self.classifier.model if analysis.source == AnalysisSource.AI else FALLBACK_MODEL
        return record.with_analysis(analysis, model=model, analyzed_at=datetime.now(timezone.utc))

    async def submit_feedback(self, submission: FeedbackSubmission) -> FeedbackRecord:
        """
        Create, classify and store a new feedback record.

        Args:
            submission: Validated customer submission

        Returns:
            The stored record, including its analysis
        """
        now = datetime.now(timezone.utc)
        record = FeedbackRecord(
            feedback_id=uuid.uuid4().hex,
            reference_number=generate_reference_number(now),
            customer_name=submission.customer_name,
            rating=submission.rating,
            comment=submission.comment,
            service_type=submission.service_type,
            branch=submission.branch,
            created_at=now,
            updated_at=now,
            status=FeedbackStatus.PENDING,
        )

        logger.info(f"New feedback submission {record.reference_number} (rating {record.rating}/5)")
        analysis = await self.classify_one(record)
        record = self.merge_analysis(record, analysis)

        # pymssql is blocking; keep the event loop free while it writes
        await asyncio.to_thread(self.store.insert_feedback, record)

        if is_urgent(record) or needs_immediate_action(record):
            logger.warning(
                f"High-priority feedback detected: {record.reference_number} "
                f"(urgency {record.urgency}, sentiment {record.sentiment})"
            )

        logger.info(f"Feedback {record.reference_number} saved ({record.sentiment}, {record.urgency})")
        return record

    async def run_backfill(self, days_back: Optional[int] = None, limit: Optional[int] = None) -> dict:
        """
        Classify and persist stored records that have no analysis yet.

        Args:
            days_back: Only consider records from the last N days (None = all records)
            limit: Maximum number of records to process (None = all records)

        Returns:
            Dictionary with processing statistics
        """
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        start_date = None
        if days_back is not None:
            start_date = datetime.now(timezone.utc) - timedelta(days=days_back)
            logger.info(f"Backfilling feedback from last {days_back} days")
        else:
            logger.info("Backfilling all unanalyzed feedback")

        try:
            self.store.connect()

            records = self.store.query_feedback(FeedbackQuery(
                start_date=start_date,
                unanalyzed_only=True,
                exclude_statuses=[],
                limit=limit,
            ))
            logger.info(f"Found {len(records)} unanalyzed feedback records")

            if not records:
                logger.info("No records to process")
                return {
                    "total_records": 0,
                    "succeeded": 0,
                    "failed": 0,
                    "start_date": start_date.isoformat() if start_date else None
                }

            batch = await self.classify_batch(records, persist=True)

            return {
                "total_records": batch.total,
                "succeeded": batch.succeeded,
                "failed": batch.failed,
                "start_date": start_date.isoformat() if start_date else None
            }

        finally:
            self.store.close()


def main():
    """Main entry point for backfilling feedback classification."""
    parser = argparse.ArgumentParser(
        description='Classify stored customer feedback that has no sentiment analysis yet.'
    )
    parser.add_argument(
        '--days-back',
        type=int,
        help='Only classify feedback submitted in the last N days'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Maximum number of records to classify'
    )
    args = parser.parse_args()

    # Load configuration
    config = Settings()

    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    pipeline = ClassificationPipeline(config)
    stats = asyncio.run(pipeline.run_backfill(days_back=args.days_back, limit=args.limit))

    # Print results
    print("\n" + "="*50)
    print("CLASSIFICATION BACKFILL RESULTS")
    print("="*50)
    if stats['start_date']:
        print(f"Start date: {stats['start_date'][:10]}")
    print(f"Total records processed: {stats['total_records']}")
    print(f"Succeeded: {stats['succeeded']}")
    print(f"Failed: {stats['failed']}")
    print("="*50)


if __name__ == "__main__":
    main()
