"""Feedback pipeline: synchronous scoring and enqueue, background persistence."""
import asyncio
import logging
from datetime import datetime, UTC
from typing import Any, Dict, Optional, Set, Tuple

from driver_sentiment.alerting import AlertGate, AlertNotifier
from driver_sentiment.config import PipelineSettings
from driver_sentiment.database import Database, SqlAlertStore, SqlDriverStore, SqlFeedbackStore
from driver_sentiment.feedback_queue import BoundedQueue
from driver_sentiment.reputation import ReputationTracker
from driver_sentiment.schemas import (
    FeedbackRecord,
    FeedbackSubmission,
    QueuedItem,
    SubmissionReceipt,
)
from driver_sentiment.sentiment import Scorer, SentimentScorer
from driver_sentiment.stores import FeedbackStore

logger = logging.getLogger(__name__)

SubmissionKey = Tuple[str, str, str]


def submission_key(submission: FeedbackSubmission) -> SubmissionKey:
    """One rating per user, driver and day."""
    return (submission.user_name, submission.driver_id, submission.feedback_date)


def is_driver_directed(submission: FeedbackSubmission) -> bool:
    """Whether a submission should move the driver's rolling average.

    Feedback that only concerns the app or a marshal carries no star rating
    and no driver comment; scoring it would drag the driver towards neutral.
    """
    if submission.driver_rating is not None:
        return True
    return bool(submission.scoring_text.strip())


class FeedbackPipeline:
    """Wires scorer, queue, reputation tracker and alert gate together.

    ``submit_feedback`` is the fast path: score, make sure the driver exists,
    enqueue, return. ``process_next_item`` drains one item per call and is
    driven on a fixed cadence by ``start_worker`` (or any external scheduler).
    """

    def __init__(
        self,
        scorer: Scorer,
        tracker: ReputationTracker,
        alert_gate: AlertGate,
        feedback_store: FeedbackStore,
        settings: Optional[PipelineSettings] = None,
        queue: Optional[BoundedQueue[QueuedItem]] = None
    ):
        self.settings = settings or PipelineSettings()
        self.scorer = scorer
        self.tracker = tracker
        self.alert_gate = alert_gate
        self.feedback_store = feedback_store
        self.queue = queue or BoundedQueue("feedback", self.settings.queue_max_capacity)

        self.processed_count = 0
        self.failed_count = 0

        # Keys of submissions sitting in the queue, not yet visible in the store
        self._pending_keys: Set[SubmissionKey] = set()
        self._process_lock = asyncio.Lock()
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def submit_feedback(self, submission: FeedbackSubmission) -> SubmissionReceipt:
        """Score a submission and queue it for background processing.

        Raises:
            CapacityExceeded: If the queue is full
            TransientStorageError: If the driver record cannot be ensured
        """
        sentiment = self.scorer.score(submission.scoring_text, submission.driver_rating)

        await self.tracker.find_or_create_driver(submission.driver_id, submission.driver_name)

        position = self.queue.enqueue(QueuedItem(
            submission=submission,
            sentiment=sentiment,
            enqueued_at=datetime.now(UTC)
        ))
        self._pending_keys.add(submission_key(submission))
        logger.info(
            f"Feedback for driver '{submission.driver_id}' queued at position {position}. "
            f"Sentiment: {sentiment.label} ({sentiment.score})"
        )

        return SubmissionReceipt(
            driver_id=submission.driver_id,
            sentiment=sentiment,
            queue_position=position
        )

    async def is_duplicate(self, submission: FeedbackSubmission) -> bool:
        """Whether this user already left feedback for this driver on this date.

        Covers both stored feedback and submissions still waiting in the queue.
        """
        if submission_key(submission) in self._pending_keys:
            return True
        return await self.feedback_store.exists_for(
            submission.user_name,
            submission.driver_id,
            submission.feedback_date
        )

    async def process_next_item(self) -> Optional[FeedbackRecord]:
        """Process the item at the head of the queue, if any.

        Failures are logged and swallowed so the worker keeps running; the
        failed item is dropped, not re-queued.

        Returns:
            The processed FeedbackRecord, or None if the queue was empty or
            processing failed
        """
        async with self._process_lock:
            item = self.queue.dequeue()
            if item is None:
                return None

            try:
                record = await self._process(item)
            except Exception:
                self._pending_keys.discard(submission_key(item.submission))
                self.failed_count += 1
                logger.error(
                    f"Dropping feedback for driver '{item.submission.driver_id}' "
                    f"after processing error",
                    exc_info=True
                )
                return None

            self._pending_keys.discard(submission_key(item.submission))
            self.processed_count += 1
            logger.info(
                f"Processed feedback for driver '{item.submission.driver_id}'. "
                f"Total processed: {self.processed_count}"
            )
            return record

    async def _process(self, item: QueuedItem) -> FeedbackRecord:
        submission, sentiment = item.submission, item.sentiment

        saved = await self.feedback_store.create(FeedbackRecord(
            driver_id=submission.driver_id,
            trip_id=submission.trip_id,
            submitted_by=submission.submitted_by,
            user_name=submission.user_name,
            feedback_date=submission.feedback_date,
            feedback_text=submission.feedback_text,
            sentiment_score=sentiment.score,
            sentiment_label=sentiment.label,
            matched_word_count=sentiment.matched_word_count,
            matched_words=list(sentiment.matched_words),
            processed=False
        ))

        if is_driver_directed(submission):
            driver = await self.tracker.update_score(submission.driver_id, sentiment.score)
        else:
            driver = await self.tracker.find_or_create_driver(
                submission.driver_id,
                submission.driver_name
            )
            logger.info(
                f"Skipped score update for driver '{submission.driver_id}' "
                f"(no driver-directed feedback)"
            )

        # A driver with no scored feedback has a placeholder average of 0
        if driver.total_count > 0:
            await self.alert_gate.check_and_alert(submission.driver_id, driver.average_score)

        await self.feedback_store.mark_processed(saved.id)
        return saved.model_copy(update={"processed": True})

    def start_worker(self) -> None:
        """Start polling the queue on the running event loop."""
        if self.is_worker_running:
            return

        self._stop_event = asyncio.Event()
        self._worker_task = asyncio.create_task(self._run_worker(self._stop_event))
        logger.info(
            f"Starting queue worker (polling every {self.settings.poll_interval_ms}ms)"
        )

    async def stop_worker(self) -> None:
        """Stop polling; an item already in progress is allowed to finish."""
        if self._worker_task is None:
            return

        self._stop_event.set()
        await self._worker_task
        self._worker_task = None
        self._stop_event = None
        logger.info(f"Worker stopped. Processed {self.processed_count} items total")

    @property
    def is_worker_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def _run_worker(self, stop_event: asyncio.Event) -> None:
        interval = self.settings.poll_interval_ms / 1000
        while not stop_event.is_set():
            await self.process_next_item()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    def stats(self) -> Dict[str, Any]:
        """Queue and worker statistics."""
        return {
            "queue_size": self.queue.size(),
            "queue_capacity": self.queue.max_capacity,
            "processed": self.processed_count,
            "failed": self.failed_count,
            "worker_running": self.is_worker_running
        }


def build_pipeline(
    db: Database,
    settings: Optional[PipelineSettings] = None,
    notifier: Optional[AlertNotifier] = None
) -> FeedbackPipeline:
    """Assemble a pipeline over the SQLAlchemy stores sharing one Database handle."""
    settings = settings or PipelineSettings()
    driver_store = SqlDriverStore(db)

    return FeedbackPipeline(
        scorer=SentimentScorer(),
        tracker=ReputationTracker(driver_store),
        alert_gate=AlertGate(
            SqlAlertStore(db),
            driver_store,
            threshold=settings.alert_threshold,
            cooldown_seconds=settings.cooldown_seconds,
            notifier=notifier
        ),
        feedback_store=SqlFeedbackStore(db),
        settings=settings
    )
