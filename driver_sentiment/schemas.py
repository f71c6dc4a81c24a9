"""Pydantic schemas for pipeline data and request/response validation."""
from datetime import date, datetime
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

SentimentLabel = Literal["negative", "neutral", "positive"]
RiskTier = Literal["LOW", "MEDIUM", "HIGH"]


def _today() -> str:
    return date.today().isoformat()


class FeedbackSubmission(BaseModel):
    """Feedback about a driver as submitted by a rider or marshal."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "driver_id": "DRV-1001",
                "driver_name": "Arjun Mehta",
                "feedback_text": "Driver was polite and punctual, but the app kept crashing.",
                "driver_feedback_text": "Driver was polite and punctual.",
                "driver_rating": 5,
                "user_name": "priya",
                "feedback_date": "2026-10-18",
                "trip_id": "TRIP-42",
                "submitted_by": "rider"
            }
        }
    )

    driver_id: str = Field(..., min_length=1, max_length=64)
    driver_name: str = Field(..., min_length=1, max_length=200)
    feedback_text: str = Field("", max_length=5000, description="Full raw feedback text")
    driver_feedback_text: Optional[str] = Field(
        None,
        max_length=5000,
        description="Comment addressed to the driver; defaults to the full feedback text"
    )
    driver_rating: Optional[int] = Field(None, ge=1, le=5, description="Explicit star rating")
    user_name: str = Field(..., min_length=1, max_length=200, description="Submitter identity")
    feedback_date: str = Field(default_factory=_today, pattern=r"^\d{4}-\d{2}-\d{2}$")
    trip_id: Optional[str] = Field(None, max_length=64)
    submitted_by: Literal["rider", "marshal"] = "rider"

    @field_validator("feedback_date")
    @classmethod
    def feedback_date_must_exist(cls, value: str) -> str:
        # The pattern alone lets through dates like 2026-13-45
        date.fromisoformat(value)
        return value

    @property
    def scoring_text(self) -> str:
        """Text that counts towards the driver's sentiment score."""
        if self.driver_feedback_text is None:
            return self.feedback_text
        return self.driver_feedback_text


class SentimentResult(BaseModel):
    """Outcome of scoring one piece of feedback."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=1.0, le=5.0)
    label: SentimentLabel
    matched_word_count: int = Field(..., ge=0)
    matched_words: Tuple[str, ...] = ()


class QueuedItem(BaseModel):
    """A scored submission waiting for the background worker."""

    submission: FeedbackSubmission
    sentiment: SentimentResult
    enqueued_at: datetime


class SubmissionReceipt(BaseModel):
    """What the caller gets back once feedback is scored and queued."""

    driver_id: str
    sentiment: SentimentResult
    queue_position: int


class DriverAggregate(BaseModel):
    """Rolling reputation figures for one driver."""

    model_config = ConfigDict(from_attributes=True)

    driver_id: str
    name: str
    total_score: float = 0.0
    total_count: int = 0
    average_score: float = Field(0.0, ge=0.0, le=5.0)
    risk_tier: RiskTier = "LOW"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FeedbackRecord(BaseModel):
    """Audit-log entry for one processed submission."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    driver_id: str
    trip_id: Optional[str] = None
    submitted_by: str = "rider"
    user_name: str
    feedback_date: str
    feedback_text: str
    sentiment_score: float
    sentiment_label: SentimentLabel
    matched_word_count: int = 0
    matched_words: List[str] = Field(default_factory=list)
    processed: bool = False
    created_at: Optional[datetime] = None


class AlertRecord(BaseModel):
    """Append-only record of a low-score alert."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    driver_id: str
    driver_name: str
    message: str
    current_score: float
    threshold: float
    created_at: datetime


class FeedbackResponse(BaseModel):
    """Response schema for an accepted feedback submission."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "driver_id": "DRV-1001",
                "status": "queued",
                "sentiment_score": 5.0,
                "sentiment_label": "positive",
                "matched_word_count": 2,
                "matched_words": ["+polite", "+punctual"],
                "queue_position": 1
            }
        }
    )

    driver_id: str
    status: str = Field("queued", description="Always 'queued': scored, not yet persisted")
    sentiment_score: float
    sentiment_label: SentimentLabel
    matched_word_count: int
    matched_words: List[str]
    queue_position: int
