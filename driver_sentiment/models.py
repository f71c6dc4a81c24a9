"""Database models for drivers, feedback and alerts."""
from datetime import datetime, UTC
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Driver(Base):
    """Driver reputation aggregate.

    total_score and total_count let the average be updated in O(1)
    without re-reading historical feedback.
    """

    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    total_score = Column(Float, nullable=False, default=0.0)
    total_count = Column(Integer, nullable=False, default=0)
    average_score = Column(Float, nullable=False, default=0.0)
    risk_tier = Column(String(10), nullable=False, default="LOW")  # LOW, MEDIUM, HIGH
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Feedback(Base):
    """Feedback audit-log model."""

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(String(64), nullable=False, index=True)
    trip_id = Column(String(64), nullable=True)
    submitted_by = Column(String(20), nullable=False, default="rider")  # rider or marshal
    user_name = Column(String(200), nullable=False)
    feedback_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    feedback_text = Column(Text, nullable=False, default="")
    sentiment_score = Column(Float, nullable=False)
    sentiment_label = Column(String(20), nullable=False)  # positive, neutral, negative
    matched_word_count = Column(Integer, nullable=False, default=0)
    matched_words = Column(JSON, nullable=False, default=list)
    processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Alert(Base):
    """Low-score alert model. Rows are never updated or deleted."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(String(64), nullable=False, index=True)
    driver_name = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    current_score = Column(Float, nullable=False)
    threshold = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
