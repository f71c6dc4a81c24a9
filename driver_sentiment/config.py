"""Configuration management for the driver sentiment engine."""
import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class PipelineSettings(BaseModel):
    """Tunables handed to the pipeline components at construction."""

    alert_threshold: float = Field(2.5, ge=0, le=5)
    cooldown_seconds: int = Field(3600, ge=0)
    queue_max_capacity: int = Field(10_000, gt=0)
    poll_interval_ms: int = Field(2000, gt=0)


class Config:
    """Application configuration."""

    # Database Configuration
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./driver_sentiment.db")

    # Pipeline Configuration
    ALERT_THRESHOLD = float(os.getenv("ALERT_THRESHOLD", "2.5"))
    ALERT_COOLDOWN_SECONDS = int(os.getenv("ALERT_COOLDOWN_SECONDS", "3600"))
    QUEUE_MAX_CAPACITY = int(os.getenv("QUEUE_MAX_CAPACITY", "10000"))
    QUEUE_POLL_INTERVAL_MS = int(os.getenv("QUEUE_POLL_INTERVAL_MS", "2000"))

    # Alert notification Configuration
    ALERT_WEBHOOK_URL = os.getenv("ALERT_WEBHOOK_URL", "")
    ALERT_ENABLED = os.getenv("ALERT_ENABLED", "false").lower() == "true"

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    def pipeline_settings(self) -> PipelineSettings:
        """Snapshot the pipeline tunables so components never read globals."""
        return PipelineSettings(
            alert_threshold=self.ALERT_THRESHOLD,
            cooldown_seconds=self.ALERT_COOLDOWN_SECONDS,
            queue_max_capacity=self.QUEUE_MAX_CAPACITY,
            poll_interval_ms=self.QUEUE_POLL_INTERVAL_MS,
        )


config = Config()
