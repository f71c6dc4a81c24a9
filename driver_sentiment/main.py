"""FastAPI application exposing the driver feedback pipeline."""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from driver_sentiment.alerting import AlertNotifier
from driver_sentiment.config import PipelineSettings, config
from driver_sentiment.database import Database
from driver_sentiment.errors import CapacityExceeded, TransientStorageError
from driver_sentiment.processor import FeedbackPipeline, build_pipeline
from driver_sentiment.schemas import (
    AlertRecord,
    DriverAggregate,
    FeedbackRecord,
    FeedbackResponse,
    FeedbackSubmission,
)

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def get_pipeline(request: Request) -> FeedbackPipeline:
    """Dependency returning the pipeline wired at startup."""
    return request.app.state.pipeline


def create_app(
    database_url: Optional[str] = None,
    settings: Optional[PipelineSettings] = None,
    start_worker: bool = True
) -> FastAPI:
    """Build the application.

    The database handle and pipeline are created once here and live for the
    lifetime of the app.
    """
    db = Database(database_url)
    pipeline = build_pipeline(
        db,
        settings or config.pipeline_settings(),
        AlertNotifier(config.ALERT_WEBHOOK_URL, config.ALERT_ENABLED)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("Initializing database...")
        await db.init()
        if start_worker:
            pipeline.start_worker()
        logger.info("Application started successfully")
        yield
        logger.info("Application shutting down")
        await pipeline.stop_worker()
        await db.dispose()

    app = FastAPI(
        title="Driver Sentiment Engine",
        description="Driver feedback scoring, rolling reputation and low-score alerts",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.db = db
    app.state.pipeline = pipeline

    @app.post(
        "/feedback",
        response_model=FeedbackResponse,
        status_code=status.HTTP_202_ACCEPTED
    )
    async def submit_feedback(
        submission: FeedbackSubmission,
        pipeline: FeedbackPipeline = Depends(get_pipeline)
    ):
        """Score feedback and queue it for processing.

        A 202 means "scored and queued", not "persisted": the record, the
        driver's new average and any alert are written by the worker.
        """
        if await pipeline.is_duplicate(submission):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f"'{submission.user_name}' already submitted feedback for driver "
                    f"'{submission.driver_id}' on {submission.feedback_date}"
                )
            )

        try:
            receipt = await pipeline.submit_feedback(submission)
        except CapacityExceeded as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

        sentiment = receipt.sentiment
        return FeedbackResponse(
            driver_id=receipt.driver_id,
            sentiment_score=sentiment.score,
            sentiment_label=sentiment.label,
            matched_word_count=sentiment.matched_word_count,
            matched_words=list(sentiment.matched_words),
            queue_position=receipt.queue_position
        )

    @app.get("/drivers", response_model=List[DriverAggregate])
    async def list_drivers(pipeline: FeedbackPipeline = Depends(get_pipeline)):
        """All drivers, lowest average first."""
        return await pipeline.tracker.list_drivers()

    @app.get("/drivers/{driver_id}", response_model=DriverAggregate)
    async def get_driver(driver_id: str, pipeline: FeedbackPipeline = Depends(get_pipeline)):
        driver = await pipeline.tracker.get_driver(driver_id)
        if driver is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Driver '{driver_id}' not found"
            )
        return driver

    @app.get("/drivers/{driver_id}/feedback", response_model=List[FeedbackRecord])
    async def driver_feedback(driver_id: str, pipeline: FeedbackPipeline = Depends(get_pipeline)):
        return await pipeline.feedback_store.find_by_driver_id(driver_id)

    @app.get("/alerts", response_model=List[AlertRecord])
    async def list_alerts(
        driver_id: Optional[str] = None,
        pipeline: FeedbackPipeline = Depends(get_pipeline)
    ):
        return await pipeline.alert_gate.get_alerts(driver_id)

    @app.get("/health")
    async def health_check(pipeline: FeedbackPipeline = Depends(get_pipeline)):
        """Health check endpoint with queue and worker statistics."""
        return {"status": "healthy", **pipeline.stats()}

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Driver Sentiment Engine",
            "version": "1.0.0",
            "endpoints": {
                "submit": "POST /feedback",
                "drivers": "GET /drivers",
                "driver": "GET /drivers/{driver_id}",
                "driver_feedback": "GET /drivers/{driver_id}/feedback",
                "alerts": "GET /alerts",
                "health": "GET /health"
            }
        }

    @app.exception_handler(TransientStorageError)
    async def storage_exception_handler(request, exc):
        logger.error(f"Storage unavailable: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage temporarily unavailable, please retry"}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unexpected errors."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    return app


app = create_app()
