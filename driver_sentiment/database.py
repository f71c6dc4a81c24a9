"""Database connection and SQLAlchemy-backed stores."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from driver_sentiment.config import config
from driver_sentiment.errors import (
    DriverNotFoundError,
    DuplicateDriverError,
    RecordNotFoundError,
    TransientStorageError,
    WriteConflictError,
)
from driver_sentiment.models import Alert, Base, Driver, Feedback
from driver_sentiment.schemas import AlertRecord, DriverAggregate, FeedbackRecord

logger = logging.getLogger(__name__)


class Database:
    """Engine and session factory, built once per process and shared by the stores."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or config.DATABASE_URL
        engine_kwargs = {"echo": echo}
        if self.url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url:
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_async_engine(self.url, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def init(self) -> None:
        """Create tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, translating connectivity failures into TransientStorageError."""
        async with self.sessionmaker() as session:
            try:
                yield session
            except OperationalError as e:
                await session.rollback()
                raise TransientStorageError(f"Database operation failed: {e}") from e


class SqlDriverStore:
    """DriverStore backed by the ``drivers`` table."""

    def __init__(self, db: Database):
        self._db = db

    async def find_by_id(self, driver_id: str) -> Optional[DriverAggregate]:
        async with self._db.session() as session:
            driver = await session.scalar(select(Driver).where(Driver.driver_id == driver_id))
            return DriverAggregate.model_validate(driver) if driver else None

    async def create(self, driver_id: str, name: str) -> DriverAggregate:
        async with self._db.session() as session:
            driver = Driver(
                driver_id=driver_id,
                name=name,
                total_score=0.0,
                total_count=0,
                average_score=0.0,
                risk_tier="LOW"
            )
            session.add(driver)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateDriverError(driver_id) from e
            await session.refresh(driver)
            return DriverAggregate.model_validate(driver)

    async def atomic_add_score(
        self,
        driver_id: str,
        delta_score: float,
        new_average: float,
        new_tier: str,
        expected_count: Optional[int] = None
    ) -> DriverAggregate:
        """Apply one scored feedback to a driver in a single UPDATE statement.

        Sum and count are incremented server-side so concurrent writers never
        overwrite each other. When ``expected_count`` is given the write only
        lands if nobody else updated the driver since it was read.
        """
        drivers = Driver.__table__
        stmt = (
            update(drivers)
            .where(drivers.c.driver_id == driver_id)
            .values(
                total_score=drivers.c.total_score + delta_score,
                total_count=drivers.c.total_count + 1,
                average_score=new_average,
                risk_tier=new_tier,
                updated_at=datetime.now(UTC)
            )
        )
        if expected_count is not None:
            stmt = stmt.where(drivers.c.total_count == expected_count)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                exists = await session.scalar(
                    select(Driver.id).where(Driver.driver_id == driver_id)
                )
                if exists is None:
                    raise DriverNotFoundError(driver_id)
                raise WriteConflictError(driver_id, expected_count)

            driver = await session.scalar(select(Driver).where(Driver.driver_id == driver_id))
            aggregate = DriverAggregate.model_validate(driver)
            await session.commit()
            return aggregate

    async def list_all(self) -> List[DriverAggregate]:
        """All drivers, worst average first."""
        async with self._db.session() as session:
            rows = await session.scalars(
                select(Driver).order_by(Driver.average_score.asc(), Driver.driver_id)
            )
            return [DriverAggregate.model_validate(row) for row in rows]


class SqlFeedbackStore:
    """FeedbackStore backed by the ``feedback`` table."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, record: FeedbackRecord) -> FeedbackRecord:
        async with self._db.session() as session:
            feedback = Feedback(**record.model_dump(exclude={"id", "created_at"}))
            session.add(feedback)
            await session.commit()
            await session.refresh(feedback)
            return FeedbackRecord.model_validate(feedback)

    async def mark_processed(self, feedback_id: int) -> None:
        async with self._db.session() as session:
            result = await session.execute(
                update(Feedback.__table__)
                .where(Feedback.__table__.c.id == feedback_id)
                .values(processed=True)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise RecordNotFoundError(f"Feedback {feedback_id} not found.")
            await session.commit()

    async def exists_for(self, user_name: str, driver_id: str, feedback_date: str) -> bool:
        async with self._db.session() as session:
            found = await session.scalar(
                select(Feedback.id)
                .where(
                    Feedback.user_name == user_name,
                    Feedback.driver_id == driver_id,
                    Feedback.feedback_date == feedback_date
                )
                .limit(1)
            )
            return found is not None

    async def find_by_driver_id(self, driver_id: str) -> List[FeedbackRecord]:
        """All feedback for a driver, newest first."""
        async with self._db.session() as session:
            rows = await session.scalars(
                select(Feedback)
                .where(Feedback.driver_id == driver_id)
                .order_by(Feedback.created_at.desc(), Feedback.id.desc())
            )
            return [FeedbackRecord.model_validate(row) for row in rows]


class SqlAlertStore:
    """AlertStore backed by the append-only ``alerts`` table."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, record: AlertRecord) -> AlertRecord:
        async with self._db.session() as session:
            alert = Alert(**record.model_dump(exclude={"id"}))
            session.add(alert)
            await session.commit()
            await session.refresh(alert)
            return AlertRecord.model_validate(alert)

    async def find_latest_for_driver(self, driver_id: str) -> Optional[AlertRecord]:
        async with self._db.session() as session:
            alert = await session.scalar(
                select(Alert)
                .where(Alert.driver_id == driver_id)
                .order_by(Alert.created_at.desc(), Alert.id.desc())
                .limit(1)
            )
            return AlertRecord.model_validate(alert) if alert else None

    async def list_all(self, driver_id: Optional[str] = None) -> List[AlertRecord]:
        """Alerts newest first, optionally for one driver."""
        async with self._db.session() as session:
            stmt = select(Alert).order_by(Alert.created_at.desc(), Alert.id.desc())
            if driver_id:
                stmt = stmt.where(Alert.driver_id == driver_id)
            rows = await session.scalars(stmt)
            return [AlertRecord.model_validate(row) for row in rows]
