"""Storage capabilities the pipeline depends on.

The pipeline only talks to these protocols; ``database.py`` provides the
SQLAlchemy-backed implementations.
"""
from typing import List, Optional, Protocol

from driver_sentiment.schemas import AlertRecord, DriverAggregate, FeedbackRecord


class DriverStore(Protocol):
    async def find_by_id(self, driver_id: str) -> Optional[DriverAggregate]: ...

    async def create(self, driver_id: str, name: str) -> DriverAggregate:
        """Insert a zeroed aggregate.

        Raises:
            DuplicateDriverError: If the id is already taken
        """
        ...

    async def atomic_add_score(
        self,
        driver_id: str,
        delta_score: float,
        new_average: float,
        new_tier: str,
        expected_count: Optional[int] = None
    ) -> DriverAggregate:
        """Increment sum/count and set average/tier in one atomic write.

        Raises:
            DriverNotFoundError: If the driver disappeared
            WriteConflictError: If total_count no longer equals expected_count
        """
        ...

    async def list_all(self) -> List[DriverAggregate]: ...


class FeedbackStore(Protocol):
    async def create(self, record: FeedbackRecord) -> FeedbackRecord: ...

    async def mark_processed(self, feedback_id: int) -> None: ...

    async def exists_for(self, user_name: str, driver_id: str, feedback_date: str) -> bool: ...

    async def find_by_driver_id(self, driver_id: str) -> List[FeedbackRecord]: ...


class AlertStore(Protocol):
    async def create(self, record: AlertRecord) -> AlertRecord: ...

    async def find_latest_for_driver(self, driver_id: str) -> Optional[AlertRecord]: ...

    async def list_all(self, driver_id: Optional[str] = None) -> List[AlertRecord]: ...
