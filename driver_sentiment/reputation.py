"""Per-driver rolling reputation tracking."""
import logging
from typing import List, Optional

from driver_sentiment.errors import DriverNotFoundError, DuplicateDriverError, WriteConflictError
from driver_sentiment.schemas import DriverAggregate
from driver_sentiment.sentiment import round_half_up
from driver_sentiment.stores import DriverStore

logger = logging.getLogger(__name__)


def classify_risk_tier(average_score: float) -> str:
    """HIGH below 2.5, MEDIUM below 3.5, LOW otherwise."""
    if average_score < 2.5:
        return "HIGH"
    if average_score < 3.5:
        return "MEDIUM"
    return "LOW"


class ReputationTracker:
    """Maintains each driver's average score from a stored (sum, count) pair.

    An update reads one driver record and writes it back with an atomic
    increment, so its cost does not grow with the driver's feedback history.
    """

    def __init__(self, driver_store: DriverStore, max_write_attempts: int = 3):
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")
        self.driver_store = driver_store
        self.max_write_attempts = max_write_attempts

    async def update_score(self, driver_id: str, new_score: float) -> DriverAggregate:
        """Fold one sentiment score into the driver's rolling average.

        Args:
            driver_id: Driver to update
            new_score: Sentiment score in [1, 5]

        Returns:
            The driver aggregate after the update

        Raises:
            DriverNotFoundError: If the driver does not exist
            WriteConflictError: If every attempt lost a race with another writer
        """
        for attempt in range(1, self.max_write_attempts + 1):
            driver = await self.driver_store.find_by_id(driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)

            new_total_score = driver.total_score + new_score
            new_total_count = driver.total_count + 1
            new_average = round_half_up(new_total_score / new_total_count, 2)
            new_tier = classify_risk_tier(new_average)

            try:
                updated = await self.driver_store.atomic_add_score(
                    driver_id,
                    new_score,
                    new_average,
                    new_tier,
                    expected_count=driver.total_count
                )
            except WriteConflictError:
                if attempt == self.max_write_attempts:
                    raise
                logger.warning(
                    f"Concurrent update on driver '{driver_id}', retrying "
                    f"({attempt}/{self.max_write_attempts})"
                )
                continue

            logger.info(
                f"Driver '{driver_id}' score {driver.average_score} -> "
                f"{updated.average_score} ({updated.risk_tier})"
            )
            return updated

    async def find_or_create_driver(self, driver_id: str, name: str) -> DriverAggregate:
        """Return the driver, creating a zeroed record on first sight.

        Safe under concurrent first submissions: losing the insert race
        re-reads the record the winner created. If that record is gone again
        by the time it is re-read, the create is tried once more.

        Raises:
            DriverNotFoundError: If the driver could neither be found nor created
        """
        for _ in range(2):
            existing = await self.driver_store.find_by_id(driver_id)
            if existing is not None:
                return existing

            try:
                created = await self.driver_store.create(driver_id, name)
            except DuplicateDriverError:
                logger.info(f"Driver '{driver_id}' was created concurrently, re-fetching")
                continue

            logger.info(f"Created driver '{driver_id}' ({name})")
            return created

        raise DriverNotFoundError(driver_id)

    async def get_driver(self, driver_id: str) -> Optional[DriverAggregate]:
        return await self.driver_store.find_by_id(driver_id)

    async def list_drivers(self) -> List[DriverAggregate]:
        return await self.driver_store.list_all()
