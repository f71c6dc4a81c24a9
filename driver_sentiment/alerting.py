"""Cooldown-gated alerting for drivers whose reputation drops too low."""
import logging
from datetime import datetime, UTC
from typing import Callable, List, Optional

import httpx

from driver_sentiment.schemas import AlertRecord
from driver_sentiment.stores import AlertStore, DriverStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


class AlertNotifier:
    """Pushes newly created alerts to a Slack-compatible webhook.

    Delivery is best-effort: the alert is already persisted, so a failed
    webhook is logged and reported as False, never raised.
    """

    def __init__(self, webhook_url: str = "", enabled: bool = False, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.enabled = enabled
        self.timeout = timeout

    async def notify(self, alert: AlertRecord) -> bool:
        """Send an alert notification.

        Returns:
            True if the alert was delivered (or logged in place of delivery)
        """
        if not self.enabled:
            logger.info(
                f"Alert notification skipped for driver '{alert.driver_id}' "
                f"(alerting disabled in config)"
            )
            return False

        if not self.webhook_url:
            logger.warning(f"ALERT: {alert.message}")
            return True

        try:
            await self._send_webhook(self._build_payload(alert))
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver alert for driver '{alert.driver_id}': {e}")
            return False

    def _build_payload(self, alert: AlertRecord) -> dict:
        """Build a Slack-compatible block payload."""
        return {
            "text": f"Driver alert: {alert.driver_name} ({alert.driver_id})",
            "blocks": [
                {
                    "type": "header",
                    "text": {
                        "type": "plain_text",
                        "text": "🚨 Driver Reputation Alert"
                    }
                },
                {
                    "type": "section",
                    "fields": [
                        {
                            "type": "mrkdwn",
                            "text": f"*Driver:*\n{alert.driver_name} ({alert.driver_id})"
                        },
                        {
                            "type": "mrkdwn",
                            "text": f"*Average score:*\n{alert.current_score}"
                        },
                        {
                            "type": "mrkdwn",
                            "text": f"*Threshold:*\n{alert.threshold}"
                        },
                        {
                            "type": "mrkdwn",
                            "text": f"*Raised at:*\n{alert.created_at.isoformat()}"
                        }
                    ]
                },
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": alert.message
                    }
                }
            ]
        }

    async def _send_webhook(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
            logger.info(f"Alert sent successfully to {self.webhook_url}")


class AlertGate:
    """Decides whether a driver's current score warrants a new alert.

    A driver below the threshold gets at most one alert per cooldown window.
    The window is derived from the latest stored alert on every call, so
    there is no in-memory alert state to keep in sync.
    """

    def __init__(
        self,
        alert_store: AlertStore,
        driver_store: DriverStore,
        threshold: float = 2.5,
        cooldown_seconds: int = 3600,
        notifier: Optional[AlertNotifier] = None,
        clock: Optional[Clock] = None
    ):
        self.alert_store = alert_store
        self.driver_store = driver_store
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self.notifier = notifier
        self.clock = clock or _utcnow

    async def check_and_alert(self, driver_id: str, current_score: float) -> Optional[AlertRecord]:
        """Create an alert if the score breaches the threshold outside the cooldown.

        Args:
            driver_id: Driver whose score changed
            current_score: The driver's average after the latest update

        Returns:
            The persisted AlertRecord, or None if no alert was due
        """
        if current_score >= self.threshold:
            return None

        now = self.clock()
        if await self.is_on_cooldown(driver_id, now):
            logger.info(f"Skipping alert for driver '{driver_id}': still within cooldown")
            return None

        driver = await self.driver_store.find_by_id(driver_id)
        driver_name = driver.name if driver else "Unknown Driver"

        alert = await self.alert_store.create(AlertRecord(
            driver_id=driver_id,
            driver_name=driver_name,
            message=(
                f"Driver '{driver_name}' ({driver_id}) has a sentiment score of {current_score}, "
                f"which is below the threshold of {self.threshold}. Immediate review recommended."
            ),
            current_score=current_score,
            threshold=self.threshold,
            created_at=now
        ))
        logger.warning(
            f"ALERT created for driver '{driver_id}': score {current_score} < threshold {self.threshold}"
        )

        if self.notifier is not None:
            await self.notifier.notify(alert)

        return alert

    async def is_on_cooldown(self, driver_id: str, now: Optional[datetime] = None) -> bool:
        """Whether the driver's latest alert is younger than the cooldown."""
        last_alert = await self.alert_store.find_latest_for_driver(driver_id)
        if last_alert is None:
            return False

        now = now or self.clock()
        elapsed = (_as_utc(now) - _as_utc(last_alert.created_at)).total_seconds()
        return elapsed < self.cooldown_seconds

    async def get_alerts(self, driver_id: Optional[str] = None) -> List[AlertRecord]:
        return await self.alert_store.list_all(driver_id)
