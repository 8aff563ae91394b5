"""
Idempotent delivery of upgrade lifecycle notifications.
"""

import logging
from typing import Optional

from exceptions import UpgradeOperatorError
from metrics import MetricsSink
from models import NotificationEvent
from notifier import Notifier
from upgradeconfig import UpgradeConfigManager

logger = logging.getLogger(__name__)


class EventManager:
    """
    Sends at most one successful notification per lifecycle state.

    The outcome of every attempt is written to the UpgradeConfig's
    notificationEvent status, which the next call checks before notifying.
    """

    def __init__(
        self,
        upgrade_config_manager: UpgradeConfigManager,
        notifier: Notifier,
        metrics: Optional[MetricsSink] = None,
    ):
        self.upgrade_config_manager = upgrade_config_manager
        self.notifier = notifier
        self.metrics = metrics

    def notify(self, state) -> None:
        """
        Notify a lifecycle state unless it was already delivered.

        Args:
            state: NotifyState or plain state string

        Raises:
            Exception: Whatever the record fetch or the notifier raised
        """
        state = getattr(state, "value", state)
        record = self.upgrade_config_manager.get()

        event = record.notification_event
        if event.sent and event.state == state:
            logger.debug(f"Notification for state {state} already sent")
            return

        try:
            self.notifier.notify_state(state, record)
        except Exception as e:
            logger.error(f"Failed to send {state} notification: {e}")
            record.notification_event = NotificationEvent(
                sent=False, failed=True, state=state
            )
            try:
                self.upgrade_config_manager.update_status(record)
            except UpgradeOperatorError as update_err:
                logger.warning(
                    f"Could not record failed {state} notification: {update_err}"
                )
            raise

        record.notification_event = NotificationEvent(sent=True, failed=False, state=state)
        self.upgrade_config_manager.update_status(record)
        if self.metrics:
            self.metrics.update_metric_notification_event_sent(
                record.name, state, record.desired_version
            )
        logger.info(f"Notification for state {state} sent")
