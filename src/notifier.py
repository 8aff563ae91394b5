"""
Notifiers deliver upgrade lifecycle notifications to an external channel.
"""

import logging

from clients import RestClient
from exceptions import NotifierError
from models import NotifyState, UpgradeRecord

logger = logging.getLogger(__name__)

SERVICE_NAME = "ManagedUpgrade"
SERVICE_LOG_PATH = "/api/service_logs/v1/cluster_logs"


def describe(state: str, record: UpgradeRecord) -> str:
    """Human readable description of a lifecycle state."""
    version = record.desired_version
    descriptions = {
        NotifyState.SCHEDULED.value: f"Cluster is scheduled for upgrade to version {version} at {record.upgrade_at}.",
        NotifyState.STARTED.value: f"Cluster is currently being upgraded to version {version}.",
        NotifyState.DELAYED.value: f"Cluster upgrade to version {version} is delayed.",
        NotifyState.FAILED.value: f"Cluster failed to upgrade to version {version}.",
        NotifyState.COMPLETED.value: f"Cluster has been successfully upgraded to version {version}.",
    }
    return descriptions.get(state, f"Cluster upgrade to version {version}: {state}.")


class Notifier:
    """Interface for notification channels."""

    def notify_state(self, state: str, record: UpgradeRecord) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Writes notifications to the operator log only."""

    def notify_state(self, state: str, record: UpgradeRecord) -> None:
        logger.info(f"Upgrade notification [{state}]: {describe(state, record)}")


class OcmNotifier(Notifier):
    """Posts notifications as OpenShift Cluster Manager service logs."""

    def __init__(self, rest: RestClient, cluster_id: str):
        """
        Args:
            rest: RestClient pointed at the OCM API
            cluster_id: External cluster ID known to OCM
        """
        self.rest = rest
        self.cluster_id = cluster_id

    def notify_state(self, state: str, record: UpgradeRecord) -> None:
        """
        Send a service log for the state.

        Raises:
            NotifierError: If OCM does not accept the log
        """
        body = {
            "cluster_uuid": self.cluster_id,
            "service_name": SERVICE_NAME,
            "severity": "Error" if state == NotifyState.FAILED.value else "Info",
            "summary": f"Cluster upgrade {state}",
            "description": describe(state, record),
        }
        try:
            resp = self.rest.request_with_retry("POST", SERVICE_LOG_PATH, json=body)
        except RuntimeError as e:
            raise NotifierError(f"Failed to send {state} notification: {e}") from e

        if resp.status_code not in (200, 201):
            raise NotifierError(
                f"OCM rejected {state} notification ({resp.status_code}): {resp.text[:200]}"
            )
        logger.info(f"Sent {state} notification for cluster {self.cluster_id}")


def new_notifier(config) -> Notifier:
    """
    Pick the notifier configured for this operator.

    Args:
        config: OperatorConfig

    Returns:
        OcmNotifier when an OCM URL and cluster ID are set, else LogNotifier
    """
    if config.ocm_url and config.cluster_id:
        return OcmNotifier(RestClient(config.ocm_url, token=config.ocm_token), config.cluster_id)
    logger.info("No OCM endpoint configured; notifications go to the log only")
    return LogNotifier()
