"""
Prometheus metrics and alert queries for the Managed Upgrade Node Keeper.

MetricsSink owns its own CollectorRegistry; it is created once at process
start and handed to whatever reports gauges. PrometheusClient queries the
cluster Prometheus for firing alerts.
"""

import logging
from typing import List, Optional

from prometheus_client import CollectorRegistry, Gauge

from clients import RestClient
from exceptions import MetricsError
from models import AlertResponse

logger = logging.getLogger(__name__)

METRICS_TAG = "upgradeoperator"
UPGRADECONFIG_NAME_LABEL = "upgradeconfig_name"
VERSION_LABEL = "version"
NODE_LABEL = "node_name"
EVENT_LABEL = "event"


class MetricsSink:
    """Process-scoped operator gauges."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        def gauge(name: str, doc: str, labels: List[str]) -> Gauge:
            return Gauge(
                name, doc, labels, subsystem=METRICS_TAG, registry=self.registry
            )

        uc = [UPGRADECONFIG_NAME_LABEL]
        self.validation_failed = gauge(
            "upgradeconfig_validation_failed", "Failed to validate the upgrade config", uc
        )
        self.cluster_check_failed = gauge(
            "cluster_check_failed", "Failed on the cluster check step", uc
        )
        self.scaling_failed = gauge("scaling_failed", "Failed to scale up extra workers", uc)
        self.cluster_verification_failed = gauge(
            "cluster_verification_failed",
            "Failed on the cluster upgrade verification step",
            uc,
        )
        self.upgrade_window_breached = gauge(
            "upgrade_window_breached",
            "Failed to commence upgrade during the upgrade window",
            uc,
        )
        self.upgradeconfig_synced = gauge(
            "upgradeconfig_synced", "UpgradeConfig has not been synced in time", uc
        )
        self.controlplane_timeout = gauge(
            "controlplane_timeout", "Control plane upgrade timeout", uc + [VERSION_LABEL]
        )
        self.worker_timeout = gauge(
            "worker_timeout", "Worker nodes upgrade timeout", uc + [VERSION_LABEL]
        )
        self.node_drain_failed = gauge(
            "node_drain_timeout",
            "Node cannot be drained successfully in time.",
            [NODE_LABEL],
        )
        self.upgrade_notification = gauge(
            "upgrade_notification",
            "Notification event raised",
            uc + [EVENT_LABEL, VERSION_LABEL],
        )

    def update_metric_node_drain_failed(self, node_name: str) -> None:
        self.node_drain_failed.labels(node_name).set(1)

    def reset_metric_node_drain_failed(self, node_name: str) -> None:
        self.node_drain_failed.labels(node_name).set(0)

    def update_metric_notification_event_sent(
        self, name: str, event: str, version: str
    ) -> None:
        self.upgrade_notification.labels(name, event, version).set(1)

    def update_metric_upgradeconfig_synced(self, name: str) -> None:
        self.upgradeconfig_synced.labels(name).set(1)

    def reset_metric_upgradeconfig_synced(self, name: str) -> None:
        self.upgradeconfig_synced.labels(name).set(0)


class PrometheusClient:
    """Alert queries against the cluster Prometheus, plus gauge reporting."""

    def __init__(self, sink: MetricsSink, rest: RestClient):
        """
        Args:
            sink: Process metrics sink
            rest: RestClient pointed at the Prometheus API host
        """
        self.sink = sink
        self.rest = rest

    @classmethod
    def from_url(
        cls, sink: MetricsSink, prometheus_url: str, token: Optional[str] = None
    ) -> "PrometheusClient":
        return cls(sink, RestClient(prometheus_url, token=token))

    def query(self, query: str) -> AlertResponse:
        """
        Run an instant query.

        Args:
            query: PromQL expression

        Returns:
            AlertResponse

        Raises:
            MetricsError: If the query fails or the response is not JSON
        """
        try:
            resp = self.rest.request_with_retry(
                "GET", "/api/v1/query", params={"query": query}
            )
        except RuntimeError as e:
            raise MetricsError(f"Could not query Prometheus: {e}") from e

        if resp.status_code != 200:
            raise MetricsError(
                f"Error when querying Prometheus ({resp.status_code}): {resp.text[:200]}"
            )
        try:
            return AlertResponse.from_dict(resp.json())
        except ValueError as e:
            raise MetricsError(f"Invalid Prometheus response: {e}") from e

    def is_alert_firing(
        self, alert: str, checked_ns: List[str], ignored_ns: List[str]
    ) -> bool:
        """Whether the named alert fires in the checked namespaces (or cluster-wide)."""
        expr = (
            f'ALERTS{{alertstate="firing",alertname="{alert}",'
            f'namespace=~"^$|{"|".join(checked_ns)}",'
            f'namespace!="{"|".join(ignored_ns)}"}}'
        )
        response = self.query(expr)
        firing = len(response.result) > 0
        if firing:
            logger.info(f"Alert {alert} is firing")
        return firing

    def update_metric_upgradeconfig_synced(self, name: str) -> None:
        self.sink.update_metric_upgradeconfig_synced(name)

    def reset_metric_upgradeconfig_synced(self, name: str) -> None:
        self.sink.reset_metric_upgradeconfig_synced(name)
