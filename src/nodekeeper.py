"""
Node keeper: per-node drain reconciliation during a worker upgrade.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Set

from config import ConfigManager, NodeKeeperConfig
from drain import NodeDrainStrategy, NodeDrainStrategyBuilder, utcnow
from machinery import Machinery
from metrics import MetricsSink
from models import NodeDrainStatus, ReconcileResult, UpgradePhase
from upgradeconfig import UpgradeConfigManager

logger = logging.getLogger(__name__)

WORKER_POOL = "worker"

# Re-check this long before the next checkpoint, but never sooner than MIN_REQUEUE.
REQUEUE_LEAD = timedelta(seconds=30)
MIN_REQUEUE = timedelta(seconds=10)


def requeue_interval(checkpoint: datetime, now: datetime) -> timedelta:
    return max(checkpoint - now - REQUEUE_LEAD, MIN_REQUEUE)


class NodeKeeperReconciler:
    """Watches cordoned worker nodes and flags drains that overrun their budget."""

    def __init__(
        self,
        kube,
        upgrade_config_manager: UpgradeConfigManager,
        machinery: Machinery,
        config_manager: ConfigManager,
        drain_strategy_builder: NodeDrainStrategyBuilder,
        metrics: Optional[MetricsSink] = None,
    ):
        """
        Args:
            kube: KubeClient used to fetch nodes
            upgrade_config_manager: Accessor for the UpgradeConfig
            machinery: Machine pool and cordon state oracle
            config_manager: Loader for the node keeper config
            drain_strategy_builder: Builds a drain strategy per node
            metrics: Optional metrics sink for the node drain gauge
        """
        self.kube = kube
        self.upgrade_config_manager = upgrade_config_manager
        self.machinery = machinery
        self.config_manager = config_manager
        self.drain_strategy_builder = drain_strategy_builder
        self.metrics = metrics
        # Uncordoned nodes whose cleared drain status has already been written.
        self._reset_written: Set[str] = set()

    def reconcile(self, node_name: str) -> ReconcileResult:
        """
        Reconcile one node.

        Args:
            node_name: Name of the node that changed

        Returns:
            ReconcileResult; requeue_after is set only while a cordoned node
            is still within its drain budget

        Raises:
            Exception: Fetch, config and persistence errors are not handled here
        """
        record = self.upgrade_config_manager.get()
        if record.phase != UpgradePhase.UPGRADING:
            logger.debug(f"Skipping {node_name}: upgrade phase is {record.phase.value}")
            return ReconcileResult()

        upgrading = self.machinery.is_upgrading(WORKER_POOL)
        if not upgrading.is_upgrading:
            logger.debug(f"Skipping {node_name}: {WORKER_POOL} pool is not upgrading")
            return ReconcileResult()

        node = self.kube.get_node(node_name)
        cordon = self.machinery.is_node_cordoned(node)

        if not cordon.is_cordoned:
            if record.node_drain.failed or node_name not in self._reset_written:
                logger.info(f"Node {node_name} is uncordoned; clearing drain failure")
                record.node_drain.failed = False
                self.upgrade_config_manager.update_status(record)
                self._reset_written.add(node_name)
            if self.metrics:
                self.metrics.reset_metric_node_drain_failed(node_name)
            return ReconcileResult()

        self._reset_written.discard(node_name)
        if cordon.added_at is None:
            logger.warning(f"Node {node_name} is cordoned but has no cordon time yet")
            return ReconcileResult(requeue_after=MIN_REQUEUE)

        cfg = self.config_manager.into(NodeKeeperConfig())
        strategy: NodeDrainStrategy = self.drain_strategy_builder.new_node_drain_strategy(
            node, cfg.node_drain, cordon.added_at
        )
        results = strategy.execute()
        for r in results:
            if r.error:
                logger.info(f"Drain {r.strategy} on {node_name}: {r.error}")
            else:
                logger.debug(f"Drain {r.strategy} on {node_name}: {r.message}")
        has_failed = strategy.has_failed(results)

        desired = NodeDrainStatus(failed=has_failed, name=node_name)
        if record.node_drain != desired:
            record.node_drain = desired
            self.upgrade_config_manager.update_status(record)

        if has_failed:
            if self.metrics:
                self.metrics.update_metric_node_drain_failed(node_name)
            return ReconcileResult()

        now = utcnow()
        requeue_after = requeue_interval(strategy.next_checkpoint(), now)
        logger.debug(f"Node {node_name} still draining; re-checking in {requeue_after}")
        return ReconcileResult(requeue_after=requeue_after)
