"""
Node drain strategies.

A strategy is built per reconciliation for one cordoned node. It runs the
drain mechanisms whose wait time since the cordon has elapsed and judges
whether the drain missed its time budget. Mechanism errors are reported in
the results but do not make the drain fail; only the deadline does.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from config import DrainConfig
from models import DrainStrategyResult

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _is_daemonset_pod(pod) -> bool:
    for ref in pod.metadata.owner_references or []:
        if ref.kind == "DaemonSet":
            return True
    return False


def selector_matches(selector, labels: Optional[Dict[str, str]]) -> bool:
    """
    Evaluate a V1LabelSelector against a label set.

    An empty selector matches nothing, as for PodDisruptionBudgets.
    """
    labels = labels or {}
    if selector is None:
        return False
    match_labels = selector.match_labels or {}
    expressions = selector.match_expressions or []
    if not match_labels and not expressions:
        return False

    for key, value in match_labels.items():
        if labels.get(key) != value:
            return False

    for expr in expressions:
        values = expr.values or []
        if expr.operator == "In":
            if labels.get(expr.key) not in values:
                return False
        elif expr.operator == "NotIn":
            if expr.key in labels and labels[expr.key] in values:
                return False
        elif expr.operator == "Exists":
            if expr.key not in labels:
                return False
        elif expr.operator == "DoesNotExist":
            if expr.key in labels:
                return False
        else:
            return False
    return True


class DrainMechanism:
    """One way of clearing workloads off a node."""

    name = "mechanism"

    def __init__(self, kube, wait_duration: timedelta):
        self.kube = kube
        self.wait_duration = wait_duration

    def execute(self, node) -> str:
        raise NotImplementedError


class PdbPodDeletion(DrainMechanism):
    """Deletes pods whose PodDisruptionBudget blocks eviction."""

    name = "pdb-pod-deletion"

    def execute(self, node) -> str:
        node_name = node.metadata.name
        pdbs = self.kube.list_pod_disruption_budgets()
        deleted = []
        for pod in self.kube.list_pods_on_node(node_name):
            if _is_daemonset_pod(pod) or pod.metadata.deletion_timestamp:
                continue
            covered = any(
                pdb.metadata.namespace == pod.metadata.namespace
                and selector_matches(pdb.spec.selector, pod.metadata.labels)
                for pdb in pdbs
            )
            if not covered:
                continue
            self.kube.delete_pod(pod.metadata.namespace, pod.metadata.name)
            deleted.append(f"{pod.metadata.namespace}/{pod.metadata.name}")

        if deleted:
            logger.info(f"Deleted PDB-protected pods on {node_name}: {', '.join(deleted)}")
        return f"deleted {len(deleted)} PDB-protected pod(s)"


class StuckTerminatingPodRemoval(DrainMechanism):
    """Force-deletes pods stuck in Terminating."""

    name = "stuck-terminating-pod-removal"

    def execute(self, node) -> str:
        node_name = node.metadata.name
        removed = []
        for pod in self.kube.list_pods_on_node(node_name):
            if not pod.metadata.deletion_timestamp or _is_daemonset_pod(pod):
                continue
            self.kube.delete_pod(
                pod.metadata.namespace, pod.metadata.name, grace_period_seconds=0
            )
            removed.append(f"{pod.metadata.namespace}/{pod.metadata.name}")

        if removed:
            logger.info(
                f"Force-deleted terminating pods on {node_name}: {', '.join(removed)}"
            )
        return f"force-deleted {len(removed)} terminating pod(s)"


class NodeDrainStrategy:
    """Time-boxed drain of a single cordoned node."""

    def __init__(
        self,
        node,
        drain_config: DrainConfig,
        cordoned_at: datetime,
        mechanisms: List[DrainMechanism],
    ):
        self.node = node
        self.drain_config = drain_config
        self.cordoned_at = _aware(cordoned_at)
        self.mechanisms = mechanisms

    def elapsed(self) -> timedelta:
        return utcnow() - self.cordoned_at

    def failure_deadline(self) -> datetime:
        return self.cordoned_at + self.drain_config.timeout_duration()

    def next_checkpoint(self) -> datetime:
        """Earliest future point at which re-running the strategy changes anything."""
        now = utcnow()
        points = [self.failure_deadline()]
        points.extend(
            self.cordoned_at + m.wait_duration
            for m in self.mechanisms
            if self.cordoned_at + m.wait_duration > now
        )
        return min(points)

    def execute(self) -> List[DrainStrategyResult]:
        """
        Run every mechanism that is due, in order.

        Returns:
            One DrainStrategyResult per mechanism attempted
        """
        node_name = self.node.metadata.name
        elapsed = self.elapsed()
        results: List[DrainStrategyResult] = []

        for mechanism in self.mechanisms:
            if elapsed < mechanism.wait_duration:
                logger.debug(
                    f"{mechanism.name} not due for {node_name} "
                    f"({elapsed} < {mechanism.wait_duration})"
                )
                continue
            try:
                message = mechanism.execute(self.node)
                results.append(DrainStrategyResult(strategy=mechanism.name, message=message))
            except Exception as e:
                logger.warning(f"{mechanism.name} failed on {node_name}: {e}")
                results.append(
                    DrainStrategyResult(
                        strategy=mechanism.name, message="failed", error=str(e)
                    )
                )
        return results

    def has_failed(self, results: List[DrainStrategyResult]) -> bool:
        """
        Whether the drain breached its time budget.

        Results are accepted for interface symmetry only; a mechanism error
        is expected while pods are still leaving and is not a failure.
        """
        failed = self.elapsed() > self.drain_config.timeout_duration()
        if failed:
            errors = [r.strategy for r in results if r.error]
            logger.error(
                f"Node {self.node.metadata.name} not drained within "
                f"{self.drain_config.timeout} minutes"
                + (f" (mechanism errors: {', '.join(errors)})" if errors else "")
            )
        return failed


class NodeDrainStrategyBuilder:
    """Builds the default drain strategy for a node."""

    def __init__(self, kube):
        self.kube = kube

    def new_node_drain_strategy(
        self, node, drain_config: DrainConfig, cordoned_at: datetime
    ) -> NodeDrainStrategy:
        wait = drain_config.expected_drain_duration()
        mechanisms: List[DrainMechanism] = [
            PdbPodDeletion(self.kube, wait),
            StuckTerminatingPodRemoval(self.kube, wait),
        ]
        return NodeDrainStrategy(node, drain_config, cordoned_at, mechanisms)
