"""
Machine pool and node cordon state queries.
"""

import logging

from models import CordonResult, UpgradingResult

logger = logging.getLogger(__name__)

MCP_GROUP = "machineconfiguration.openshift.io"
MCP_VERSION = "v1"
MCP_PLURAL = "machineconfigpools"

UNSCHEDULABLE_TAINT = "node.kubernetes.io/unschedulable"


class Machinery:
    """Answers whether a machine pool is rolling and whether a node is cordoned."""

    def __init__(self, kube):
        self.kube = kube

    def is_upgrading(self, pool_name: str) -> UpgradingResult:
        """
        Check whether a MachineConfigPool is still rolling out.

        Args:
            pool_name: Pool name, e.g. "worker"

        Returns:
            UpgradingResult

        Raises:
            KubernetesError: If the pool cannot be read
        """
        pool = self.kube.get_cluster_custom_object(
            MCP_GROUP, MCP_VERSION, MCP_PLURAL, pool_name
        )
        status = pool.get("status", {})
        machine_count = int(status.get("machineCount", 0))
        updated = int(status.get("updatedMachineCount", 0))
        result = UpgradingResult(
            is_upgrading=machine_count != updated,
            machine_count=machine_count,
            updated_machine_count=updated,
        )
        logger.debug(
            f"Pool {pool_name}: {updated}/{machine_count} machines updated"
        )
        return result

    def is_node_cordoned(self, node) -> CordonResult:
        """
        Check whether a node is cordoned, and since when.

        The start time comes from the unschedulable taint, which the API
        server stamps when the node is cordoned.

        Args:
            node: V1Node

        Returns:
            CordonResult
        """
        if not (node.spec and node.spec.unschedulable):
            return CordonResult(is_cordoned=False)

        for taint in node.spec.taints or []:
            if taint.key == UNSCHEDULABLE_TAINT and taint.time_added:
                return CordonResult(is_cordoned=True, added_at=taint.time_added)

        return CordonResult(is_cordoned=True)
