"""
Access to the cluster's singleton UpgradeConfig.
"""

import logging

from exceptions import MultipleUpgradeConfigsFound, UpgradeConfigNotFound
from models import UpgradeRecord

logger = logging.getLogger(__name__)

GROUP = "upgrade.managed.openshift.io"
VERSION = "v1alpha1"
PLURAL = "upgradeconfigs"


class UpgradeConfigManager:
    """Fetches and persists the UpgradeConfig of the operator namespace."""

    def __init__(self, kube, namespace: str):
        self.kube = kube
        self.namespace = namespace

    def get(self) -> UpgradeRecord:
        """
        Fetch the current UpgradeConfig.

        Always reads from the API server; records are never cached.

        Returns:
            UpgradeRecord

        Raises:
            UpgradeConfigNotFound: If the namespace holds no UpgradeConfig
            MultipleUpgradeConfigsFound: If it holds more than one
            KubernetesError: If the API call fails
        """
        items = self.kube.list_namespaced_custom_objects(
            GROUP, VERSION, self.namespace, PLURAL
        )
        if not items:
            raise UpgradeConfigNotFound(
                f"No UpgradeConfig found in namespace {self.namespace}"
            )
        if len(items) > 1:
            names = ", ".join(i.get("metadata", {}).get("name", "?") for i in items)
            raise MultipleUpgradeConfigsFound(
                f"Expected one UpgradeConfig in {self.namespace}, found: {names}"
            )
        return UpgradeRecord.from_dict(items[0])

    def update_status(self, record: UpgradeRecord) -> None:
        """
        Persist the record's status subresource.

        Raises:
            ConflictError: If the record was modified since it was fetched
            KubernetesError: If the API call fails
        """
        updated = self.kube.replace_namespaced_custom_object_status(
            GROUP, VERSION, record.namespace or self.namespace, PLURAL, record.to_dict()
        )
        new_version = (updated or {}).get("metadata", {}).get("resourceVersion")
        if new_version:
            record.resource_version = new_version
        logger.debug(f"Updated status of UpgradeConfig {record.name}")
