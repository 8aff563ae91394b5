"""
Configuration management for the Managed Upgrade Node Keeper.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

import yaml

from exceptions import ConfigError, KubernetesError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "openshift-managed-upgrade-operator"
DEFAULT_CONFIG_MAP = "managed-upgrade-operator-config"
CONFIG_MAP_KEY = "config.yaml"


@dataclass
class OperatorConfig:
    """Process-level configuration for the operator."""

    namespace: str = DEFAULT_NAMESPACE
    kubeconfig: Optional[str] = None
    config_map: str = DEFAULT_CONFIG_MAP
    workers: int = 2
    sync_period: int = 300
    metrics_port: int = 8383
    prometheus_url: Optional[str] = None
    prometheus_token_file: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    ocm_url: Optional[str] = None
    ocm_token: Optional[str] = None
    cluster_id: Optional[str] = None
    verbose: bool = False

    @classmethod
    def from_args(cls, args) -> "OperatorConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            OperatorConfig instance
        """
        return cls(
            namespace=args.namespace
            or os.environ.get("OPERATOR_NAMESPACE", DEFAULT_NAMESPACE),
            kubeconfig=args.kubeconfig,
            config_map=args.config_map,
            workers=args.workers,
            sync_period=args.sync_period,
            metrics_port=args.metrics_port,
            prometheus_url=args.prometheus_url,
            ocm_url=args.ocm_url,
            ocm_token=os.environ.get("OCM_TOKEN"),
            cluster_id=args.cluster_id,
            verbose=args.verbose,
        )


@dataclass
class DrainConfig:
    """Node drain time budget, in minutes."""

    timeout: int = 45
    expected_node_drain_time: int = 8

    def timeout_duration(self) -> timedelta:
        return timedelta(minutes=self.timeout)

    def expected_drain_duration(self) -> timedelta:
        return timedelta(minutes=self.expected_node_drain_time)

    def load(self, data: Dict) -> None:
        if "timeOut" in data:
            self.timeout = _as_int(data["timeOut"], "nodeDrain.timeOut")
        if "expectedNodeDrainTime" in data:
            self.expected_node_drain_time = _as_int(
                data["expectedNodeDrainTime"], "nodeDrain.expectedNodeDrainTime"
            )

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigError("nodeDrain.timeOut must be greater than zero")
        if self.expected_node_drain_time < 0:
            raise ConfigError("nodeDrain.expectedNodeDrainTime must not be negative")


@dataclass
class NodeKeeperConfig:
    """Config shape read by the node keeper from the operator config map."""

    node_drain: DrainConfig = field(default_factory=DrainConfig)

    def load(self, data: Dict) -> None:
        node_drain = data.get("nodeDrain")
        if node_drain is None:
            raise ConfigError("nodeDrain section missing from operator config")
        if not isinstance(node_drain, dict):
            raise ConfigError("nodeDrain section must be a mapping")
        self.node_drain.load(node_drain)

    def validate(self) -> None:
        self.node_drain.validate()


def _as_int(value, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}")


class ConfigManager:
    """Resolves typed configuration from the operator config map."""

    def __init__(self, kube, namespace: str, name: str = DEFAULT_CONFIG_MAP):
        """
        Args:
            kube: KubeClient used to read the config map
            namespace: Operator namespace
            name: Config map name
        """
        self.kube = kube
        self.namespace = namespace
        self.name = name

    def _read(self) -> Dict:
        try:
            cm = self.kube.get_config_map(self.namespace, self.name)
        except KubernetesError as e:
            raise ConfigError(
                f"Unable to read config map {self.namespace}/{self.name}: {e}"
            ) from e

        raw = (cm.data or {}).get(CONFIG_MAP_KEY)
        if raw is None:
            raise ConfigError(
                f"Config map {self.namespace}/{self.name} has no {CONFIG_MAP_KEY} key"
            )
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.name}/{CONFIG_MAP_KEY}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{self.name}/{CONFIG_MAP_KEY} must be a mapping")
        return data

    def into(self, target):
        """
        Populate a config shape from the config map.

        Args:
            target: Object exposing load(dict) and validate()

        Returns:
            The populated target

        Raises:
            ConfigError: If the config cannot be read, parsed or validated
        """
        target.load(self._read())
        target.validate()
        logger.debug(f"Loaded {type(target).__name__} from {self.name}: {target}")
        return target
