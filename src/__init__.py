"""
Managed Upgrade Node Keeper.
"""

from clients import KubeClient, RestClient
from config import ConfigManager, DrainConfig, NodeKeeperConfig, OperatorConfig
from drain import NodeDrainStrategy, NodeDrainStrategyBuilder
from eventmanager import EventManager
from log_utils import setup_logging
from machinery import Machinery
from metrics import MetricsSink, PrometheusClient
from models import (
    DrainStrategyResult,
    NodeDrainStatus,
    NotificationEvent,
    NotifyState,
    ReconcileResult,
    UpgradePhase,
    UpgradeRecord,
)
from nodekeeper import NodeKeeperReconciler
from notifier import LogNotifier, OcmNotifier
from upgradeconfig import UpgradeConfigManager

__all__ = [
    "KubeClient",
    "RestClient",
    "ConfigManager",
    "DrainConfig",
    "NodeKeeperConfig",
    "OperatorConfig",
    "NodeDrainStrategy",
    "NodeDrainStrategyBuilder",
    "EventManager",
    "setup_logging",
    "Machinery",
    "MetricsSink",
    "PrometheusClient",
    "DrainStrategyResult",
    "NodeDrainStatus",
    "NotificationEvent",
    "NotifyState",
    "ReconcileResult",
    "UpgradePhase",
    "UpgradeRecord",
    "NodeKeeperReconciler",
    "LogNotifier",
    "OcmNotifier",
    "UpgradeConfigManager",
]
