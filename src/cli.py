"""Console entry point for the Managed Upgrade Node Keeper."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List

from prometheus_client import start_http_server

from clients import KubeClient
from config import ConfigManager, OperatorConfig
from controller import NodeKeeperController
from drain import NodeDrainStrategyBuilder
from eventmanager import EventManager
from exceptions import UpgradeOperatorError
from log_utils import setup_logging
from machinery import Machinery
from metrics import MetricsSink, PrometheusClient
from models import NotifyState
from nodekeeper import NodeKeeperReconciler
from notifier import new_notifier
from upgradeconfig import UpgradeConfigManager

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Managed upgrade node keeper: node drain watchdog and upgrade notifications"
    )
    parser.add_argument(
        "--namespace",
        help="Operator namespace (default: $OPERATOR_NAMESPACE or openshift-managed-upgrade-operator)",
    )
    parser.add_argument("--kubeconfig", help="Path to kubeconfig when running out of cluster")
    parser.add_argument(
        "--config-map",
        default="managed-upgrade-operator-config",
        help="Operator config map holding config.yaml",
    )
    parser.add_argument("--workers", type=int, default=2)
    parser.add_argument("--sync-period", type=int, default=300, metavar="SECONDS")
    parser.add_argument("--metrics-port", type=int, default=8383)
    parser.add_argument("--prometheus-url", help="Cluster Prometheus base URL")
    parser.add_argument("--ocm-url", help="OpenShift Cluster Manager API base URL")
    parser.add_argument("--cluster-id", help="External cluster ID used for OCM service logs")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run the node keeper controller (default)")
    notify = sub.add_parser("notify", help="Send a lifecycle notification once")
    notify.add_argument("state", choices=[s.value for s in NotifyState])
    alert = sub.add_parser("check-alert", help="Report whether an alert is firing")
    alert.add_argument("alert")
    alert.add_argument("--namespaces", nargs="*", default=[])
    alert.add_argument("--ignore-namespaces", nargs="*", default=[])
    return parser


def _read_token(path: str) -> str | None:
    try:
        with open(path) as f:
            return f.read().strip()
    except OSError:
        logger.debug(f"No token at {path}")
        return None


def run_controller(config: OperatorConfig, kube: KubeClient, sink: MetricsSink) -> int:
    start_http_server(config.metrics_port, registry=sink.registry)
    logger.info(f"Serving metrics on :{config.metrics_port}")

    reconciler = NodeKeeperReconciler(
        kube=kube,
        upgrade_config_manager=UpgradeConfigManager(kube, config.namespace),
        machinery=Machinery(kube),
        config_manager=ConfigManager(kube, config.namespace, config.config_map),
        drain_strategy_builder=NodeDrainStrategyBuilder(kube),
        metrics=sink,
    )
    NodeKeeperController(
        kube, reconciler, workers=config.workers, sync_period=config.sync_period
    ).run()
    return 0


def main(argv: List[str] | None = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(verbose=args.verbose)
    config = OperatorConfig.from_args(args)
    sink = MetricsSink()
    command = args.command or "run"

    try:
        if command == "check-alert":
            if not config.prometheus_url:
                parser.error("check-alert requires --prometheus-url")
            prom = PrometheusClient.from_url(
                sink, config.prometheus_url, _read_token(config.prometheus_token_file)
            )
            firing = prom.is_alert_firing(
                args.alert, args.namespaces, args.ignore_namespaces
            )
            print(f"{args.alert}: {'firing' if firing else 'not firing'}")
            return 1 if firing else 0

        kube = KubeClient(kubeconfig=config.kubeconfig)
        if command == "notify":
            manager = EventManager(
                UpgradeConfigManager(kube, config.namespace), new_notifier(config), sink
            )
            manager.notify(args.state)
            return 0

        return run_controller(config, kube, sink)
    except UpgradeOperatorError as e:
        logger.error(f"{command} failed: {e}")
        return 1


def run() -> None:
    sys.exit(main())
