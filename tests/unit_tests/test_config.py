"""
Unit tests for configuration.
"""

import os
import unittest
from argparse import Namespace
from datetime import timedelta
from unittest.mock import MagicMock, patch

from kubernetes.client import V1ConfigMap

from config import (
    DEFAULT_NAMESPACE,
    ConfigManager,
    DrainConfig,
    NodeKeeperConfig,
    OperatorConfig,
)
from exceptions import ConfigError, NotFoundError

CONFIG_YAML = """
upgradeWindow:
  delayTrigger: 30
nodeDrain:
  timeOut: 45
  expectedNodeDrainTime: 8
"""


def make_args(**overrides):
    args = dict(
        namespace=None,
        kubeconfig=None,
        config_map="managed-upgrade-operator-config",
        workers=2,
        sync_period=300,
        metrics_port=8383,
        prometheus_url=None,
        ocm_url=None,
        cluster_id=None,
        verbose=False,
    )
    args.update(overrides)
    return Namespace(**args)


class TestOperatorConfig(unittest.TestCase):
    """Test OperatorConfig data model."""

    def test_config_defaults(self):
        config = OperatorConfig()
        self.assertEqual(config.namespace, DEFAULT_NAMESPACE)
        self.assertEqual(config.workers, 2)
        self.assertEqual(config.sync_period, 300)
        self.assertEqual(config.metrics_port, 8383)
        self.assertIsNone(config.ocm_url)
        self.assertFalse(config.verbose)

    @patch.dict(os.environ, {"OPERATOR_NAMESPACE": "muo", "OCM_TOKEN": "secret"})
    def test_config_from_args_uses_environment(self):
        config = OperatorConfig.from_args(make_args(verbose=True, workers=4))

        self.assertEqual(config.namespace, "muo")
        self.assertEqual(config.ocm_token, "secret")
        self.assertEqual(config.workers, 4)
        self.assertTrue(config.verbose)

    @patch.dict(os.environ, {"OPERATOR_NAMESPACE": "muo"})
    def test_namespace_argument_wins(self):
        config = OperatorConfig.from_args(make_args(namespace="explicit"))
        self.assertEqual(config.namespace, "explicit")


class TestDrainConfig(unittest.TestCase):
    def test_durations(self):
        cfg = DrainConfig(timeout=5, expected_node_drain_time=8)
        self.assertEqual(cfg.timeout_duration(), timedelta(minutes=5))
        self.assertEqual(cfg.expected_drain_duration(), timedelta(minutes=8))

    def test_validate_rejects_zero_timeout(self):
        with self.assertRaises(ConfigError):
            DrainConfig(timeout=0).validate()

    def test_load_rejects_non_integer(self):
        with self.assertRaises(ConfigError):
            DrainConfig().load({"timeOut": "soon"})


class TestConfigManager(unittest.TestCase):
    """Test loading typed config from the operator config map."""

    def setUp(self):
        self.kube = MagicMock()
        self.manager = ConfigManager(self.kube, "muo", "muo-config")

    def test_into_populates_node_keeper_config(self):
        self.kube.get_config_map.return_value = V1ConfigMap(data={"config.yaml": CONFIG_YAML})

        cfg = self.manager.into(NodeKeeperConfig())

        self.kube.get_config_map.assert_called_once_with("muo", "muo-config")
        self.assertEqual(cfg.node_drain.timeout, 45)
        self.assertEqual(cfg.node_drain.expected_node_drain_time, 8)

    def test_missing_config_map(self):
        self.kube.get_config_map.side_effect = NotFoundError("missing", status=404)
        with self.assertRaises(ConfigError):
            self.manager.into(NodeKeeperConfig())

    def test_missing_key(self):
        self.kube.get_config_map.return_value = V1ConfigMap(data={"other.yaml": ""})
        with self.assertRaises(ConfigError):
            self.manager.into(NodeKeeperConfig())

    def test_invalid_yaml(self):
        self.kube.get_config_map.return_value = V1ConfigMap(
            data={"config.yaml": "nodeDrain: [unclosed"}
        )
        with self.assertRaises(ConfigError):
            self.manager.into(NodeKeeperConfig())

    def test_missing_node_drain_section(self):
        self.kube.get_config_map.return_value = V1ConfigMap(
            data={"config.yaml": "upgradeWindow:\n  delayTrigger: 30\n"}
        )
        with self.assertRaises(ConfigError):
            self.manager.into(NodeKeeperConfig())


if __name__ == "__main__":
    unittest.main()
