"""
Unit tests for CLI module.
"""

import unittest
from unittest.mock import MagicMock, patch

from cli import build_parser, main
from exceptions import UpgradeConfigNotFound


class TestCLI(unittest.TestCase):
    """Test CLI argument parsing and entry point."""

    def test_build_parser_defaults(self):
        args = build_parser().parse_args([])

        self.assertIsNone(args.command)
        self.assertIsNone(args.namespace)
        self.assertEqual(args.config_map, "managed-upgrade-operator-config")
        self.assertEqual(args.workers, 2)
        self.assertEqual(args.metrics_port, 8383)

    def test_parser_with_notify(self):
        args = build_parser().parse_args(
            ["--namespace", "muo", "--ocm-url", "https://api", "notify", "completed"]
        )
        self.assertEqual(args.command, "notify")
        self.assertEqual(args.state, "completed")
        self.assertEqual(args.namespace, "muo")

    def test_parser_rejects_unknown_state(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args(["notify", "exploded"])

    @patch("cli.setup_logging")
    @patch("cli.run_controller", return_value=0)
    @patch("cli.KubeClient")
    def test_main_runs_controller_by_default(self, mock_kube, mock_run, mock_logging):
        rc = main(["--workers", "3"])

        self.assertEqual(rc, 0)
        config = mock_run.call_args[0][0]
        self.assertEqual(config.workers, 3)
        mock_kube.assert_called_once_with(kubeconfig=None)

    @patch("cli.setup_logging")
    @patch("cli.EventManager")
    @patch("cli.KubeClient")
    def test_main_notify(self, mock_kube, mock_manager_cls, mock_logging):
        rc = main(["notify", "started"])

        self.assertEqual(rc, 0)
        mock_manager_cls.return_value.notify.assert_called_once_with("started")

    @patch("cli.setup_logging")
    @patch("cli.EventManager")
    @patch("cli.KubeClient")
    def test_main_notify_operator_error_exit_code(
        self, mock_kube, mock_manager_cls, mock_logging
    ):
        mock_manager_cls.return_value.notify.side_effect = UpgradeConfigNotFound("none")
        self.assertEqual(main(["notify", "started"]), 1)

    @patch("cli.setup_logging")
    @patch("cli.PrometheusClient")
    def test_main_check_alert(self, mock_prom_cls, mock_logging):
        prom = MagicMock()
        prom.is_alert_firing.return_value = True
        mock_prom_cls.from_url.return_value = prom

        rc = main(
            [
                "--prometheus-url",
                "https://prometheus",
                "check-alert",
                "KubeNodeNotReady",
                "--namespaces",
                "openshift-.*",
            ]
        )

        self.assertEqual(rc, 1)
        prom.is_alert_firing.assert_called_once_with(
            "KubeNodeNotReady", ["openshift-.*"], []
        )

    @patch("cli.setup_logging")
    def test_check_alert_requires_prometheus_url(self, mock_logging):
        with self.assertRaises(SystemExit):
            main(["check-alert", "Watchdog"])


if __name__ == "__main__":
    unittest.main()
