"""
Unit tests for KubeClient and RestClient.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests
from kubernetes.client.rest import ApiException

from clients import KubeClient, RestClient
from exceptions import ConflictError, KubernetesError, NotFoundError


class TestKubeClient(unittest.TestCase):
    """Test Kubernetes API wrapping and error translation."""

    def setUp(self):
        self.client = KubeClient(api_client=MagicMock())
        self.client.core_v1 = MagicMock()
        self.client.policy_v1 = MagicMock()
        self.client.custom_objects = MagicMock()

    @patch("clients.client.ApiClient")
    @patch("clients.config.load_kube_config")
    @patch("clients.config.load_incluster_config")
    def test_falls_back_to_kubeconfig(self, mock_incluster, mock_kubeconfig, mock_api):
        from kubernetes import config

        mock_incluster.side_effect = config.ConfigException("not in cluster")

        KubeClient(kubeconfig="/tmp/kubeconfig")

        mock_kubeconfig.assert_called_once_with(config_file="/tmp/kubeconfig")

    def test_get_node_not_found(self):
        self.client.core_v1.read_node.side_effect = ApiException(status=404, reason="Not Found")

        with self.assertRaises(NotFoundError) as ctx:
            self.client.get_node("worker-1")
        self.assertEqual(ctx.exception.status, 404)

    def test_list_pods_on_node_uses_field_selector(self):
        self.client.core_v1.list_pod_for_all_namespaces.return_value = MagicMock(items=["p"])

        pods = self.client.list_pods_on_node("worker-1")

        self.assertEqual(pods, ["p"])
        self.client.core_v1.list_pod_for_all_namespaces.assert_called_once_with(
            field_selector="spec.nodeName=worker-1"
        )

    def test_delete_pod_ignores_missing_pod(self):
        self.client.core_v1.delete_namespaced_pod.side_effect = ApiException(status=404)
        self.client.delete_pod("app", "db-0")

    def test_delete_pod_server_error(self):
        self.client.core_v1.delete_namespaced_pod.side_effect = ApiException(status=500)
        with self.assertRaises(KubernetesError):
            self.client.delete_pod("app", "db-0", grace_period_seconds=0)

    def test_status_update_conflict(self):
        self.client.custom_objects.replace_namespaced_custom_object_status.side_effect = (
            ApiException(status=409, reason="Conflict")
        )
        body = {"metadata": {"name": "uc", "resourceVersion": "1"}}

        with self.assertRaises(ConflictError):
            self.client.replace_namespaced_custom_object_status(
                "g", "v1", "ns", "upgradeconfigs", body
            )

    def test_list_namespaced_custom_objects_returns_items(self):
        self.client.custom_objects.list_namespaced_custom_object.return_value = {
            "items": [{"metadata": {"name": "uc"}}]
        }
        items = self.client.list_namespaced_custom_objects("g", "v1", "ns", "p")
        self.assertEqual(len(items), 1)


class TestRestClient(unittest.TestCase):
    """Test RestClient HTTP interactions."""

    def setUp(self):
        self.client = RestClient("https://prometheus.example.com/", token="tok")
        self.client.session = MagicMock()

    def test_bearer_token_header(self):
        client = RestClient("https://example.com", token="abc")
        self.assertEqual(client.session.headers["Authorization"], "Bearer abc")

    def test_url_construction(self):
        self.assertEqual(
            self.client._url("/api/v1/query"),
            "https://prometheus.example.com/api/v1/query",
        )

    @patch("clients.time.sleep")
    def test_retry_on_503(self, mock_sleep):
        failed = MagicMock(status_code=503, headers={}, text="unavailable")
        ok = MagicMock(status_code=200, headers={})
        self.client.session.request.side_effect = [failed, ok]

        resp = self.client.request_with_retry("GET", "/api/v1/query")

        self.assertIs(resp, ok)
        self.assertEqual(self.client.session.request.call_count, 2)
        self.assertTrue(mock_sleep.called)

    @patch("clients.time.sleep")
    def test_max_retries_exceeded(self, mock_sleep):
        self.client.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(RuntimeError):
            self.client.request_with_retry("GET", "/")
        self.assertEqual(self.client.session.request.call_count, self.client.max_retries + 1)

    def test_non_retryable_status_is_returned(self):
        resp = MagicMock(status_code=400, headers={})
        self.client.session.request.return_value = resp

        self.assertIs(self.client.request_with_retry("POST", "/x", json={}), resp)

    def test_calculate_delay_with_retry_after_header(self):
        resp = MagicMock(headers={"Retry-After": "10"})
        self.assertEqual(self.client._calculate_delay(0, resp), 10.0)

    def test_calculate_delay_is_capped(self):
        self.assertEqual(self.client._calculate_delay(10), 30.0)


if __name__ == "__main__":
    unittest.main()
