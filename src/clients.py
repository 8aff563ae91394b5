"""
API clients for the Managed Upgrade Node Keeper.

KubeClient wraps the Kubernetes API calls the operator needs, and RestClient
is the shared HTTP session used by the Prometheus and OCM integrations.
"""

import logging
import time
from typing import Dict, List, Optional

import requests
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from exceptions import KubernetesError

logger = logging.getLogger(__name__)


class KubeClient:
    """Thin wrapper over the Kubernetes Python client."""

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        api_client: Optional[client.ApiClient] = None,
    ):
        """
        Initialize the Kubernetes client.

        In-cluster configuration is tried first, then the kubeconfig file.

        Args:
            kubeconfig: Optional path to a kubeconfig file
            api_client: Pre-built ApiClient (skips configuration loading)
        """
        if api_client is None:
            try:
                config.load_incluster_config()
                logger.info("Loaded in-cluster configuration")
            except config.ConfigException:
                config.load_kube_config(config_file=kubeconfig)
                logger.info("Loaded kubeconfig configuration")
            api_client = client.ApiClient()

        self.core_v1 = client.CoreV1Api(api_client)
        self.policy_v1 = client.PolicyV1Api(api_client)
        self.custom_objects = client.CustomObjectsApi(api_client)

    def get_node(self, name: str) -> client.V1Node:
        try:
            return self.core_v1.read_node(name)
        except ApiException as e:
            raise KubernetesError.from_api_exception(f"Get node {name}", e) from e

    def list_nodes(self) -> List[client.V1Node]:
        try:
            return self.core_v1.list_node().items
        except ApiException as e:
            raise KubernetesError.from_api_exception("List nodes", e) from e

    def list_pods_on_node(self, node_name: str) -> List[client.V1Pod]:
        """
        List pods scheduled on a node, across all namespaces.

        Args:
            node_name: Node name

        Returns:
            List of V1Pod objects
        """
        try:
            return self.core_v1.list_pod_for_all_namespaces(
                field_selector=f"spec.nodeName={node_name}"
            ).items
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                f"List pods on node {node_name}", e
            ) from e

    def delete_pod(
        self, namespace: str, name: str, grace_period_seconds: Optional[int] = None
    ) -> None:
        body = client.V1DeleteOptions(grace_period_seconds=grace_period_seconds)
        try:
            self.core_v1.delete_namespaced_pod(
                name=name,
                namespace=namespace,
                body=body,
                grace_period_seconds=grace_period_seconds,
            )
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"Pod {namespace}/{name} already gone")
                return
            raise KubernetesError.from_api_exception(
                f"Delete pod {namespace}/{name}", e
            ) from e

    def list_pod_disruption_budgets(self) -> List[client.V1PodDisruptionBudget]:
        try:
            return self.policy_v1.list_pod_disruption_budget_for_all_namespaces().items
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                "List pod disruption budgets", e
            ) from e

    def get_config_map(self, namespace: str, name: str) -> client.V1ConfigMap:
        try:
            return self.core_v1.read_namespaced_config_map(name, namespace)
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                f"Get config map {namespace}/{name}", e
            ) from e

    def get_cluster_custom_object(
        self, group: str, version: str, plural: str, name: str
    ) -> Dict:
        try:
            return self.custom_objects.get_cluster_custom_object(
                group, version, plural, name
            )
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                f"Get {plural}/{name}", e
            ) from e

    def list_namespaced_custom_objects(
        self, group: str, version: str, namespace: str, plural: str
    ) -> List[Dict]:
        try:
            data = self.custom_objects.list_namespaced_custom_object(
                group, version, namespace, plural
            )
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                f"List {plural} in {namespace}", e
            ) from e
        return data.get("items", [])

    def replace_namespaced_custom_object_status(
        self, group: str, version: str, namespace: str, plural: str, body: Dict
    ) -> Dict:
        """
        Replace the status subresource of a namespaced custom object.

        The body must carry metadata.resourceVersion; the API server rejects
        the write with 409 when the object changed since it was read.

        Raises:
            ConflictError: If the resourceVersion is stale
            KubernetesError: For any other API failure
        """
        name = body["metadata"]["name"]
        try:
            return self.custom_objects.replace_namespaced_custom_object_status(
                group, version, namespace, plural, name, body
            )
        except ApiException as e:
            raise KubernetesError.from_api_exception(
                f"Update status of {plural}/{name}", e
            ) from e


class RestClient:
    """HTTP session with bearer auth and retry for transient errors."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_s: int = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        verify: bool = True,
    ):
        """
        Initialize the REST client.

        Args:
            base_url: Base URL of the service
            token: Optional bearer token
            timeout_s: Request timeout in seconds
            max_retries: Maximum number of retries for transient errors
            base_delay: Base delay for exponential backoff
            verify: Verify TLS certificates
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay

        self.session = requests.Session()
        self.session.verify = verify
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        """Construct full URL from path."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def request_with_retry(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Execute HTTP request with exponential backoff retry for transient errors.

        Args:
            method: HTTP method (GET, POST)
            path: Request path relative to the base URL
            **kwargs: Additional request parameters

        Returns:
            The final response (may still be a non-retryable error status)

        Raises:
            RuntimeError: If max retries exceeded
        """
        url = self._url(path)
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                resp = self.session.request(
                    method.upper(), url, timeout=self.timeout_s, **kwargs
                )
            except requests.RequestException as e:
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = str(e)
                time.sleep(delay)
                continue

            if resp.status_code in self.RETRYABLE_STATUS_CODES:
                delay = self._calculate_delay(attempt, resp)
                logger.warning(
                    f"Retryable error {resp.status_code}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = f"HTTP {resp.status_code}: {resp.text[:200]}"
                time.sleep(delay)
                continue

            return resp

        raise RuntimeError(f"Max retries exceeded. Last error: {last_error}")

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        return min(self.base_delay * (2**attempt), 30.0)
