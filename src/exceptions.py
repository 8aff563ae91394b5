"""
Exception types for the Managed Upgrade Node Keeper.
"""

from typing import Optional


class UpgradeOperatorError(Exception):
    """Base class for all operator errors."""


class KubernetesError(UpgradeOperatorError):
    """Kubernetes API call failed."""

    def __init__(self, message: str, status: Optional[int] = None, reason: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason

    @classmethod
    def from_api_exception(cls, action: str, e) -> "KubernetesError":
        """
        Wrap an ApiException into the matching KubernetesError subclass.

        Args:
            action: Human readable description of the failed call
            e: kubernetes.client.rest.ApiException

        Returns:
            KubernetesError, NotFoundError or ConflictError
        """
        status = getattr(e, "status", None)
        reason = getattr(e, "reason", "") or ""
        message = f"{action} failed ({status}): {reason}"
        if status == 404:
            return NotFoundError(message, status=status, reason=reason)
        if status == 409:
            return ConflictError(message, status=status, reason=reason)
        return KubernetesError(message, status=status, reason=reason)


class NotFoundError(KubernetesError):
    """Requested object does not exist."""


class ConflictError(KubernetesError):
    """Write rejected because the object changed since it was read."""


class UpgradeConfigNotFound(UpgradeOperatorError):
    """No UpgradeConfig exists in the operator namespace."""


class MultipleUpgradeConfigsFound(UpgradeOperatorError):
    """More than one UpgradeConfig exists in the operator namespace."""


class ConfigError(UpgradeOperatorError):
    """Operator configuration could not be resolved."""


class NotifierError(UpgradeOperatorError):
    """Notification could not be delivered."""


class MetricsError(UpgradeOperatorError):
    """Prometheus query failed."""


class InvalidUpgradeConfig(UpgradeOperatorError):
    """UpgradeConfig holds a value the operator cannot interpret."""
