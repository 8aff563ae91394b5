"""
Data models for the Managed Upgrade Node Keeper.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from exceptions import InvalidUpgradeConfig


class UpgradePhase(str, Enum):
    """Upgrade phase of a desired version, as stored in the history."""

    PENDING = "Pending"
    UPGRADING = "Upgrading"
    UPGRADED = "Upgraded"
    FAILED = "Failed"


class NotifyState(str, Enum):
    """Lifecycle states eligible for an external notification."""

    SCHEDULED = "scheduled"
    STARTED = "started"
    DELAYED = "delayed"
    FAILED = "failed"
    COMPLETED = "completed"


@dataclass
class NodeDrainStatus:
    """Drain outcome of the node currently being reconciled."""

    failed: bool = False
    name: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "NodeDrainStatus":
        data = data or {}
        return cls(failed=bool(data.get("failed", False)), name=data.get("name", ""))

    def to_dict(self) -> Dict:
        return {"failed": self.failed, "name": self.name}


@dataclass
class NotificationEvent:
    """Delivery outcome of the last notification, and the state it applies to."""

    sent: bool = False
    failed: bool = False
    state: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "NotificationEvent":
        data = data or {}
        return cls(
            sent=bool(data.get("sent", False)),
            failed=bool(data.get("failed", False)),
            state=data.get("state", ""),
        )

    def to_dict(self) -> Dict:
        return {"sent": self.sent, "failed": self.failed, "state": self.state}


@dataclass
class UpgradeHistory:
    """One entry of the append-only upgrade history."""

    version: str
    phase: UpgradePhase = UpgradePhase.PENDING
    start_time: Optional[str] = None
    complete_time: Optional[str] = None
    # Fields owned by the upgrade phases (conditions, worker times) pass through.
    raw: Dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict) -> "UpgradeHistory":
        phase = data.get("phase") or UpgradePhase.PENDING.value
        try:
            parsed = UpgradePhase(phase)
        except ValueError:
            raise InvalidUpgradeConfig(
                f"Unknown upgrade phase {phase!r} for version {data.get('version')}"
            ) from None
        return cls(
            version=data.get("version", ""),
            phase=parsed,
            start_time=data.get("startTime"),
            complete_time=data.get("completeTime"),
            raw=copy.deepcopy(data),
        )

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = copy.deepcopy(self.raw)
        data["version"] = self.version
        data["phase"] = self.phase.value
        if self.start_time:
            data["startTime"] = self.start_time
        if self.complete_time:
            data["completeTime"] = self.complete_time
        return data


@dataclass
class UpgradeRecord:
    """
    The cluster's singleton UpgradeConfig: upgrade plan and live status.

    The phase is not stored separately; it is the phase of the history
    entry recorded for the desired version.
    """

    name: str
    namespace: str
    desired_version: str = ""
    upgrade_at: str = ""
    resource_version: str = ""
    node_drain: NodeDrainStatus = field(default_factory=NodeDrainStatus)
    notification_event: NotificationEvent = field(default_factory=NotificationEvent)
    history: List[UpgradeHistory] = field(default_factory=list)
    raw: Dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def phase(self) -> UpgradePhase:
        entry = self.get_history(self.desired_version)
        return entry.phase if entry else UpgradePhase.PENDING

    def get_history(self, version: str) -> Optional[UpgradeHistory]:
        for entry in self.history:
            if entry.version == version:
                return entry
        return None

    @classmethod
    def from_dict(cls, obj: Dict) -> "UpgradeRecord":
        """
        Build a record from an UpgradeConfig custom object.

        Args:
            obj: Custom object as returned by the CustomObjectsApi

        Returns:
            UpgradeRecord instance
        """
        metadata = obj.get("metadata", {})
        spec = obj.get("spec", {})
        status = obj.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            resource_version=metadata.get("resourceVersion", ""),
            desired_version=spec.get("desired", {}).get("version", ""),
            upgrade_at=spec.get("upgradeAt", ""),
            node_drain=NodeDrainStatus.from_dict(status.get("nodeDrain")),
            notification_event=NotificationEvent.from_dict(
                status.get("notificationEvent")
            ),
            history=[UpgradeHistory.from_dict(h) for h in status.get("history", [])],
            raw=copy.deepcopy(obj),
        )

    def to_dict(self) -> Dict:
        """Render the record back into a custom object, keeping unknown fields."""
        obj = copy.deepcopy(self.raw)
        metadata = obj.setdefault("metadata", {})
        metadata["name"] = self.name
        metadata["namespace"] = self.namespace
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        spec = obj.setdefault("spec", {})
        spec.setdefault("desired", {})["version"] = self.desired_version
        if self.upgrade_at:
            spec["upgradeAt"] = self.upgrade_at
        status = obj.get("status") or {}
        status["nodeDrain"] = self.node_drain.to_dict()
        status["notificationEvent"] = self.notification_event.to_dict()
        status["history"] = [h.to_dict() for h in self.history]
        obj["status"] = status
        return obj


@dataclass
class CordonResult:
    """Cordon state of a node."""

    is_cordoned: bool
    added_at: Optional[datetime] = None


@dataclass
class UpgradingResult:
    """Rollout state of a machine pool."""

    is_upgrading: bool
    machine_count: int = 0
    updated_machine_count: int = 0


@dataclass
class DrainStrategyResult:
    """Outcome of one drain mechanism attempt."""

    strategy: str
    message: str = ""
    error: Optional[str] = None


@dataclass
class ReconcileResult:
    """Result of one reconciliation. None means no self-scheduled re-check."""

    requeue_after: Optional[timedelta] = None


@dataclass
class AlertResult:
    """A single series of a Prometheus instant query."""

    metric: Dict[str, str] = field(default_factory=dict)
    value: List[Any] = field(default_factory=list)


@dataclass
class AlertResponse:
    """Parsed Prometheus instant-query response."""

    status: str
    result: List[AlertResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> "AlertResponse":
        return cls(
            status=data.get("status", ""),
            result=[
                AlertResult(metric=r.get("metric", {}), value=r.get("value", []))
                for r in data.get("data", {}).get("result", [])
            ],
        )
