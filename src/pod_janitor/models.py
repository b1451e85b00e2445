"""
Snapshot and outcome types shared by the fetcher and the cleanup rules
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple


class PodPhase:
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ContainerStatus:
    """Waiting reason of one container; None unless it is in a waiting state"""

    name: str = ""
    waiting_reason: Optional[str] = None

    @classmethod
    def from_v1_container_status(cls, status) -> "ContainerStatus":
        state = status.state
        waiting = state.waiting if state else None
        return cls(
            name=status.name or "",
            waiting_reason=waiting.reason if waiting else None,
        )


@dataclass(frozen=True)
class PodSnapshotItem:
    """Read-only view of one pod at fetch time"""

    namespace: str
    name: str
    phase: str = ""
    phase_reason: str = ""
    container_statuses: Tuple[ContainerStatus, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_v1_pod(cls, pod) -> "PodSnapshotItem":
        """Build a snapshot from a kubernetes ``V1Pod``"""
        metadata = pod.metadata
        status = pod.status
        statuses = (status.container_statuses or []) if status else []
        return cls(
            namespace=metadata.namespace or "",
            name=metadata.name,
            phase=(status.phase if status else None) or "",
            phase_reason=(status.reason if status else None) or "",
            container_statuses=tuple(
                ContainerStatus.from_v1_container_status(s) for s in statuses
            ),
            labels=dict(metadata.labels or {}),
        )


@dataclass(frozen=True)
class Scope:
    """Namespace and label selector every rule lists pods with"""

    namespace: str = ""
    label_selector: str = ""

    @property
    def all_namespaces(self) -> bool:
        return not self.namespace

    def __str__(self) -> str:
        namespace = self.namespace or "<all namespaces>"
        if self.label_selector:
            return f"{namespace} ({self.label_selector})"
        return namespace


@dataclass(frozen=True)
class DeletionOutcome:
    namespace: str
    name: str
    rule: str
    succeeded: bool
    error_detail: Optional[str] = None
    dry_run: bool = False


@dataclass
class RuleResult:
    """What one rule did during one pass"""

    rule: str
    outcomes: List[DeletionOutcome] = field(default_factory=list)
    list_error: Optional[str] = None

    @property
    def attempted(self) -> int:
        return len(self.outcomes)


@dataclass
class CleanupReport:
    """Per-pass aggregate of rule results; discarded after the pass is logged"""

    cycle_id: str
    results: List[RuleResult] = field(default_factory=list)

    @property
    def outcomes(self) -> List[DeletionOutcome]:
        return [outcome for result in self.results for outcome in result.outcomes]

    @property
    def deleted_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def list_failures(self) -> Dict[str, str]:
        return {r.rule: r.list_error for r in self.results if r.list_error}

    def attempted_count(self, rule: str) -> int:
        return sum(r.attempted for r in self.results if r.rule == rule)
