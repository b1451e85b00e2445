"""
Cleanup rules

Each rule is a named predicate over a pod snapshot. The executor in
``pod_janitor.pod_cleaner`` runs them all through the same
fetch, filter, delete and log driver, in registration order.
"""

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from pod_janitor.models import PodPhase, PodSnapshotItem

REASON_EVICTED = "Evicted"
WAITING_CRASH_LOOP = "CrashLoopBackOff"
WAITING_IMAGE_PULL = "ImagePullBackOff"

Predicate = Callable[[PodSnapshotItem], bool]


@dataclass(frozen=True)
class CleanupRule:
    name: str
    description: str
    predicate: Predicate

    def matches(self, pod: PodSnapshotItem) -> bool:
        return self.predicate(pod)

    def select(self, pods: Sequence[PodSnapshotItem]) -> List[PodSnapshotItem]:
        return [pod for pod in pods if self.predicate(pod)]


_registry: List[CleanupRule] = []


def register_rule(name: str, description: str) -> Callable[[Predicate], Predicate]:
    """Register the decorated predicate as a cleanup rule"""

    def decorator(predicate: Predicate) -> Predicate:
        if any(rule.name == name for rule in _registry):
            raise ValueError(f"Cleanup rule {name!r} is already registered")
        _registry.append(CleanupRule(name, description, predicate))
        return predicate

    return decorator


def _has_waiting_reason(pod: PodSnapshotItem, reason: str) -> bool:
    return any(s.waiting_reason == reason for s in pod.container_statuses)


@register_rule("evicted", "evicted pods")
def is_evicted(pod: PodSnapshotItem) -> bool:
    return pod.phase == PodPhase.FAILED and pod.phase_reason == REASON_EVICTED


@register_rule("crash-loop-backoff", "pods in CrashLoopBackOff state")
def is_crash_looping(pod: PodSnapshotItem) -> bool:
    return _has_waiting_reason(pod, WAITING_CRASH_LOOP)


@register_rule("image-pull-error", "pods with ImagePullError")
def has_image_pull_error(pod: PodSnapshotItem) -> bool:
    return _has_waiting_reason(pod, WAITING_IMAGE_PULL)


# Evicted pods are left to the evicted rule
@register_rule("failed", "pods in Failed state")
def is_failed(pod: PodSnapshotItem) -> bool:
    return pod.phase == PodPhase.FAILED and pod.phase_reason != REASON_EVICTED


DEFAULT_RULES: Tuple[CleanupRule, ...] = tuple(_registry)


def get_rule(name: str) -> CleanupRule:
    for rule in DEFAULT_RULES:
        if rule.name == name:
            return rule
    raise KeyError(name)


def classify(pod: PodSnapshotItem, rules: Sequence[CleanupRule] = DEFAULT_RULES) -> List[str]:
    """Names of every rule that selects the pod"""
    return [rule.name for rule in rules if rule.matches(pod)]
