import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Optional, Sequence

from pod_janitor.kubernetes_client import PodClient, TransportError
from pod_janitor.logger import CleanupLogger
from pod_janitor.metrics import CleanupMetrics
from pod_janitor.models import CleanupReport, DeletionOutcome, RuleResult, Scope
from pod_janitor.rules import DEFAULT_RULES, CleanupRule


class PodCleaner:
    """Runs every cleanup rule against a fresh pod listing, once per pass.

    Rules never share a snapshot: each one lists pods itself, so a pod
    removed by an earlier rule may still be listed by a later one and its
    second delete fails as not found. Deletion failures are logged and the
    rule moves on to the next pod; a listing failure abandons that rule
    until the next pass. Nothing is retried within a pass.
    """

    def __init__(self, client: PodClient, scope: Scope = Scope(),
                 rules: Sequence[CleanupRule] = DEFAULT_RULES, dry_run: bool = False,
                 parallel_rules: bool = False, metrics: Optional[CleanupMetrics] = None):
        self.client = client
        self.scope = scope
        self.rules = tuple(rules)
        self.dry_run = dry_run
        self.parallel_rules = parallel_rules
        self.metrics = metrics if metrics is not None else CleanupMetrics()
        self.log = CleanupLogger()
        self.lock = Lock()
        self.is_running = False

    def apply_rule(self, rule: CleanupRule) -> int:
        """Run a single rule and return the number of deletions attempted"""
        return self.run_rule(rule).attempted

    def run_rule(self, rule: CleanupRule) -> RuleResult:
        result = RuleResult(rule=rule.name)
        self.log.log_rule_start(rule.name, rule.description)

        try:
            pods = self.client.list_pods(self.scope)
            matching = rule.select(pods)
        except TransportError as e:
            return self._abandon(result, e)
        except Exception as e:
            return self._abandon(result, e, unexpected=True)

        for pod in matching:
            result.outcomes.append(self._delete(rule, pod.namespace, pod.name))

        return result

    def _abandon(self, result: RuleResult, error: Exception,
                 unexpected: bool = False) -> RuleResult:
        self.log.log_list_failed(result.rule, str(self.scope), error, exc_info=unexpected)
        self.metrics.record_list_failure(result.rule)
        result.list_error = str(error)
        return result

    def _delete(self, rule: CleanupRule, namespace: str, name: str) -> DeletionOutcome:
        if self.dry_run:
            self.log.log_pod_deleted(rule.name, namespace, name, dry_run=True)
            return DeletionOutcome(namespace, name, rule.name, succeeded=True, dry_run=True)

        try:
            self.client.delete_pod(namespace, name)
        except Exception as e:
            if isinstance(e, TransportError) and e.not_found:
                self.log.log_pod_already_gone(rule.name, namespace, name)
            else:
                self.log.log_delete_failed(rule.name, namespace, name, e,
                                           exc_info=not isinstance(e, TransportError))
            self.metrics.record_delete_failure(rule.name)
            return DeletionOutcome(namespace, name, rule.name, succeeded=False,
                                   error_detail=str(e))

        self.log.log_pod_deleted(rule.name, namespace, name)
        self.metrics.record_deleted(rule.name)
        return DeletionOutcome(namespace, name, rule.name, succeeded=True)

    def run_cleanup(self) -> Optional[CleanupReport]:
        """Run one cleanup pass; returns None if a pass is already running"""
        with self.lock:
            if self.is_running:
                self.log.log_pass_skipped()
                return None
            self.is_running = True

        try:
            start_time = time.monotonic()
            report = CleanupReport(cycle_id=uuid.uuid4().hex[:8])
            self.log.log_cycle_start(report.cycle_id, str(self.scope))

            if self.parallel_rules and len(self.rules) > 1:
                with ThreadPoolExecutor(max_workers=len(self.rules),
                                        thread_name_prefix="cleanup-rule") as pool:
                    report.results = list(pool.map(self.run_rule, self.rules))
            else:
                report.results = [self.run_rule(rule) for rule in self.rules]

            duration = time.monotonic() - start_time
            self.metrics.observe_pass(duration)
            self.log.log_cycle_end(
                report.cycle_id,
                deleted=report.deleted_count,
                failed=report.failed_count,
                list_failures=len(report.list_failures),
                duration=duration,
            )
            return report
        finally:
            with self.lock:
                self.is_running = False
