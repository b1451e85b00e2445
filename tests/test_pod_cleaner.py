import threading

from fakes import FakePodClient, make_pod, sample
from pod_janitor.kubernetes_client import TransportError
from pod_janitor.models import PodPhase, Scope
from pod_janitor.pod_cleaner import PodCleaner
from pod_janitor.rules import DEFAULT_RULES, get_rule


def test_scenario_deletes_evicted_and_crash_looping(fake_client):
    report = PodCleaner(fake_client).run_cleanup()

    assert fake_client.deleted() == ["p1", "p3"]
    assert [(o.name, o.rule) for o in report.outcomes] == [
        ("p1", "evicted"),
        ("p3", "crash-loop-backoff"),
    ]
    assert report.deleted_count == 2
    assert report.failed_count == 0
    assert ("a", "p2") in fake_client.pods


def test_each_rule_fetches_its_own_snapshot(fake_client):
    PodCleaner(fake_client, scope=Scope(namespace="a")).run_cleanup()
    assert fake_client.list_calls == [Scope(namespace="a")] * len(DEFAULT_RULES)


def test_apply_rule_counts_attempts(fake_client):
    cleaner = PodCleaner(fake_client)
    assert cleaner.apply_rule(get_rule("crash-loop-backoff")) == 1
    assert cleaner.apply_rule(get_rule("image-pull-error")) == 0


def test_delete_failure_does_not_stop_rule():
    client = FakePodClient([
        make_pod("f1", phase=PodPhase.FAILED, reason="Error"),
        make_pod("f2", phase=PodPhase.FAILED, reason="Error"),
        make_pod("f3", phase=PodPhase.FAILED),
    ])
    client.delete_errors[("default", "f2")] = TransportError("forbidden", status=403)
    cleaner = PodCleaner(client)

    report = cleaner.run_cleanup()

    assert client.deleted() == ["f1", "f2", "f3"]
    failed = [o for o in report.outcomes if not o.succeeded]
    assert [(o.name, o.rule) for o in failed] == [("f2", "failed")]
    assert "forbidden" in failed[0].error_detail
    assert sample(cleaner.metrics, "pod_janitor_delete_failures_total", "failed") == 1
    assert sample(cleaner.metrics, "pod_janitor_pods_deleted_total", "failed") == 2


def test_list_failure_abandons_rule_but_not_pass(fake_client):
    fake_client.list_error = TransportError("connection refused")
    cleaner = PodCleaner(fake_client)

    report = cleaner.run_cleanup()

    assert fake_client.delete_calls == []
    assert set(report.list_failures) == {rule.name for rule in DEFAULT_RULES}
    assert len(fake_client.list_calls) == len(DEFAULT_RULES)
    assert sample(cleaner.metrics, "pod_janitor_list_failures_total", "evicted") == 1


def test_second_pass_against_unchanged_listing_only_hits_not_found(fake_client):
    fake_client.sticky = True
    cleaner = PodCleaner(fake_client)

    first = cleaner.run_cleanup()
    second = cleaner.run_cleanup()

    assert first.deleted_count == 2
    assert second.deleted_count == 0
    assert second.failed_count == 2
    assert all("not found" in o.error_detail for o in second.outcomes)


def test_second_pass_after_removal_issues_no_deletes(fake_client):
    cleaner = PodCleaner(fake_client)
    cleaner.run_cleanup()
    fake_client.delete_calls.clear()

    report = cleaner.run_cleanup()

    assert fake_client.delete_calls == []
    assert report.outcomes == []


def test_pod_matching_two_rules_second_delete_is_not_found():
    client = FakePodClient([
        make_pod("odd", phase=PodPhase.FAILED, reason="Error", waiting=["CrashLoopBackOff"]),
    ])
    report = PodCleaner(client).run_cleanup()

    assert client.deleted() == ["odd"]
    assert [(o.rule, o.succeeded) for o in report.outcomes] == [("crash-loop-backoff", True)]


def test_overlap_with_stale_listing_logs_failure_and_continues():
    client = FakePodClient([
        make_pod("odd", phase=PodPhase.FAILED, reason="Error", waiting=["CrashLoopBackOff"]),
    ])
    client.sticky = True
    report = PodCleaner(client).run_cleanup()

    assert client.deleted() == ["odd", "odd"]
    assert [(o.rule, o.succeeded) for o in report.outcomes] == [
        ("crash-loop-backoff", True),
        ("failed", False),
    ]


def test_label_selector_narrows_listing_before_classification():
    client = FakePodClient([
        make_pod("web-evicted", namespace="a", phase=PodPhase.FAILED, reason="Evicted",
                 labels={"app": "web"}),
        make_pod("db-evicted", namespace="b", phase=PodPhase.FAILED, reason="Evicted",
                 labels={"app": "db"}),
    ])
    PodCleaner(client, scope=Scope(label_selector="app=web")).run_cleanup()

    assert client.deleted() == ["web-evicted"]
    assert all(scope.label_selector == "app=web" for scope in client.list_calls)


def test_empty_scope_covers_all_namespaces():
    client = FakePodClient([
        make_pod("x", namespace="a", phase=PodPhase.FAILED),
        make_pod("y", namespace="b", phase=PodPhase.FAILED),
    ])
    PodCleaner(client).run_cleanup()
    assert sorted(client.delete_calls) == [("a", "x"), ("b", "y")]


def test_namespace_scope_leaves_other_namespaces_alone():
    client = FakePodClient([
        make_pod("x", namespace="a", phase=PodPhase.FAILED),
        make_pod("y", namespace="b", phase=PodPhase.FAILED),
    ])
    PodCleaner(client, scope=Scope(namespace="b")).run_cleanup()
    assert client.delete_calls == [("b", "y")]


def test_dry_run_issues_no_deletes(fake_client):
    report = PodCleaner(fake_client, dry_run=True).run_cleanup()

    assert fake_client.delete_calls == []
    assert [o.name for o in report.outcomes] == ["p1", "p3"]
    assert all(o.dry_run and o.succeeded for o in report.outcomes)


def test_parallel_rules_report_in_rule_order(fake_client):
    report = PodCleaner(fake_client, parallel_rules=True).run_cleanup()

    assert [r.rule for r in report.results] == [rule.name for rule in DEFAULT_RULES]
    assert sorted(fake_client.deleted()) == ["p1", "p3"]
    assert report.attempted_count("evicted") == 1
    assert report.attempted_count("crash-loop-backoff") == 1


def test_reentrant_pass_is_skipped():
    nested = []

    class ReentrantClient(FakePodClient):
        def list_pods(self, scope):
            if not nested:
                nested.append(cleaner.run_cleanup())
            return super().list_pods(scope)

    client = ReentrantClient([make_pod("f", phase=PodPhase.FAILED)])
    cleaner = PodCleaner(client)

    report = cleaner.run_cleanup()

    assert nested == [None]
    assert report is not None
    assert client.deleted() == ["f"]
    assert cleaner.is_running is False


def test_concurrent_pass_from_another_thread_is_skipped():
    entered = threading.Event()
    release = threading.Event()

    class SlowClient(FakePodClient):
        def list_pods(self, scope):
            entered.set()
            release.wait(5)
            return super().list_pods(scope)

    cleaner = PodCleaner(SlowClient())
    worker = threading.Thread(target=cleaner.run_cleanup)
    worker.start()
    try:
        assert entered.wait(5)
        assert cleaner.run_cleanup() is None
    finally:
        release.set()
        worker.join(5)

    assert cleaner.run_cleanup() is not None


def test_snapshot_items_are_not_mutated(scenario_pods, fake_client):
    before = list(scenario_pods)
    PodCleaner(fake_client).run_cleanup()
    assert scenario_pods == before


def _pod_events(entries):
    return [
        (e["event"], e["log_level"], e["rule"], e["namespace"], e["pod_name"])
        for e in entries if "pod_name" in e
    ]


def test_deletions_are_logged_per_rule_and_pod(captured_logs, fake_client):
    PodCleaner(fake_client).run_cleanup()

    assert _pod_events(captured_logs) == [
        ("Deleted pod", "info", "evicted", "a", "p1"),
        ("Deleted pod", "info", "crash-loop-backoff", "a", "p3"),
    ]


def test_not_found_delete_logged_as_warning(captured_logs):
    client = FakePodClient([make_pod("x", phase=PodPhase.FAILED, reason="Evicted")])
    client.sticky = True
    cleaner = PodCleaner(client)

    cleaner.run_cleanup()
    cleaner.run_cleanup()

    assert _pod_events(captured_logs) == [
        ("Deleted pod", "info", "evicted", "default", "x"),
        ("Pod already removed", "warning", "evicted", "default", "x"),
    ]


def test_rejected_delete_logged_as_error(captured_logs):
    client = FakePodClient([make_pod("locked", phase=PodPhase.FAILED, reason="Error")])
    client.delete_errors[("default", "locked")] = TransportError("forbidden", status=403)

    PodCleaner(client).run_cleanup()

    errors = [e for e in captured_logs if e["event"] == "Error deleting pod"]
    assert len(errors) == 1
    assert errors[0]["log_level"] == "error"
    assert errors[0]["rule"] == "failed"
    assert errors[0]["pod_name"] == "locked"
    assert "forbidden" in errors[0]["error"]


def test_list_failure_logged_with_rule_and_scope(captured_logs, fake_client):
    fake_client.list_error = TransportError("connection refused")

    PodCleaner(fake_client, scope=Scope(namespace="a")).run_cleanup()

    failures = [e for e in captured_logs if e["event"] == "Error listing pods"]
    assert [e["rule"] for e in failures] == [rule.name for rule in DEFAULT_RULES]
    assert all(e["log_level"] == "error" and e["scope"] == "a" for e in failures)


def test_dry_run_logs_would_delete(captured_logs, fake_client):
    PodCleaner(fake_client, dry_run=True).run_cleanup()

    assert [e[:3] for e in _pod_events(captured_logs)] == [
        ("Would delete pod", "info", "evicted"),
        ("Would delete pod", "info", "crash-loop-backoff"),
    ]


def test_unexpected_listing_error_only_abandons_that_rule(fake_client):
    calls = []

    class FlakyClient(FakePodClient):
        def list_pods(self, scope):
            calls.append(scope)
            if len(calls) == 1:
                raise ValueError("Invalid value for `phase`")
            return super().list_pods(scope)

    client = FlakyClient(fake_client.pods.values())
    report = PodCleaner(client).run_cleanup()

    assert report.list_failures == {"evicted": "Invalid value for `phase`"}
    assert client.deleted() == ["p3"]
    assert len(calls) == len(DEFAULT_RULES)


def test_unexpected_delete_error_does_not_stop_rule():
    class BrokenDeleteClient(FakePodClient):
        def delete_pod(self, namespace, name):
            if name == "f1":
                self.delete_calls.append((namespace, name))
                raise RuntimeError("connection pool closed")
            super().delete_pod(namespace, name)

    client = BrokenDeleteClient([
        make_pod("f1", phase=PodPhase.FAILED),
        make_pod("f2", phase=PodPhase.FAILED),
    ])
    report = PodCleaner(client).run_cleanup()

    assert client.deleted() == ["f1", "f2"]
    assert [(o.name, o.succeeded) for o in report.outcomes] == [("f1", False), ("f2", True)]
    assert "connection pool closed" in report.outcomes[0].error_detail
