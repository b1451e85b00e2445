"""Shared fixtures for the pod janitor tests."""

import pytest

from fakes import FakeClock, FakePodClient, make_pod
from pod_janitor.metrics import CleanupMetrics
from pod_janitor.models import PodPhase


@pytest.fixture
def scenario_pods():
    """Evicted, running and crash-looping pod in one namespace"""
    return [
        make_pod("p1", namespace="a", phase=PodPhase.FAILED, reason="Evicted"),
        make_pod("p2", namespace="a", phase=PodPhase.RUNNING),
        make_pod("p3", namespace="a", phase=PodPhase.RUNNING, waiting=["CrashLoopBackOff"]),
    ]


@pytest.fixture
def fake_client(scenario_pods):
    return FakePodClient(scenario_pods)


@pytest.fixture
def metrics():
    return CleanupMetrics()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def captured_logs():
    """Structured log entries emitted while the test runs"""
    from structlog.testing import capture_logs

    with capture_logs() as entries:
        yield entries
