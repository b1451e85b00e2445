"""
Configuration management for Pod Janitor
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from pod_janitor.models import Scope

# Load environment variables
load_dotenv()

# Tick period of the cleanup loop; not configurable
CLEANUP_INTERVAL_SECONDS = 10


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class Config:
    """Configuration class for Pod Janitor"""

    # Kubernetes configuration
    kube_config_path: Optional[str] = None
    in_cluster: bool = False
    request_timeout_seconds: int = 30

    # Cleanup scope
    namespace: str = ""
    label_selector: str = ""

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"

    # Metrics exposition, 0 disables the HTTP server
    metrics_port: int = 0

    # Execution control
    dry_run: bool = False
    parallel_rules: bool = False

    def __post_init__(self):
        """Override defaults with environment variables if present"""
        # None means no path was given: in-cluster, then the default kubeconfig
        self.kube_config_path = os.getenv("KUBECONFIG") or self.kube_config_path
        self.in_cluster = _env_bool("IN_CLUSTER", self.in_cluster)
        self.request_timeout_seconds = int(
            os.getenv("REQUEST_TIMEOUT_SECONDS", self.request_timeout_seconds)
        )
        self.namespace = os.getenv("NAMESPACE", self.namespace)
        self.label_selector = os.getenv("LABEL_SELECTOR", self.label_selector)
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.log_format = os.getenv("LOG_FORMAT", self.log_format)
        self.metrics_port = int(os.getenv("METRICS_PORT", self.metrics_port))
        self.dry_run = _env_bool("DRY_RUN", self.dry_run)
        self.parallel_rules = _env_bool("PARALLEL_RULES", self.parallel_rules)

    @property
    def scope(self) -> Scope:
        return Scope(namespace=self.namespace, label_selector=self.label_selector)

    def as_dict(self) -> dict:
        return {
            "kube_config_path": self.kube_config_path or "<default>",
            "in_cluster": self.in_cluster,
            "namespace": self.namespace or "<all>",
            "label_selector": self.label_selector,
            "interval_seconds": CLEANUP_INTERVAL_SECONDS,
            "request_timeout_seconds": self.request_timeout_seconds,
            "metrics_port": self.metrics_port,
            "dry_run": self.dry_run,
            "parallel_rules": self.parallel_rules,
        }
