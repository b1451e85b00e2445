import os
from typing import List, Optional, Protocol

import structlog
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from pod_janitor.models import PodSnapshotItem, Scope

logger = structlog.get_logger(__name__)

_TRANSPORT_EXCEPTIONS = (ApiException, HTTPError, OSError)


class TransportError(Exception):
    """Listing or deleting pods failed: connectivity, auth or API rejection"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404

    @classmethod
    def from_exception(cls, action: str, error: Exception) -> "TransportError":
        if isinstance(error, ApiException):
            return cls(f"{action}: {error.status} {error.reason}", status=error.status)
        return cls(f"{action}: {error}")


class ConfigurationError(Exception):
    """No usable cluster configuration could be loaded"""


class PodClient(Protocol):
    """Capability the cleanup rules need from a cluster"""

    def list_pods(self, scope: Scope) -> List[PodSnapshotItem]:
        ...

    def delete_pod(self, namespace: str, name: str) -> None:
        ...


def load_cluster_config(kube_config_path: Optional[str] = None,
                        in_cluster: bool = False) -> None:
    """Load credentials into the kubernetes client's global configuration"""
    if in_cluster:
        try:
            config.load_incluster_config()
        except ConfigException as e:
            raise ConfigurationError(f"In-cluster configuration unavailable: {e}") from e
        logger.info("Loaded in-cluster Kubernetes configuration")
        return

    # An explicitly given kubeconfig never falls back to other credentials
    if kube_config_path:
        if not os.path.exists(kube_config_path):
            raise ConfigurationError(f"Kubeconfig {kube_config_path} does not exist")
        try:
            config.load_kube_config(config_file=kube_config_path)
        except ConfigException as e:
            raise ConfigurationError(f"Invalid kubeconfig {kube_config_path}: {e}") from e
        logger.info("Loaded kubeconfig", path=kube_config_path)
        return

    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
        return
    except ConfigException:
        logger.debug("Not running inside a cluster, trying default kubeconfig")

    try:
        config.load_kube_config()
        logger.info("Loaded kubeconfig from default location")
    except (ConfigException, OSError) as e:
        raise ConfigurationError(
            "Could not load Kubernetes configuration. "
            "Pass --kubeconfig, set KUBECONFIG or run inside a cluster"
        ) from e


class KubernetesClient:
    """Snapshot fetcher and pod deleter backed by the CoreV1 API"""

    def __init__(self, v1: Optional[client.CoreV1Api] = None,
                 request_timeout_seconds: Optional[float] = 30):
        self.v1 = v1 if v1 is not None else client.CoreV1Api()
        self.request_timeout = request_timeout_seconds

    @classmethod
    def from_config(cls, kube_config_path: Optional[str] = None, in_cluster: bool = False,
                    request_timeout_seconds: Optional[float] = 30) -> "KubernetesClient":
        load_cluster_config(kube_config_path, in_cluster)
        return cls(request_timeout_seconds=request_timeout_seconds)

    def _call_options(self) -> dict:
        if self.request_timeout:
            return {"_request_timeout": self.request_timeout}
        return {}

    def list_pods(self, scope: Scope) -> List[PodSnapshotItem]:
        """List pods visible to the scope; label selection happens server side"""
        kwargs = self._call_options()
        if scope.label_selector:
            kwargs["label_selector"] = scope.label_selector

        try:
            if scope.all_namespaces:
                pods = self.v1.list_pod_for_all_namespaces(watch=False, **kwargs)
            else:
                pods = self.v1.list_namespaced_pod(scope.namespace, watch=False, **kwargs)
        except _TRANSPORT_EXCEPTIONS as e:
            raise TransportError.from_exception(f"listing pods in {scope}", e) from e

        return [PodSnapshotItem.from_v1_pod(pod) for pod in pods.items]

    def delete_pod(self, namespace: str, name: str) -> None:
        try:
            self.v1.delete_namespaced_pod(
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(),
                **self._call_options()
            )
        except _TRANSPORT_EXCEPTIONS as e:
            raise TransportError.from_exception(f"deleting pod {namespace}/{name}", e) from e

    def verify_connection(self) -> None:
        """Raise TransportError if the API server cannot be reached"""
        try:
            self.v1.get_api_resources(**self._call_options())
        except _TRANSPORT_EXCEPTIONS as e:
            raise TransportError.from_exception("connecting to the API server", e) from e
        logger.info("Kubernetes client initialized successfully")
