#!/usr/bin/env python3
"""
Pod Janitor - Main Application
"""

import argparse
import sys
from typing import Tuple

import structlog

from pod_janitor.config import CLEANUP_INTERVAL_SECONDS, Config
from pod_janitor.kubernetes_client import ConfigurationError, KubernetesClient, TransportError
from pod_janitor.logger import CleanupLogger, setup_logging
from pod_janitor.metrics import CleanupMetrics
from pod_janitor.pod_cleaner import PodCleaner
from pod_janitor.scheduler import Scheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pod-janitor",
        description="Periodically delete evicted, crash-looping, image-pull-failing and failed pods",
    )
    parser.add_argument("--kubeconfig", help="Path to the kubeconfig file")
    parser.add_argument("--namespace",
                        help="Namespace to clean up (leave empty for all namespaces)")
    parser.add_argument("--label-selector", dest="label_selector",
                        help="Label selector to filter pods (leave empty for all pods)")
    parser.add_argument("--in-cluster", dest="in_cluster", action="store_true", default=None,
                        help="Use the service account of the pod this runs in")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", default=None,
                        help="Log the pods that would be deleted without deleting them")
    parser.add_argument("--parallel-rules", dest="parallel_rules", action="store_true",
                        default=None, help="Run the cleanup rules concurrently")
    parser.add_argument("--metrics-port", dest="metrics_port", type=int,
                        help="Serve Prometheus metrics on this port (0 disables)")
    parser.add_argument("--log-level", dest="log_level")
    parser.add_argument("--log-format", dest="log_format", choices=["json", "console"])
    parser.add_argument("--once", action="store_true",
                        help="Run a single cleanup pass and exit")
    return parser


def load_config(argv=None) -> Tuple[Config, argparse.Namespace]:
    """Environment first, then command-line flags that were actually given"""
    args = build_parser().parse_args(argv)
    cfg = Config()
    if args.kubeconfig is not None:
        cfg.kube_config_path = args.kubeconfig
    for name in ("namespace", "label_selector", "in_cluster", "dry_run", "parallel_rules",
                 "metrics_port", "log_level", "log_format"):
        value = getattr(args, name)
        if value is not None:
            setattr(cfg, name, value)
    return cfg, args


def main(argv=None) -> int:
    """Main application entry point"""
    cfg, args = load_config(argv)
    setup_logging(cfg.log_level, cfg.log_format)
    logger = structlog.get_logger("main")
    CleanupLogger().log_startup(cfg.as_dict())

    try:
        client = KubernetesClient.from_config(
            cfg.kube_config_path,
            in_cluster=cfg.in_cluster,
            request_timeout_seconds=cfg.request_timeout_seconds,
        )
        client.verify_connection()
    except (ConfigurationError, TransportError) as e:
        logger.error("Failed to initialize Kubernetes client", error=str(e))
        return 1

    metrics = CleanupMetrics()
    if cfg.metrics_port:
        metrics.serve(cfg.metrics_port)

    cleaner = PodCleaner(
        client,
        scope=cfg.scope,
        dry_run=cfg.dry_run,
        parallel_rules=cfg.parallel_rules,
        metrics=metrics,
    )

    if args.once:
        logger.info("Running a single cleanup pass")
        cleaner.run_cleanup()
        return 0

    scheduler = Scheduler(cleaner.run_cleanup, interval_seconds=CLEANUP_INTERVAL_SECONDS)
    logger.info("Starting cleanup loop", interval_seconds=CLEANUP_INTERVAL_SECONDS)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        scheduler.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
