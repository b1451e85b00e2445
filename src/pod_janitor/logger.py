"""
Logging configuration for Pod Janitor
"""

import logging
import sys
from typing import Any, Dict

import structlog
from colorama import init as colorama_init

from pod_janitor import __version__

# Initialize colorama for cross-platform colored output
colorama_init()


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Setup structured logging for the application"""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_format == "json"
            else structlog.dev.ConsoleRenderer(colors=True)
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Suppress verbose kubernetes client logs
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


class CleanupLogger:
    """Specialized logger for cleanup passes"""

    def __init__(self, name: str = "pod-janitor"):
        self.logger = get_logger(name)

    def log_startup(self, config_dict: Dict[str, Any]) -> None:
        self.logger.info("Pod Janitor starting up", version=__version__, config=config_dict)

    def log_cycle_start(self, cycle_id: str, scope: str) -> None:
        self.logger.info("Starting cleanup pass", cycle_id=cycle_id, scope=scope)

    def log_cycle_end(self, cycle_id: str, deleted: int, failed: int,
                      list_failures: int, duration: float) -> None:
        self.logger.info(
            "Cleanup pass completed",
            cycle_id=cycle_id,
            deleted_pods=deleted,
            failed_deletions=failed,
            failed_listings=list_failures,
            duration_seconds=round(duration, 3),
        )

    def log_pass_skipped(self) -> None:
        self.logger.info("Previous run still in progress, skipping...")

    def log_rule_start(self, rule: str, description: str) -> None:
        self.logger.info(f"Cleaning up {description}...", rule=rule)

    def log_pod_deleted(self, rule: str, namespace: str, pod_name: str,
                        dry_run: bool = False) -> None:
        """Log when a pod was deleted, or would have been in dry-run mode"""
        self.logger.info(
            "Would delete pod" if dry_run else "Deleted pod",
            rule=rule,
            namespace=namespace,
            pod_name=pod_name,
        )

    def log_pod_already_gone(self, rule: str, namespace: str, pod_name: str) -> None:
        self.logger.warning(
            "Pod already removed",
            rule=rule,
            namespace=namespace,
            pod_name=pod_name,
        )

    def log_delete_failed(self, rule: str, namespace: str, pod_name: str,
                          error: Exception, exc_info: bool = False) -> None:
        self.logger.error(
            "Error deleting pod",
            rule=rule,
            namespace=namespace,
            pod_name=pod_name,
            error=str(error),
            error_type=type(error).__name__,
            exc_info=exc_info,
        )

    def log_list_failed(self, rule: str, scope: str, error: Exception,
                        exc_info: bool = False) -> None:
        self.logger.error(
            "Error listing pods",
            rule=rule,
            scope=scope,
            error=str(error),
            error_type=type(error).__name__,
            exc_info=exc_info,
        )
