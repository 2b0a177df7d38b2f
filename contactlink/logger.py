"""
Structured logging system for contactlink.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring how the identity graph evolves.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks identify outcomes (creations, merges, failures).
    """

    def __init__(
        self,
        name: str = "contactlink",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        # Resolvers on several threads share the global logger
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "identify_calls": 0,
            "primaries_created": 0,
            "secondaries_created": 0,
            "merges": 0,
            "contacts_demoted": 0,
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"contactlink_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_identify(self):
        with self._metrics_lock:
            self.metrics["identify_calls"] += 1

    def record_contact_created(self, link_precedence: str):
        """Record a new contact row by precedence."""
        key = "primaries_created" if link_precedence == "primary" else "secondaries_created"
        with self._metrics_lock:
            self.metrics[key] += 1

    def record_merge(self, demoted: int):
        """Record a merge and how many primaries it demoted."""
        with self._metrics_lock:
            self.metrics["merges"] += 1
            self.metrics["contacts_demoted"] += demoted

    def record_failure(self, error_type: str):
        with self._metrics_lock:
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a copy of current metrics."""
        with self._metrics_lock:
            metrics_copy = self.metrics.copy()
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        metrics_copy["failures"] = sum(metrics_copy["errors_by_type"].values())
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Identity Session Metrics ===")
        self.info(f"Identify calls: {metrics['identify_calls']} ({metrics['failures']} failed)")
        self.info(
            f"Contacts created: {metrics['primaries_created']} primary, "
            f"{metrics['secondaries_created']} secondary"
        )
        self.info(f"Merges: {metrics['merges']} ({metrics['contacts_demoted']} primaries demoted)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


def mask_email(email: Optional[str]) -> Optional[str]:
    """Keep the first character and the domain: alice@x.com -> a***@x.com."""
    if not email:
        return None
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def mask_phone(phone_number: Optional[str]) -> Optional[str]:
    """Keep the last three digits: 5551234 -> ***234."""
    if not phone_number:
        return None
    return f"***{phone_number[-3:]}" if len(phone_number) > 3 else "***"


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "contactlink",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
