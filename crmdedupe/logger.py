"""
Structured logging system for crmdedupe.

Provides centralized logging with console and optional file output,
plus run metrics for monitoring API usage and merge health.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for API calls, merges and run outcomes.
    """

    def __init__(
        self,
        name: str = "crmdedupe",
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
        self.logger.handlers.clear()  # Remove existing handlers

        # Metrics tracking
        self.metrics = {
            "api_calls": 0,
            "searches": 0,
            "rate_limited": 0,
            "merges_attempted": 0,
            "merges_successful": 0,
            "merges_failed": 0,
            "merges_skipped": 0,
            "runs_by_status": {},
        }

        # Console handler
        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"crmdedupe_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def set_level(self, level: str):
        """Change the level of the logger and its console handler."""
        self.logger.setLevel(getattr(logging, level.upper()))
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(getattr(logging, level.upper()))

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
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_api_call(self):
        """Increment API call counter."""
        self.metrics["api_calls"] += 1

    def record_search(self):
        """Increment candidate search counter."""
        self.metrics["searches"] += 1

    def record_rate_limit(self):
        """Record a throttled response from the store."""
        self.metrics["rate_limited"] += 1

    def record_merge_attempt(self):
        self.metrics["merges_attempted"] += 1

    def record_merge_success(self):
        self.metrics["merges_successful"] += 1

    def record_merge_failure(self):
        self.metrics["merges_failed"] += 1

    def record_merge_skip(self):
        self.metrics["merges_skipped"] += 1

    def record_run(self, status: str):
        """Record the final status of a resolution run."""
        runs = self.metrics["runs_by_status"]
        runs[status] = runs.get(status, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        metrics_copy["runs_by_status"] = dict(self.metrics["runs_by_status"])
        attempted = metrics_copy["merges_attempted"]
        if attempted > 0:
            metrics_copy["merge_success_rate"] = round(
                metrics_copy["merges_successful"] / attempted, 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        attempted = metrics["merges_attempted"]
        successful = metrics["merges_successful"]
        rate = metrics.get("merge_success_rate", 0) * 100

        self.info("=== Dedupe Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']} (searches: {metrics['searches']})")
        self.info(f"Rate limited responses: {metrics['rate_limited']}")
        self.info(f"Merges: {successful}/{attempted} ({rate:.1f}% success)")
        self.info(f"Skipped merge targets: {metrics['merges_skipped']}")

        if metrics["runs_by_status"]:
            self.info("Runs by status:")
            for status, count in metrics["runs_by_status"].items():
                self.info(f"  {status}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "crmdedupe",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    File logging is enabled only when CRMDEDUPE_LOG_DIR is set, unless
    enable_file/log_dir are passed explicitly.

    Args:
        name: Logger name
        level: Log level; defaults to CRMDEDUPE_LOG_LEVEL or INFO
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if level is None:
            level = os.getenv("CRMDEDUPE_LOG_LEVEL", "INFO")
        log_dir = os.getenv("CRMDEDUPE_LOG_DIR")
        kwargs.setdefault("enable_file", bool(log_dir) or "log_dir" in kwargs)
        if log_dir:
            kwargs.setdefault("log_dir", Path(log_dir))
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
