"""Prometheus metrics collection for the API.

This module defines and manages Prometheus metrics for monitoring
request rates, extractor subprocesses, downloads and errors.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("mediagrab", "mediagrab application information")

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 120.0],
)

# Extractor subprocess metrics
process_runs_total = Counter(
    "extractor_process_runs_total",
    "Total extractor subprocess runs by operation and outcome",
    ["operation", "outcome"],
)

process_duration_seconds = Histogram(
    "extractor_process_duration_seconds",
    "Extractor subprocess duration in seconds",
    ["operation"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

# Download metrics
downloads_total = Counter(
    "downloads_total",
    "Total download operations by route and status",
    ["route", "status"],
)

download_size_bytes = Histogram(
    "download_size_bytes",
    "Downloaded file size in bytes",
    ["route"],
    buckets=[1e6, 10e6, 50e6, 100e6, 250e6, 500e6, 1e9, 2e9],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors by error code and endpoint",
    ["error_code", "endpoint"],
)


class MetricsCollector:
    """Centralized metrics collection and update helper.

    Provides static methods for recording various metrics throughout
    the application in a consistent manner.
    """

    @staticmethod
    def record_request(
        method: str,
        endpoint: str,
        status: int,
        duration: float,
    ) -> None:
        """Record HTTP request metrics.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: Normalized endpoint path.
            status: HTTP response status code.
            duration: Request duration in seconds.
        """
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

    @staticmethod
    def record_process(operation: str, outcome: str, duration: float) -> None:
        """Record one extractor subprocess run.

        Args:
            operation: Operation kind ('metadata', 'video', 'audio', 'version_check').
            outcome: 'success', 'failed', 'timeout' or 'cancelled'.
            duration: Wall time in seconds.
        """
        process_runs_total.labels(operation=operation, outcome=outcome).inc()
        process_duration_seconds.labels(operation=operation).observe(duration)

    @staticmethod
    def record_download(route: str, status: str, size: int = 0) -> None:
        """Record download operation metrics.

        Args:
            route: 'direct' or 'extractor'.
            status: 'success' or 'failed'.
            size: Downloaded file size in bytes.
        """
        downloads_total.labels(route=route, status=status).inc()
        if size > 0:
            download_size_bytes.labels(route=route).observe(size)

    @staticmethod
    def record_error(error_code: str, endpoint: str) -> None:
        """Record an error occurrence."""
        errors_total.labels(error_code=error_code, endpoint=endpoint).inc()


def initialize_metrics(version: str) -> None:
    """Initialize application metrics with version information.

    Should be called during application startup.
    """
    app_info.info({"version": version})
