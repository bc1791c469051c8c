"""
Metrics Collection with Prometheus.

Exposes HTTP and receipt verification metrics for monitoring.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

from appstore_receipts.config import settings


class ReceiptMetrics:
    """
    Centralized metrics for the receipt verification API.

    Covers:
    - HTTP requests (rate, duration, in progress)
    - Receipt verifications (rate by outcome, duration)
    - App Store round trips (rate by endpoint environment)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "receipts_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "receipts_http_requests_total",
            "Total HTTP requests",
            ["endpoint", "method", "status_code"],
        )

        self.http_request_duration_seconds = Histogram(
            "receipts_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["endpoint", "method"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "receipts_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            ["endpoint", "method"],
        )

        # ====================================================================
        # Verification Metrics
        # ====================================================================
        self.verifications_total = Counter(
            "receipts_verifications_total",
            "Total receipt verifications by outcome",
            ["outcome"],
        )

        self.verification_duration_seconds = Histogram(
            "receipts_verification_duration_seconds",
            "Receipt verification duration in seconds, App Store round trips included",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
        )

        self.appstore_requests_total = Counter(
            "receipts_appstore_requests_total",
            "Total POSTs sent to verifyReceipt",
            ["environment"],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_verification(self, outcome: str, duration: float) -> None:
        """Record a finished verification ("verified" or an error kind / class name)."""
        self.verifications_total.labels(outcome=outcome).inc()
        self.verification_duration_seconds.observe(duration)

    def record_appstore_request(self, environment: str) -> None:
        """Record one POST to a verifyReceipt endpoint."""
        self.appstore_requests_total.labels(environment=environment).inc()


# Global metrics instance
metrics = ReceiptMetrics()
