"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes for testing:
- An App Store stub served through httpx.MockTransport
- verifyReceipt response bodies
- Receipt clients wired to the stub
"""

import os
from collections.abc import Callable
from typing import Any

import httpx
import pytest

# Set environment variables BEFORE importing app modules
os.environ.setdefault("APPSTORE_PRODUCTION", "false")
os.environ.setdefault("LOG_FORMAT", "console")

from appstore_receipts.config import PRODUCTION_URL, SANDBOX_URL
from appstore_receipts.services.receipt_verifier import AppStoreReceiptClient

RECEIPT_B64 = "MIIT0QYJKoZIhvcNAQcCoIITwjCCE74CAQExCzAJBgUrDgMCGgUAMIIDcgYJKoZIhvcNAQcB"

# ============================================================================
# App Store Stub
# ============================================================================


class AppStoreStub:
    """
    Fake verifyReceipt endpoints.

    Responses are queued per URL and consumed in order. Every request that
    reaches the stub is recorded.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, list[httpx.Response]] = {}
        self._errors: dict[str, Exception] = {}

    def respond(
        self,
        url: str,
        json_body: Any | None = None,
        status_code: int = 200,
        content: bytes | None = None,
    ) -> None:
        """Queue a response for a URL."""
        if content is not None:
            response = httpx.Response(status_code, content=content)
        else:
            response = httpx.Response(status_code, json=json_body)
        self._responses.setdefault(url, []).append(response)

    def fail(self, url: str, error: Exception) -> None:
        """Make every request to a URL raise an httpx error."""
        self._errors[url] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self._errors:
            raise self._errors[url]
        return self._responses[url].pop(0)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def appstore() -> AppStoreStub:
    """Fresh App Store stub."""
    return AppStoreStub()


@pytest.fixture
def sandbox_client(appstore: AppStoreStub) -> AppStoreReceiptClient:
    """Non-production client: retries 21007 receipts against sandbox."""
    return AppStoreReceiptClient(is_production=False, http_client=appstore.http_client())


@pytest.fixture
def production_client(appstore: AppStoreStub) -> AppStoreReceiptClient:
    """Production client: never calls sandbox."""
    return AppStoreReceiptClient(is_production=True, http_client=appstore.http_client())


# ============================================================================
# Response Body Fixtures
# ============================================================================


def receipt_body(
    status: int = 0,
    transaction_ids: list[str] | None = None,
    environment: str | None = "Production",
) -> dict[str, Any]:
    """Build a verifyReceipt response body."""
    body: dict[str, Any] = {"status": status}
    if environment is not None:
        body["environment"] = environment
    if transaction_ids is not None:
        body["receipt"] = {
            "receipt_type": environment or "Production",
            "bundle_id": "com.example.app",
            "in_app": [
                {
                    "transaction_id": tx_id,
                    "original_transaction_id": tx_id,
                    "product_id": f"com.example.app.coins_{i}",
                    "quantity": "1",
                    "purchase_date_ms": "1700000000000",
                }
                for i, tx_id in enumerate(transaction_ids)
            ],
        }
    return body


@pytest.fixture
def make_receipt_body() -> Callable[..., dict[str, Any]]:
    """Factory for verifyReceipt response bodies."""
    return receipt_body


@pytest.fixture
def receipt_data() -> str:
    """Base64 receipt as sent by the app."""
    return RECEIPT_B64


@pytest.fixture
def production_url() -> str:
    return PRODUCTION_URL


@pytest.fixture
def sandbox_url() -> str:
    return SANDBOX_URL
