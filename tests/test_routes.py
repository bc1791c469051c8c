"""
Tests for API Routes.

Route handlers are called directly with a mocked receipt service, and the
wiring is checked once through the FastAPI test client.
"""

from unittest.mock import AsyncMock

import pytest
import structlog
from fastapi import HTTPException
from fastapi.testclient import TestClient

from appstore_receipts.api.dependencies import get_receipt_service
from appstore_receipts.api.routes import health, verify_receipt
from appstore_receipts.exceptions import (
    AppStoreServerError,
    ReceiptDecodeError,
    ReceiptStatusError,
    ReceiptTransportError,
    ReceiptVerificationError,
    TransactionNotFoundError,
)
from appstore_receipts.main import app
from appstore_receipts.models.api import VerifyReceiptRequest
from appstore_receipts.models.receipts import (
    InAppPurchase,
    Receipt,
    ReceiptErrorKind,
    VerificationResponse,
)


@pytest.fixture
def verified_response() -> VerificationResponse:
    """Response already narrowed to one transaction."""
    return VerificationResponse(
        status=0,
        environment="Sandbox",
        receipt=Receipt(
            bundle_id="com.example.app",
            in_app=[InAppPurchase(transaction_id="T1", product_id="com.example.app.coins")],
        ),
    )


@pytest.fixture
def receipt_service(verified_response: VerificationResponse) -> AsyncMock:
    """Receipt service that verifies successfully."""
    service = AsyncMock()
    service.verify = AsyncMock(return_value=verified_response)
    return service


@pytest.fixture
def verify_request(receipt_data: str) -> VerifyReceiptRequest:
    return VerifyReceiptRequest(receipt_data=receipt_data, transaction_id="T1")


class TestVerifyReceiptRoute:
    """Tests for POST /v1/receipts/verify."""

    @pytest.mark.asyncio
    async def test_success(self, receipt_service: AsyncMock, verify_request, receipt_data):
        """Verified purchases are returned."""
        response = await verify_receipt(verify_request, service=receipt_service)

        receipt_service.verify.assert_awaited_once_with(receipt_data, "T1")
        assert response.status == 0
        assert response.environment == "Sandbox"
        assert response.bundle_id == "com.example.app"
        assert [p.transaction_id for p in response.in_app] == ["T1"]

    @pytest.mark.asyncio
    async def test_transaction_not_found(self, receipt_service: AsyncMock, verify_request):
        """Missing transaction maps to 404."""
        receipt_service.verify.side_effect = TransactionNotFoundError("T1")

        with pytest.raises(HTTPException) as exc_info:
            await verify_receipt(verify_request, service=receipt_service)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_status_error(self, receipt_service: AsyncMock, verify_request):
        """Receipt status errors map to 422 with status and kind."""
        receipt_service.verify.side_effect = ReceiptStatusError(
            21004, ReceiptErrorKind.INVALID_SHARED_SECRET
        )

        with pytest.raises(HTTPException) as exc_info:
            await verify_receipt(verify_request, service=receipt_service)

        assert exc_info.value.status_code == 422
        assert exc_info.value.detail["status"] == 21004
        assert exc_info.value.detail["kind"] == "invalid_shared_secret"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [AppStoreServerError(503), ReceiptDecodeError("envelope", "bad json")],
    )
    async def test_bad_upstream_response(
        self, receipt_service: AsyncMock, verify_request, error: Exception
    ):
        """5xx and unreadable App Store answers map to 502."""
        receipt_service.verify.side_effect = error

        with pytest.raises(HTTPException) as exc_info:
            await verify_receipt(verify_request, service=receipt_service)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error(self, receipt_service: AsyncMock, verify_request):
        """An unreachable App Store maps to 503."""
        receipt_service.verify.side_effect = ReceiptTransportError(
            "https://buy.itunes.apple.com/verifyReceipt", "timed out"
        )

        with pytest.raises(HTTPException) as exc_info:
            await verify_receipt(verify_request, service=receipt_service)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_other_verification_error(self, receipt_service: AsyncMock, verify_request):
        """Unclassified verification failures map to 500."""
        receipt_service.verify.side_effect = ReceiptVerificationError("serialize failed")

        with pytest.raises(HTTPException) as exc_info:
            await verify_receipt(verify_request, service=receipt_service)

        assert exc_info.value.status_code == 500


class TestHealthRoute:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_health(self):
        """Health reports ok and the configured environment."""
        response = await health()

        assert response.status == "ok"
        assert response.environment in ("production", "non_production")


class TestAppWiring:
    """End-to-end checks through the FastAPI test client."""

    @pytest.fixture
    def client(self, receipt_service: AsyncMock):
        app.dependency_overrides[get_receipt_service] = lambda: receipt_service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_verify_endpoint(self, client: TestClient, receipt_data: str):
        """POST /v1/receipts/verify returns the purchases as JSON."""
        response = client.post(
            "/v1/receipts/verify",
            json={"receipt_data": receipt_data, "transaction_id": "T1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["in_app"][0]["transaction_id"] == "T1"
        assert body["bundle_id"] == "com.example.app"

    def test_blank_transaction_id_rejected(self, client: TestClient, receipt_data: str):
        """Request validation rejects a blank transaction id."""
        response = client.post(
            "/v1/receipts/verify",
            json={"receipt_data": receipt_data, "transaction_id": "   "},
        )

        assert response.status_code == 422

    def test_status_error_body(self, client: TestClient, receipt_service: AsyncMock, receipt_data):
        """422 bodies carry the App Store status."""
        receipt_service.verify.side_effect = ReceiptStatusError(
            21007, ReceiptErrorKind.RECEIPT_IS_FOR_TEST
        )

        response = client.post(
            "/v1/receipts/verify",
            json={"receipt_data": receipt_data, "transaction_id": "T1"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["status"] == 21007

    def test_request_id_reaches_verifier_logs(
        self,
        client: TestClient,
        receipt_service: AsyncMock,
        verified_response: VerificationResponse,
        receipt_data: str,
    ):
        """The caller's request id is bound while the receipt is verified and echoed back."""
        seen: dict[str, object] = {}

        async def verify(receipt_data: str, transaction_id: str) -> VerificationResponse:
            seen.update(structlog.contextvars.get_contextvars())
            return verified_response

        receipt_service.verify.side_effect = verify

        response = client.post(
            "/v1/receipts/verify",
            json={"receipt_data": receipt_data, "transaction_id": "T1"},
            headers={"X-Request-ID": "req-42"},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-42"
        assert seen["request_id"] == "req-42"
        assert seen["transaction_id"] == "T1"

    def test_request_id_generated(self, client: TestClient):
        """Requests without an id get a fresh one per request."""
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]

        assert first
        assert first != second

    def test_service_missing_is_503(self, receipt_data: str):
        """Without a configured receipt client the endpoint is unavailable."""
        client = TestClient(app)

        response = client.post(
            "/v1/receipts/verify",
            json={"receipt_data": receipt_data, "transaction_id": "T1"},
        )

        assert response.status_code == 503

    def test_root(self):
        """Root endpoint reports the service."""
        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_metrics(self):
        """Prometheus metrics are exposed."""
        response = TestClient(app).get("/metrics")

        assert response.status_code == 200
        assert "receipts_http_requests_total" in response.text
