"""
App Store receipt verifier.

NO DICTIONARIES - All data uses strongly typed models.

Verifies receipts with the legacy verifyReceipt endpoint and selects the
purchase matching a transaction id.

Apple's documented flow: always verify against production first. A 21007
status means the receipt came from the sandbox; non-production clients then
resend the same body to the sandbox endpoint.
https://developer.apple.com/documentation/storekit/in-app_purchase/original_api_for_in-app_purchase/validating_receipts_with_the_app_store
"""

import time
from types import TracebackType
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from structlog import get_logger

from appstore_receipts.config import PRODUCTION_URL, SANDBOX_URL, Settings
from appstore_receipts.exceptions import (
    ReceiptDecodeError,
    ReceiptStatusError,
    ReceiptVerificationError,
    TransactionNotFoundError,
)
from appstore_receipts.models.receipts import (
    ReceiptClientConfig,
    StatusEnvelope,
    VerificationRequest,
    VerificationResponse,
)
from appstore_receipts.observability.metrics import metrics
from appstore_receipts.services.receipt_status import STATUS_SANDBOX_RECEIPT, status_error
from appstore_receipts.services.receipt_transport import ReceiptTransport

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

ModelT = TypeVar("ModelT", bound=BaseModel)


class ReceiptService(Protocol):
    """Anything that can verify a receipt for one transaction."""

    async def verify(self, receipt_data: str, transaction_id: str) -> VerificationResponse:
        """
        Verify a receipt and select one transaction.

        Raises:
            ReceiptVerificationError: If verification or selection fails
        """
        ...


def select_transaction(
    response: VerificationResponse, transaction_id: str
) -> VerificationResponse:
    """
    Narrow a verified response to the purchases with the given transaction id.

    Matching records keep their original order. The input is not modified.

    Raises:
        TransactionNotFoundError: If no purchase matches
    """
    matches = [p for p in response.receipt.in_app if p.transaction_id == transaction_id]
    if not matches:
        raise TransactionNotFoundError(transaction_id)

    receipt = response.receipt.model_copy(update={"in_app": matches})
    return response.model_copy(update={"receipt": receipt})


def _decode(model: type[ModelT], raw: bytes, stage: str) -> ModelT:
    """Parse a response body into a typed model."""
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise ReceiptDecodeError(stage, str(exc)) from exc


class AppStoreReceiptClient:
    """
    verifyReceipt client.

    Configuration is fixed at construction, so one client can serve
    concurrent callers.

    Usage:
        async with AppStoreReceiptClient(is_production=False) as client:
            response = await client.verify(receipt_b64, transaction_id)
    """

    def __init__(
        self,
        is_production: bool,
        http_client: httpx.AsyncClient | None = None,
        *,
        shared_secret: str | None = None,
        production_url: str = PRODUCTION_URL,
        sandbox_url: str = SANDBOX_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the receipt client.

        Args:
            is_production: Production clients never retry against sandbox
            http_client: Custom httpx client; the caller keeps ownership
            shared_secret: App shared secret, sent as "password"
            production_url: Production verifyReceipt endpoint
            sandbox_url: Sandbox verifyReceipt endpoint
            timeout: Per-request timeout for the internally created client
        """
        self.config = ReceiptClientConfig(
            is_production=is_production,
            production_url=production_url,
            sandbox_url=sandbox_url,
            shared_secret=shared_secret,
        )
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._transport = ReceiptTransport(self._http_client)

        logger.info(
            "appstore_receipt_client_initialized",
            environment=self.config.environment,
            custom_http_client=not self._owns_http_client,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "AppStoreReceiptClient":
        """Build a client from application settings."""
        return cls(
            is_production=settings.appstore_production,
            http_client=http_client,
            shared_secret=settings.appstore_shared_secret,
            production_url=settings.appstore_production_url,
            sandbox_url=settings.appstore_sandbox_url,
            timeout=settings.appstore_timeout_seconds,
        )

    async def verify(self, receipt_data: str, transaction_id: str) -> VerificationResponse:
        """
        Verify a receipt and keep only the purchases for one transaction.

        Args:
            receipt_data: Base64 receipt, sent unmodified
            transaction_id: Transaction to select

        Returns:
            The verified response with receipt.in_app narrowed to the matches

        Raises:
            ReceiptTransportError: If a request got no response
            AppStoreServerError: If the App Store answered 5xx
            ReceiptDecodeError: If a response body is malformed
            ReceiptStatusError: If the receipt status is nonzero
            TransactionNotFoundError: If no purchase matches transaction_id
        """
        start_time = time.time()
        try:
            response = await self._verify(receipt_data, transaction_id)
        except ReceiptStatusError as exc:
            metrics.record_verification(exc.kind.value, time.time() - start_time)
            raise
        except ReceiptVerificationError as exc:
            metrics.record_verification(type(exc).__name__, time.time() - start_time)
            raise

        metrics.record_verification("verified", time.time() - start_time)
        logger.info(
            "receipt_verification_succeeded",
            transaction_id=transaction_id,
            environment=response.environment,
            matches=len(response.receipt.in_app),
        )
        return response

    async def _verify(self, receipt_data: str, transaction_id: str) -> VerificationResponse:
        try:
            body = VerificationRequest(
                receipt_data=receipt_data,
                password=self.config.shared_secret,
            ).to_wire()
        except ValidationError as exc:
            raise ReceiptVerificationError(f"Could not serialize receipt request: {exc}") from exc

        logger.info(
            "receipt_verification_started",
            transaction_id=transaction_id,
            environment=self.config.environment,
        )

        # Production is always tried first, whatever the configured environment
        raw = await self._post(self.config.production_url, body, "production")
        envelope = _decode(StatusEnvelope, raw, "envelope")

        if envelope.status == STATUS_SANDBOX_RECEIPT and not self.config.is_production:
            logger.info("receipt_sandbox_redirect", transaction_id=transaction_id)
            raw = await self._post(self.config.sandbox_url, body, "sandbox")

        result = _decode(VerificationResponse, raw, "response")

        error = status_error(result.status)
        if error is not None:
            raise error

        return select_transaction(result, transaction_id)

    async def _post(self, url: str, body: bytes, environment: str) -> bytes:
        metrics.record_appstore_request(environment)
        return await self._transport.post(url, body)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "AppStoreReceiptClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
