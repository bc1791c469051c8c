"""
HTTP transport for the verifyReceipt endpoints.

Wraps a single POST over httpx and separates transport failures from
App Store server failures.
"""

import httpx
from structlog import get_logger

from appstore_receipts.exceptions import AppStoreServerError, ReceiptTransportError

logger = get_logger(__name__)

CONTENT_TYPE = "application/json; charset=utf-8"


class ReceiptTransport:
    """POSTs serialized receipt requests and returns raw response bytes."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client

    async def post(self, url: str, body: bytes) -> bytes:
        """
        POST a JSON body to a verifyReceipt URL.

        Cancelling the calling task aborts the request; the CancelledError is
        not wrapped.

        Args:
            url: Target endpoint
            body: Serialized request body

        Returns:
            Raw response body for any status below 500

        Raises:
            AppStoreServerError: If the App Store answered with a 5xx status
            ReceiptTransportError: If no response was received
        """
        try:
            async with self._http_client.stream(
                "POST",
                url,
                content=body,
                headers={"Content-Type": CONTENT_TYPE},
            ) as response:
                logger.debug(
                    "appstore_response_received",
                    url=url,
                    status=response.status_code,
                )
                # 5xx bodies carry no status envelope, leave them unread
                if response.status_code >= 500:
                    raise AppStoreServerError(response.status_code)
                return await response.aread()

        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ReceiptTransportError(url, str(exc) or type(exc).__name__) from exc
