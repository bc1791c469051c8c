"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from appstore_receipts.models.receipts import ReceiptErrorKind


class ReceiptVerificationError(Exception):
    """Base exception for all receipt verification errors."""

    pass


class ReceiptTransportError(ReceiptVerificationError):
    """Raised when the request never produced an HTTP response (DNS, connect, timeout, bad URL)."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        self.message = message
        super().__init__(f"Transport error calling {url}: {message}")


class AppStoreServerError(ReceiptVerificationError):
    """Raised when the App Store answers with an HTTP 5xx status."""

    def __init__(self, http_status: int) -> None:
        self.http_status = http_status
        super().__init__(f"Received http status code {http_status} from the App Store")


class ReceiptDecodeError(ReceiptVerificationError):
    """Raised when an App Store response body is not the expected JSON shape."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage  # "envelope" or "response"
        self.message = message
        super().__init__(f"Could not decode App Store {stage}: {message}")


class ReceiptStatusError(ReceiptVerificationError):
    """Raised when the App Store reports a nonzero receipt status."""

    def __init__(self, status: int, kind: ReceiptErrorKind) -> None:
        self.status = status
        self.kind = kind
        super().__init__(f"status {status}: {kind.message}")


class TransactionNotFoundError(ReceiptVerificationError):
    """Raised when a valid receipt holds no purchase with the requested transaction id."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction id not found: {transaction_id}")
