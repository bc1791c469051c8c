"""
verifyReceipt status interpretation.

Maps the numeric "status" of a verifyReceipt response to a typed error.
https://developer.apple.com/documentation/appstorereceipts/status
"""

from types import MappingProxyType

from appstore_receipts.exceptions import ReceiptStatusError
from appstore_receipts.models.receipts import ReceiptErrorKind

STATUS_OK = 0
STATUS_SANDBOX_RECEIPT = 21007

# Codes in this range are all internal data access errors
INTERNAL_DATA_ACCESS_RANGE = range(21100, 21200)

STATUS_KINDS = MappingProxyType(
    {
        21000: ReceiptErrorKind.INVALID_JSON,
        21002: ReceiptErrorKind.INVALID_RECEIPT_DATA,
        21003: ReceiptErrorKind.RECEIPT_UNAUTHENTICATED,
        21004: ReceiptErrorKind.INVALID_SHARED_SECRET,
        21005: ReceiptErrorKind.SERVER_UNAVAILABLE,
        21007: ReceiptErrorKind.RECEIPT_IS_FOR_TEST,
        21008: ReceiptErrorKind.RECEIPT_IS_FOR_PRODUCTION,
        21009: ReceiptErrorKind.INTERNAL_DATA_ACCESS_ERROR,
        21010: ReceiptErrorKind.RECEIPT_UNAUTHORIZED,
    }
)


def classify_status(status: int) -> ReceiptErrorKind | None:
    """Return the error kind for a status, or None for success."""
    if status == STATUS_OK:
        return None
    kind = STATUS_KINDS.get(status)
    if kind is not None:
        return kind
    if status in INTERNAL_DATA_ACCESS_RANGE:
        return ReceiptErrorKind.INTERNAL_DATA_ACCESS_ERROR
    return ReceiptErrorKind.UNKNOWN


def status_error(status: int) -> ReceiptStatusError | None:
    """
    Build the error for a verifyReceipt status.

    Returns:
        None when status is 0, otherwise a ReceiptStatusError carrying the
        kind and the original numeric status.
    """
    kind = classify_status(status)
    if kind is None:
        return None
    return ReceiptStatusError(status, kind)
