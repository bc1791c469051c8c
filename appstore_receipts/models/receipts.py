"""
App Store receipt models - verifyReceipt wire format and client configuration.

NO DICTIONARIES - All data uses strongly typed models.

The legacy verifyReceipt endpoint accepts a JSON body with the base64 receipt
under "receipt-data" and answers with a numeric "status" plus the decoded
receipt. Field names follow Apple's wire names so bodies decode without
remapping.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from appstore_receipts.config import PRODUCTION_URL, SANDBOX_URL


class ReceiptErrorKind(str, Enum):
    """Failure categories reported through the verifyReceipt status field."""

    INVALID_JSON = "invalid_json"
    INVALID_RECEIPT_DATA = "invalid_receipt_data"
    RECEIPT_UNAUTHENTICATED = "receipt_unauthenticated"
    INVALID_SHARED_SECRET = "invalid_shared_secret"
    SERVER_UNAVAILABLE = "server_unavailable"
    RECEIPT_IS_FOR_TEST = "receipt_is_for_test"
    RECEIPT_IS_FOR_PRODUCTION = "receipt_is_for_production"
    INTERNAL_DATA_ACCESS_ERROR = "internal_data_access_error"
    RECEIPT_UNAUTHORIZED = "receipt_unauthorized"
    UNKNOWN = "unknown"

    @property
    def message(self) -> str:
        """Apple's documented description of this status."""
        return _KIND_MESSAGES[self]


_KIND_MESSAGES: dict[ReceiptErrorKind, str] = {
    ReceiptErrorKind.INVALID_JSON: "The App Store could not read the JSON object you provided.",
    ReceiptErrorKind.INVALID_RECEIPT_DATA: (
        "The data in the receipt-data property was malformed or missing."
    ),
    ReceiptErrorKind.RECEIPT_UNAUTHENTICATED: "The receipt could not be authenticated.",
    ReceiptErrorKind.INVALID_SHARED_SECRET: (
        "The shared secret you provided does not match the shared secret on file for your account."
    ),
    ReceiptErrorKind.SERVER_UNAVAILABLE: "The receipt server is not currently available.",
    ReceiptErrorKind.RECEIPT_IS_FOR_TEST: (
        "This receipt is from the test environment, but it was sent to the production "
        "environment for verification. Send it to the test environment instead."
    ),
    ReceiptErrorKind.RECEIPT_IS_FOR_PRODUCTION: (
        "This receipt is from the production environment, but it was sent to the test "
        "environment for verification. Send it to the production environment instead."
    ),
    ReceiptErrorKind.INTERNAL_DATA_ACCESS_ERROR: "Internal data access error.",
    ReceiptErrorKind.RECEIPT_UNAUTHORIZED: (
        "This receipt could not be authorized. Treat this the same as if a purchase was never made."
    ),
    ReceiptErrorKind.UNKNOWN: "An unknown error occurred.",
}


@dataclass(frozen=True)
class ReceiptClientConfig:
    """Immutable configuration for the verifyReceipt client."""

    is_production: bool  # False: retry 21007 receipts against sandbox
    production_url: str = PRODUCTION_URL
    sandbox_url: str = SANDBOX_URL
    shared_secret: str | None = None  # Only for auto-renewable subscriptions

    @property
    def environment(self) -> str:
        """Configured environment name."""
        return "production" if self.is_production else "non_production"

    def __post_init__(self) -> None:
        """Validate configuration fields."""
        if not self.production_url:
            raise ValueError("Production URL is required")
        if not self.sandbox_url:
            raise ValueError("Sandbox URL is required")
        if self.shared_secret is not None and not self.shared_secret:
            raise ValueError("Shared secret must be non-empty when provided")


class VerificationRequest(BaseModel):
    """Outbound verifyReceipt request body."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    receipt_data: str = Field(..., alias="receipt-data")
    password: str | None = None

    def to_wire(self) -> bytes:
        """Serialize with Apple's field names, dropping unset optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class StatusEnvelope(BaseModel):
    """Partial decode of a verifyReceipt response: the status field only."""

    model_config = ConfigDict(frozen=True)

    status: StrictInt  # "0" and 0.0 are malformed, not statuses


class InAppPurchase(BaseModel):
    """One in-app purchase line item of a receipt."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    original_transaction_id: str | None = None
    product_id: str | None = None
    quantity: str | None = None  # Apple sends numbers as strings here
    purchase_date: str | None = None
    purchase_date_ms: str | None = None
    purchase_date_pst: str | None = None
    original_purchase_date: str | None = None
    original_purchase_date_ms: str | None = None
    original_purchase_date_pst: str | None = None
    cancellation_date_ms: str | None = None
    cancellation_reason: str | None = None
    is_trial_period: str | None = None

    def is_cancelled(self) -> bool:
        """Check if Apple customer support cancelled (refunded) this purchase."""
        return self.cancellation_date_ms is not None


class Receipt(BaseModel):
    """Decoded receipt payload."""

    model_config = ConfigDict(frozen=True)

    receipt_type: str | None = None
    bundle_id: str | None = None
    application_version: str | None = None
    original_application_version: str | None = None
    receipt_creation_date_ms: str | None = None
    request_date_ms: str | None = None
    in_app: list[InAppPurchase] = Field(default_factory=list)

    @field_validator("in_app", mode="before")
    @classmethod
    def null_in_app_is_empty(cls, v: object) -> object:
        """Treat an explicit null purchase list as empty."""
        return [] if v is None else v


class VerificationResponse(BaseModel):
    """Full decode of a verifyReceipt response."""

    model_config = ConfigDict(frozen=True)

    status: StrictInt
    environment: str | None = None  # "Production" or "Sandbox"
    receipt: Receipt = Field(default_factory=Receipt)

    @field_validator("receipt", mode="before")
    @classmethod
    def null_receipt_is_empty(cls, v: object) -> object:
        """Error responses may carry "receipt": null."""
        return {} if v is None else v

    def is_sandbox(self) -> bool:
        """Check if Apple validated this receipt in the sandbox."""
        return (self.environment or "").lower() == "sandbox"
