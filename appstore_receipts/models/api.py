"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All API contracts are strongly typed.
"""

from pydantic import BaseModel, Field, field_validator

from appstore_receipts.models.receipts import InAppPurchase, ReceiptErrorKind

# ============================================================================
# Receipt Verification Models
# ============================================================================


class VerifyReceiptRequest(BaseModel):
    """POST /v1/receipts/verify request body."""

    receipt_data: str = Field(..., min_length=1, description="Base64 encoded App Store receipt")
    transaction_id: str = Field(..., min_length=1, max_length=255)

    @field_validator("transaction_id")
    @classmethod
    def validate_transaction_id(cls, v: str) -> str:
        """Transaction ids are compared exactly, so reject blank ones."""
        if not v.strip():
            raise ValueError("transaction_id must not be blank")
        return v


class VerifyReceiptResponse(BaseModel):
    """POST /v1/receipts/verify response."""

    status: int
    environment: str | None = None
    bundle_id: str | None = None
    in_app: list[InAppPurchase]


class ReceiptStatusErrorDetail(BaseModel):
    """Error body for a nonzero verifyReceipt status."""

    status: int
    kind: ReceiptErrorKind
    message: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    environment: str
