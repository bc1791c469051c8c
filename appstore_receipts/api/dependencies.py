"""
FastAPI Dependencies - Shared service instances.

NO DICTIONARIES - All dependencies return typed objects.
"""

from fastapi import HTTPException, Request, status
from structlog import get_logger

from appstore_receipts.services.receipt_verifier import ReceiptService

logger = get_logger(__name__)


def get_receipt_service(request: Request) -> ReceiptService:
    """
    FastAPI dependency returning the receipt client created at startup.

    Usage:
        @router.post("/v1/receipts/verify")
        async def verify_receipt(
            service: ReceiptService = Depends(get_receipt_service)
        ):
            ...
    """
    service: ReceiptService | None = getattr(request.app.state, "receipt_service", None)
    if service is None:
        logger.error("receipt_service_not_initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Receipt verification not configured",
        )
    return service
