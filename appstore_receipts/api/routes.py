"""
API Routes - FastAPI endpoints for receipt verification.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from appstore_receipts.api.dependencies import get_receipt_service
from appstore_receipts.config import settings
from appstore_receipts.exceptions import (
    AppStoreServerError,
    ReceiptDecodeError,
    ReceiptStatusError,
    ReceiptTransportError,
    ReceiptVerificationError,
    TransactionNotFoundError,
)
from appstore_receipts.models.api import (
    HealthResponse,
    ReceiptStatusErrorDetail,
    VerifyReceiptRequest,
    VerifyReceiptResponse,
)
from appstore_receipts.observability.logging import log_context
from appstore_receipts.services.receipt_verifier import ReceiptService

logger = get_logger(__name__)

router = APIRouter()


@router.post("/v1/receipts/verify", response_model=VerifyReceiptResponse)
async def verify_receipt(
    request: VerifyReceiptRequest,
    service: ReceiptService = Depends(get_receipt_service),
) -> VerifyReceiptResponse:
    """
    Verify an App Store receipt and return the purchases for one transaction.

    Error mapping:
    - 404: receipt is valid but holds no such transaction
    - 422: App Store reported a nonzero receipt status
    - 502: App Store answered 5xx or with an unreadable body
    - 503: App Store could not be reached
    """
    with log_context(transaction_id=request.transaction_id):
        try:
            result = await service.verify(request.receipt_data, request.transaction_id)

        except TransactionNotFoundError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=str(exc),
            ) from exc

        except ReceiptStatusError as exc:
            logger.warning("receipt_rejected", status=exc.status, kind=exc.kind.value)
            raise HTTPException(
                status_code=422,
                detail=ReceiptStatusErrorDetail(
                    status=exc.status,
                    kind=exc.kind,
                    message=exc.kind.message,
                ).model_dump(mode="json"),
            ) from exc

        except (AppStoreServerError, ReceiptDecodeError) as exc:
            logger.error("appstore_bad_response", error=str(exc))
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="App Store returned an invalid response",
            ) from exc

        except ReceiptTransportError as exc:
            logger.error("appstore_unreachable", error=str(exc))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="App Store unavailable",
            ) from exc

        except ReceiptVerificationError as exc:
            logger.error("receipt_verification_error", error=str(exc))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Receipt verification failed",
            ) from exc

    return VerifyReceiptResponse(
        status=result.status,
        environment=result.environment,
        bundle_id=result.receipt.bundle_id,
        in_app=result.receipt.in_app,
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(status="ok", environment=settings.appstore_environment)
