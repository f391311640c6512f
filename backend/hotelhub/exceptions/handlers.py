import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import CurrencyMismatchError, HotelNotFoundError, RetryableSearchError, SupplierError

logger = logging.getLogger(__name__)


async def retryable_search_error_handler(_request: Request, exc: RetryableSearchError) -> JSONResponse:
    logger.warning(f"Search unavailable: {exc.message} ({exc.code})")
    return JSONResponse(
        status_code=503,
        headers={"Retry-After": str(exc.retry_after)},
        content={
            "hotels": [],
            "error": {"code": exc.code, "message": exc.message, "retryable": True},
        },
    )


async def supplier_error_handler(_request: Request, exc: SupplierError) -> JSONResponse:
    logger.error(f"Supplier error: {exc.message} (status={exc.status_code})")
    return JSONResponse(
        status_code=503 if exc.retryable else 502,
        content={
            "error": {
                "code": "supplier_error",
                "message": exc.message,
                "retryable": exc.retryable,
            },
        },
    )


async def currency_mismatch_error_handler(_request: Request, exc: CurrencyMismatchError) -> JSONResponse:
    logger.error(f"Margin configuration error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "margin_currency_mismatch", "message": str(exc), "retryable": False}},
    )


async def hotel_not_found_error_handler(_request: Request, exc: HotelNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})
