import logging

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.services.exceptions import CredentialAcquisitionFailed, InvalidDispatchRequest, StoreUnavailable

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = (
    (InvalidDispatchRequest, status.HTTP_400_BAD_REQUEST),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CredentialAcquisitionFailed, status.HTTP_502_BAD_GATEWAY),
)


def create_response(
    message: str,
    data=None,
    status_code: int = status.HTTP_200_OK,
    status_text: str | None = None
) -> JSONResponse:
    """Return a consistent API response payload and status code."""
    payload_status = status_text or ("success" if status_code < 400 else "error")
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "data": jsonable_encoder(data),
            "status": payload_status,
            "status_code": status_code,
        },
    )


def handle_exception(error: Exception, fallback_message: str = "Internal server error") -> JSONResponse:
    """Map raised errors onto the shared response structure."""
    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return create_response(detail, None, error.status_code, status_text="error")

    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return create_response(str(error), None, status_code, status_text="error")

    logger.exception("Unhandled error", exc_info=error)
    return create_response(fallback_message, None, status.HTTP_500_INTERNAL_SERVER_ERROR, status_text="error")
