import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cartqueue.domain.cart.errors import CartServiceError, ErrorKind

logger = logging.getLogger(__name__)

TRANSIENT_MESSAGE = "Service temporarily unavailable, please retry"


def error_body(status_code: int, message: str, error_code: str) -> dict:
    return {"status": status_code, "message": message, "error_code": error_code}


async def cart_service_error_handler(request: Request, exc: CartServiceError) -> JSONResponse:
    """Translate CartServiceError into the API error envelope"""
    status_code = exc.kind.http_status
    if exc.is_transient:
        # internal detail stays in the logs
        logger.error(
            f"Request failed path={request.url.path} error_code={exc.kind.value} "
            f"error={exc.message} cause={exc.cause!r}"
        )
        message = TRANSIENT_MESSAGE
    else:
        message = exc.message

    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, message, exc.kind.value),
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed body, path or headers: same envelope as the cart's own validation errors"""
    fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
    logger.warning(f"Invalid request path={request.url.path} fields={fields} error_code=INVALID_REQUEST")

    kind = ErrorKind.INVALID_REQUEST
    return JSONResponse(
        status_code=kind.http_status,
        content=error_body(kind.http_status, f"invalid request: {fields}", kind.value),
    )
