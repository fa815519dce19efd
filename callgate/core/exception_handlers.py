"""Exception handlers for applications gating routes with callgate.

Design:
- LockServiceError -> 503 (coordination backend unavailable, retryable)
- Other AppError subclasses -> 500 (server-side misconfiguration)
- Unexpected Exception -> generic 500 (safety net)
- All responses carry the current call_id when one is set
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from callgate.core.errors import AppError, LockServiceError
from callgate.core.logging import get_call_id

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle library errors with a consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 503 if isinstance(exc, LockServiceError) else 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        }
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "call_id": get_call_id(),
    }

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message without implementation
    details.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "call_id": get_call_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> from callgate.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
