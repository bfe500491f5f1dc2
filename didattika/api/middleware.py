"""API middleware"""

import logging
import time
from typing import Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse

from didattika.config.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

API_VERSION = "1.0"


async def request_validation_middleware(request: Request, call_next: Callable) -> Response:
    """Request size limit, timing header and request/response logging."""
    start_time = time.time()

    logger.info(
        f"Request: {request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent", "")
        }
    )

    try:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            max_size = settings.max_request_size
            if int(content_length) > max_size:
                raise HTTPException(
                    status_code=413,
                    detail=f"Request body too large. Maximum allowed is {max_size // (1024 * 1024)}MB"
                )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Response: {response.status_code} - {process_time:.3f}s",
            extra={
                "status_code": response.status_code,
                "process_time": process_time,
                "path": request.url.path
            }
        )

        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-API-Version"] = API_VERSION

        return response

    except HTTPException as e:
        process_time = time.time() - start_time
        logger.warning(
            f"HTTP Exception: {e.status_code} - {e.detail}",
            extra={
                "status_code": e.status_code,
                "detail": e.detail,
                "process_time": process_time,
                "path": request.url.path
            }
        )

        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.detail},
            headers={
                "X-Process-Time": str(process_time),
                "X-API-Version": API_VERSION
            }
        )

    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            f"Unexpected error: {str(e)}",
            extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "process_time": process_time,
                "path": request.url.path
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
            headers={
                "X-Process-Time": str(process_time),
                "X-API-Version": API_VERSION
            }
        )


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response
