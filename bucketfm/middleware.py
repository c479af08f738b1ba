"""
Middleware for bucketfm
"""

import logging
import time
from typing import Callable, Optional
from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .auth import get_user_from_request
from .models import ApiResponse, ResponseCode
from .metrics import metrics_manager

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client address, honouring the first X-Forwarded-For hop"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "-"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Access logging middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = get_client_ip(request)
        user = get_user_from_request(request)

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"Request failed: {request.method} {request.url.path} - {e}")
            self._log_access(request, None, duration, client_ip, user, error=str(e))
            metrics_manager.increment_errors()
            raise

        duration = time.time() - start_time
        self._log_access(request, response, duration, client_ip, user)
        metrics_manager.record_response(response.status_code, duration)
        return response

    def _log_access(
        self,
        request: Request,
        response: Optional[Response],
        duration: float,
        client_ip: str,
        user: Optional[str],
        error: Optional[str] = None
    ):
        """Log access information"""

        status_code = response.status_code if response else 500

        log_data = {
            "method": request.method,
            "path": str(request.url.path),
            "status": status_code,
            "size": response.headers.get("content-length", "-") if response else "-",
            "duration": round(duration * 1000, 2),  # milliseconds
            "ip": client_ip,
            "user": user or "-",
        }

        if error:
            log_data["error"] = error

        # Log level based on status code
        if status_code >= 500:
            logger.error(f"ACCESS {log_data}")
        elif status_code >= 400:
            logger.warning(f"ACCESS {log_data}")
        else:
            logger.info(f"ACCESS {log_data}")


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Global exception handler middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except HTTPException:
            # Let FastAPI handle HTTP exceptions
            raise

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}")
            metrics_manager.increment_errors()

            error_response = ApiResponse(
                code=ResponseCode.INTERNAL_ERROR.value,
                msg=f"Internal server error: {str(e)}",
                data=None
            )

            return JSONResponse(
                status_code=500,
                content=error_response.to_dict()
            )


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Request metrics collection middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with metrics_manager.request_context(request.method):
            return await call_next(request)


def setup_middleware(app: FastAPI):
    """Setup all middleware for the application"""

    app.add_middleware(RequestMetricsMiddleware)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(ExceptionHandlerMiddleware)

    logger.info("Middleware setup complete")
