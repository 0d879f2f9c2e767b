import time
import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .exceptions import create_error_response

logger = logging.getLogger(__name__)

# room for multipart boundaries and the text fields next to the file
MULTIPART_OVERHEAD = 64 * 1024


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        # Log request (guard against missing client info)
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request: {request.method} {request.url.path} from {client_host}")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"Response: {response.status_code} for {request.method} {request.url.path} in {duration:.3f}s")

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {str(e)}", exc_info=True)
            detail = f"Internal server error: {str(e)}" if settings.DEBUG else "Internal server error"
            return JSONResponse(status_code=500, content=create_error_response(detail, 500))


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, max_body_size: int = None):
        super().__init__(app)
        limit = settings.MAX_FILE_SIZE if max_body_size is None else max_body_size
        # 0 disables the check
        self.max_body_size = limit + MULTIPART_OVERHEAD if limit else 0

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if self.max_body_size and content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                # Malformed header; downstream file checks still apply
                size = 0
            if size > self.max_body_size:
                logger.warning(f"Rejected {request.method} {request.url.path}: body of {size} bytes")
                return JSONResponse(
                    status_code=413,
                    content=create_error_response("Request entity too large", 413)
                )
        return await call_next(request)
