import time
import json
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from multiscim.config import settings
from multiscim.utils import logger

SKIPPED_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request line, the tenant header and the response time"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.time()
        client = request.client.host if request.client else "unknown"
        tenant = request.headers.get(settings.tenant_header, "-")

        logger.info(f"→ {request.method} {request.url.path} from {client} (tenant: {tenant})")

        if request.method in ("POST", "PUT", "PATCH") and settings.debug:
            body = await request.body()
            try:
                logger.debug(f"Request body:\n{json.dumps(json.loads(body), indent=2)}")
            except ValueError:
                logger.debug(f"Request body: {body[:512]!r}")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"← {response.status_code} {request.method} {request.url.path} ({duration:.3f}s)")

        return response
