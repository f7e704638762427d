import time
import traceback
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError
from tortoise.exceptions import IntegrityError, DoesNotExist
from multiscim.utils import logger
from multiscim.schemas.error import ErrorResponse
from multiscim.exceptions import SCIMException


def error_response(status: int, detail: str, scim_type: str = None) -> JSONResponse:
    error = ErrorResponse(status=status, detail=detail, scim_type=scim_type)
    return JSONResponse(status_code=status, content=error.to_wire())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last line of defence: every escaping exception becomes a SCIM Error body."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            return await call_next(request)

        except SCIMException as e:
            logger.warning(f"SCIM error: {e.detail}")
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_error_response().to_wire()
            )

        except ValidationError as e:
            logger.warning(f"Validation error: {e}")
            return error_response(400, f"Invalid request body: {e.errors()[0]['msg']}", "invalidValue")

        except DoesNotExist as e:
            logger.warning(f"Resource not found: {e}")
            return error_response(404, "Resource not found")

        except IntegrityError as e:
            logger.error(f"Database integrity error: {e}")

            if "unique" in str(e).lower():
                return error_response(409, "A resource with the given attribute value already exists", "uniqueness")
            return error_response(409, "Database constraint violation")

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Unhandled exception in {request.method} {request.url.path} "
                f"(duration: {duration:.3f}s): {e}\n"
                f"{traceback.format_exc()}"
            )

            return error_response(500, "An internal error occurred")
