from typing import Optional, Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from multiscim.config import settings
from multiscim.utils import logger
from multiscim.schemas.error import ErrorResponse
from multiscim.services.token_service import TokenService


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Bearer token authentication.

    A valid token binds the request to the token's tenant through
    ``request.state.auth_user``. With authentication disabled nothing is attached and the
    tenant is taken from the tenant header instead.
    """

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        if not settings.auth_enabled:
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return self._unauthorized_response("Missing Authorization header")

        try:
            scheme, token = auth_header.split()
            if scheme.lower() != "bearer":
                return self._unauthorized_response("Invalid authentication scheme")
        except ValueError:
            return self._unauthorized_response("Invalid Authorization header format")

        auth_user = await self._verify_token(token)
        if not auth_user:
            return self._unauthorized_response("Invalid or expired token")

        request.state.auth_user = auth_user
        return await call_next(request)

    async def _verify_token(self, token: str) -> Optional[dict]:
        api_token = await TokenService.authenticate(token)
        if api_token is None:
            return None

        return {
            "sub": f"api_token:{api_token.id}",
            "role": "api_token",
            "scopes": api_token.scopes,
            "token_name": api_token.name,
            "tenant_id": str(api_token.tenant_id),
        }

    def _unauthorized_response(self, detail: str) -> JSONResponse:
        logger.warning(f"Authentication failed: {detail}")
        error = ErrorResponse(
            status=401,
            detail=detail
        )

        return JSONResponse(
            status_code=401,
            content=error.to_wire(),
            headers={"WWW-Authenticate": 'Bearer realm="SCIM API"'}
        )
