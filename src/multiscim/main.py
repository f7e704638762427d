from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from tortoise import Tortoise
from multiscim.config import settings
from multiscim.exceptions import SCIMException
from multiscim.middleware import AuthenticationMiddleware, ErrorHandlerMiddleware, RequestLoggingMiddleware
from multiscim.api.v2.router import router as v2_router
from multiscim.utils import logger
from multiscim.schemas import ErrorResponse

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")

    await Tortoise.init(config=settings.tortoise_orm_config)
    await Tortoise.generate_schemas()

    logger.info("Database connection established")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await Tortoise.close_connections()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant SCIM 2.0 provisioning API",
    version=VERSION,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(AuthenticationMiddleware)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag", "Location"],
)

app.include_router(v2_router)

app.state.settings = settings


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": VERSION,
    }


@app.exception_handler(SCIMException)
async def scim_exception_handler(request: Request, exc: SCIMException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_error_response().to_wire(),
        headers=exc.headers,
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    # Status handlers take precedence over class handlers, so ResourceNotFound lands here too
    if isinstance(exc, SCIMException):
        return await scim_exception_handler(request, exc)

    error = ErrorResponse(
        status=404,
        detail=f"Path {request.url.path} not found"
    )
    return JSONResponse(
        status_code=404,
        content=error.to_wire()
    )


@app.exception_handler(405)
async def method_not_allowed_handler(request: Request, exc):
    error = ErrorResponse(
        status=405,
        detail=f"Method {request.method} not allowed for path {request.url.path}"
    )
    return JSONResponse(
        status_code=405,
        content=error.to_wire()
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        f"Validation error for {request.method} {request.url.path}\n"
        f"Errors: {exc.errors()}"
    )

    messages = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    error = ErrorResponse(
        status=400,
        detail=f"Invalid request: {messages}" if messages else "Invalid request body",
        scim_type="invalidValue"
    )

    return JSONResponse(
        status_code=400,
        content=error.to_wire()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "multiscim.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
