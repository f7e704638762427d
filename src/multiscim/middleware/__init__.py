from .auth import AuthenticationMiddleware
from .error_handler import ErrorHandlerMiddleware
from .request_logger import RequestLoggingMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "ErrorHandlerMiddleware",
    "RequestLoggingMiddleware",
]