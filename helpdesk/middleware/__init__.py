"""HTTP middleware and exception handlers."""

from .errors import register_error_handlers
from .request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware", "register_error_handlers"]
