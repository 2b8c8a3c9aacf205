# Core infrastructure
from src.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from src.core.exceptions import (
    ConflictError,
    DomainError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    handle_domain_error,
)
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware


__all__ = [
    "ConflictError",
    "DomainError",
    "ExpiredError",
    "InvalidStateError",
    "NotFoundError",
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "handle_domain_error",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
]
