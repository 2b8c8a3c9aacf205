"""Request context management using contextvars.

Each request gets a unique ID plus optional user, role and trace
information that structlog picks up anywhere in the call stack.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
user_role_var: ContextVar[str | None] = ContextVar("user_role", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "user_role": user_role_var,
    "trace_id": trace_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None, role: str | None = None) -> None:
    """Set the authenticated user (and optionally role) for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)
    if role is not None:
        user_role_var.set(role)


def get_trace_id() -> str | None:
    """Get the current trace ID."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the distributed tracing ID for the current context."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Return all non-empty context variables as a dictionary."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent leakage between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    user_role_var.set(None)
    trace_id_var.set(None)


class RequestContext:
    """Context manager binding request-scoped values outside of HTTP handling.

    Used by the event worker so log lines emitted while delivering an event
    carry the request id of the call that produced it.

    Usage:
        with RequestContext(request_id=event.request_id):
            log.info("delivering_event")
    """

    def __init__(self, **values: str | UUID | None) -> None:
        unknown = set(values) - set(_CONTEXT_VARS)
        if unknown:
            msg = f"Unknown context keys: {sorted(unknown)}"
            raise ValueError(msg)
        self.values = values
        self._tokens: list[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "RequestContext":
        if not self.values.get("request_id"):
            self.values["request_id"] = generate_request_id()
        for name, value in self.values.items():
            if value is None:
                continue
            var = _CONTEXT_VARS[name]
            self._tokens.append((var, var.set(str(value))))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
