"""Request-scoped logging context: correlation ID and acting user."""

import uuid
from contextvars import ContextVar, Token

# Accessible across async calls within one request
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Set correlation ID in context."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Reset correlation ID to previous value."""
    correlation_id_var.reset(token)


def get_actor_id() -> str:
    """Get the ID of the user performing the current request, if known."""
    return actor_id_var.get()


def set_actor_id(actor_id: str) -> Token[str]:
    return actor_id_var.set(actor_id)
