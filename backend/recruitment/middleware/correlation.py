"""X-Request-ID propagation.

Public pages poll role status and buttons frequently; the request id ties
those calls to the service log lines (see core.logging.add_correlation_id)
and to the debug_id returned in error bodies.
"""

import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"


def setup_correlation_middleware(app: FastAPI) -> None:
    """Echo a client-supplied X-Request-ID, or generate a UUID4 when absent.

    Any format is accepted from clients so upstream proxies can pass their own ids.
    """
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=None,
        transformer=lambda value: value,
    )


def get_correlation_id() -> str | None:
    """Request id of the current request, or None outside a request."""
    return correlation_id.get(None)


__all__ = ["REQUEST_ID_HEADER", "setup_correlation_middleware", "get_correlation_id"]
