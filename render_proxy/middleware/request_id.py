"""Request IDs tying render and submit log lines to the call that caused them.

HTTP requests take the ID from X-Request-ID (or get a fresh one) and see it
echoed on the response. One-shot CLI runs bind a ``cli-`` prefixed ID so
their log lines carry one as well.
"""

import contextvars
import uuid
from contextlib import contextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_INCOMING_LENGTH = 128

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)


def new_request_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def _accept_incoming(value: str | None) -> str | None:
    # Ends up in every log line and in a response header
    if value and len(value) <= _MAX_INCOMING_LENGTH and value.isprintable():
        return value
    return None


@contextmanager
def bound_request_id(rid: str):
    """Make ``rid`` the current request ID for the enclosed block."""
    token = request_id_var.set(rid)
    try:
        yield rid
    finally:
        request_id_var.reset(token)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = _accept_incoming(request.headers.get(REQUEST_ID_HEADER)) or new_request_id()
        with bound_request_id(rid):
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response


def get_request_id() -> str:
    """Current request ID, empty outside a request."""
    return request_id_var.get()
