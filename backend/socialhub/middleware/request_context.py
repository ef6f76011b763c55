from __future__ import annotations

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    - Keeps a correlation id already attached to the request (state set by an
      outer layer, or the inbound X-Request-Id header); otherwise generates a
      UUIDv4. An existing id is never replaced.
    - Stores it in request.state.request_id.
    - Exposes it via a contextvar so downstream logging can include it.
    - Always echoes it on the response.
    """

    def __init__(self, app, *, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        attached = getattr(request.state, "request_id", None)
        inbound = request.headers.get(self.header_name)
        # Blank ids count as absent; anything else is kept exactly as received.
        if attached is not None and str(attached).strip():
            request_id = str(attached)
        elif inbound and inbound.strip():
            request_id = inbound
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            request_id_var.reset(token)
