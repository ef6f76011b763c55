from __future__ import annotations

import asyncio
import fnmatch
import time
from typing import Callable, Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import get_request_id
from ..observability.logging import get_logger

PathPredicate = Callable[[str], bool]


def exclude_paths_matching(patterns: Iterable[str]) -> PathPredicate:
    """Predicate that is true for paths matching any glob in ``patterns``."""
    pats = tuple(p for p in patterns if p)

    def _skip(path: str) -> bool:
        return any(fnmatch.fnmatchcase(path, p) for p in pats)

    return _skip


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One structured access record per request, tagged with the request id.

    Paths for which ``skip`` is true (by default the health checks) are not
    logged. Failures while logging are dropped; they never change the
    response.
    """

    def __init__(
        self,
        app,
        *,
        skip: PathPredicate | None = None,
        exclude_paths: Iterable[str] | None = None,
    ):
        super().__init__(app)
        self._skip = skip or exclude_paths_matching(exclude_paths or ())
        self._log = get_logger("access")

    def _skipped(self, path: str) -> bool:
        try:
            return bool(self._skip(path))
        except Exception:
            return False

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if self._skipped(path):
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except asyncio.CancelledError:
            # Client went away mid-request.
            self._emit("request_aborted", request, path, start, status_code=None, level="warning")
            raise
        except Exception:
            self._emit("request_error", request, path, start, status_code=500, level="exception")
            raise

        self._emit(
            "request",
            request,
            path,
            start,
            status_code=int(getattr(response, "status_code", 0) or 0),
        )
        return response

    def _emit(
        self,
        event: str,
        request: Request,
        path: str,
        start: float,
        *,
        status_code: int | None,
        level: str = "info",
    ) -> None:
        try:
            client = getattr(request, "client", None)
            request_id = getattr(request.state, "request_id", None) or get_request_id()
            getattr(self._log, level)(
                event,
                request_id=request_id,
                http_method=request.method.upper(),
                path=path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_ip=getattr(client, "host", None) if client else None,
            )
        except Exception:
            # Never let logging fail the request it describes.
            pass
