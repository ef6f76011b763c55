from __future__ import annotations

from .access_log import AccessLogMiddleware, exclude_paths_matching
from .request_context import RequestContextMiddleware

__all__ = ["AccessLogMiddleware", "RequestContextMiddleware", "exclude_paths_matching"]
