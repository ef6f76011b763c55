from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .buildinfo import VERSION
from .db.dynamodb.errors import DdbError
from .errors import ConflictError, ModelError, NotFoundError, ValidationError
from .middleware.access_log import AccessLogMiddleware, PathPredicate
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .registry import ModelRegistry, build_registry
from .routers.connections import router as connections_router
from .routers.health import router as health_router
from .routers.modules import router as modules_router
from .routers.notifications import router as notifications_router
from .settings import Settings, get_settings


def create_app(
    *,
    settings: Settings | None = None,
    registry: ModelRegistry | None = None,
    table: Any | None = None,
    access_log_skip: PathPredicate | None = None,
) -> FastAPI:
    """
    Build the ASGI app.

    ``registry`` (or the ``table`` to build one on) is injected by tests;
    otherwise the configured DynamoDB table is used.
    """
    settings = settings or get_settings()
    # Logging must be configured before the app starts handling requests.
    configure_logging(level=settings.log_level)
    log = get_logger("startup")

    if registry is None:
        if table is None:
            from .db.dynamodb.table import get_main_table

            table = get_main_table()
        registry = build_registry(table)

    version = settings.service_version or VERSION

    app = FastAPI(
        title="socialhub",
        version=version,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.version = version

    log.info(
        "app_starting",
        version=version,
        collections=registry.names(),
        settings=settings.to_log_safe_dict(),
    )

    # Middlewares (last added is outermost):
    # request context -> access log -> routes.
    app.add_middleware(
        AccessLogMiddleware,
        skip=access_log_skip,
        exclude_paths=settings.access_log_exclude_patterns,
    )
    app.add_middleware(RequestContextMiddleware, header_name=settings.request_id_header)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ModelError, _model_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    # Routes
    app.include_router(health_router)
    app.include_router(modules_router, prefix="/api")
    app.include_router(connections_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")

    return app


def _model_error_handler(request: Request, exc: ModelError) -> Response:
    if isinstance(exc, ValidationError):
        errors = [{"path": exc.field, "message": exc.message}] if exc.field else None
        return problem_response(
            request=request,
            status_code=400,
            title="Validation Failed",
            detail=exc.message,
            errors=errors,
        )
    if isinstance(exc, NotFoundError):
        return problem_response(request=request, status_code=404, detail=exc.message)
    if isinstance(exc, ConflictError):
        return problem_response(
            request=request,
            status_code=409,
            detail=exc.message,
            extensions={"fields": list(exc.fields)} if exc.fields else None,
        )
    return problem_response(request=request, status_code=500, detail=exc.message)


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    extensions = {
        "operation": exc.operation,
        "table": exc.table_name,
        "awsRequestId": exc.aws_request_id,
        "retryable": bool(exc.retryable),
    }
    return problem_response(
        request=request,
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        extensions={k: v for k, v in extensions.items() if v is not None},
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    safe_detail = str(detail) if detail is not None else None
    if status_code == 404:
        safe_detail = safe_detail or "Route not found"
    return problem_response(request=request, status_code=status_code, detail=safe_detail)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "location": list(loc),
                "path": ".".join([str(x) for x in loc if x != "body"]),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    # The access log already recorded the traceback for this request.
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) if exc else None,
    )


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "socialhub.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )
