import os
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware, structlog
from .schemas.common import failure
from .services.errors import ReportingError
from .auth.router import router as auth_router
from .routes.reports import router as reports_router
from .routes.vehicles import router as vehicles_router
from .routes.projects import router as projects_router
from .routes.personnel import router as personnel_router
from .routes.catalogs import router as catalogs_router


_HTTP_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReportingError)
    async def _reporting_error(request: Request, exc: ReportingError):
        structlog.get_logger().info("request_failed", kind=exc.kind, message=exc.message, path=request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({"success": False, "error": exc.to_dict()}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        kind = _HTTP_KINDS.get(exc.status_code, "http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(kind, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=jsonable_encoder(failure("validation_error", "Request validation failed", details)),
        )


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    _register_error_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(reports_router)
    app.include_router(vehicles_router)
    app.include_router(projects_router)
    app.include_router(personnel_router)
    app.include_router(catalogs_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log = structlog.get_logger()
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            log.info("startup_tables_verified", tables=len(Base.metadata.tables))

    @app.get("/health")
    def health():
        return {"success": True, "data": {"status": "ok", "environment": settings.environment}}

    return app


app = create_app()
