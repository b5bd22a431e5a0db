#main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.errors import EngineError
from middleware import RequestContextMiddleware
from routes.admin_reconcile import router as admin_reconcile_router
from routes.health import router as health_router
from routes.pools import router as pools_router
from services.engine_errors import http_status_for
from services.observability import configure_logging
from settings import settings, validate_env_settings

logger = logging.getLogger("tanda.api")


async def engine_error_handler(request: Request, exc: EngineError):
    body = exc.to_dict()
    status = http_status_for(body)
    if status == 500:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=status, content={"detail": body})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    validate_env_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Tanda Engine API", version="1.0.0")
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------

    app.include_router(health_router)
    app.include_router(pools_router)
    app.include_router(admin_reconcile_router)

    app.add_exception_handler(EngineError, engine_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    return app


app = create_app()
