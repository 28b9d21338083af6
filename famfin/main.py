"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from famfin.config import get_settings
from famfin.infrastructure.db.session import check_db_connection
from famfin.api.v1 import obligations, projections, transactions, source_periods
from famfin.application.scheduler import start_scheduler, shutdown_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return Response(content=f"Internal Server Error: {exc}", status_code=500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()


def create_app() -> FastAPI:
    """
    Application factory

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="FamFin",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    app.include_router(obligations.router)
    app.include_router(projections.router)
    app.include_router(transactions.router)
    app.include_router(source_periods.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (checks the database)"""
        check_db_connection()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "famfin.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
