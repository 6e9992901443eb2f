import os
import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine
from .errors import SchedulingError
from .logging import setup_logging, RequestContextMiddleware
from .routes.assignments import router as assignments_router
from .routes.conflicts import router as conflicts_router
from .routes.timesheets import router as timesheets_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Errors
    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        logger.info("request.rejected", path=request.url.path, error=exc.kind, status_code=exc.status_code)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    # Routers
    app.include_router(conflicts_router)
    app.include_router(assignments_router)
    app.include_router(timesheets_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("app.startup", environment=settings.environment)
        if settings.auto_create_db:
            os.makedirs("var", exist_ok=True)
            Base.metadata.create_all(bind=engine)
            logger.info("app.tables_verified")

    return app


app = create_app()
