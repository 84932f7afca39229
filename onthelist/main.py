"""FastAPI application factory.

Responsibilities kept minimal:
  * Wiring settings, database, change feed, gateway and classifier onto ``app.state``
  * Router registration (analyze, tasks, dashboard)
  * Cross-cutting concerns: metrics middleware & exception handlers

Run with ``uvicorn onthelist.main:create_app --factory`` or the ``onthelist`` script.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text

from .adapters.openai_completion_provider import OpenAICompletionProvider
from .api.analyze import router as analyze_router
from .api.dashboard import router as dashboard_router
from .api.tasks import router as tasks_router
from .config import Settings, get_settings
from .db.session import build_engine, build_session_factory, init_schema
from .errors import BaseAppException
from .logging_setup import setup_logging
from .metrics import REQUEST_COUNT, REQUEST_LATENCY
from .ports.completion_provider import CompletionProvider
from .services.change_feed import ChangeFeed
from .services.classification_service import ClassificationService
from .services.task_gateway import TaskGateway

logger = logging.getLogger(__name__)


def _path_label(path: str) -> str:
    parts = path.split("/")
    if len(parts) > 2 and parts[1] == "tasks" and parts[2]:
        parts[2] = ":id"
    return "/".join(parts)


def create_app(settings: Optional[Settings] = None, provider: Optional[CompletionProvider] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    engine = build_engine(settings.database_url)
    init_schema(engine)
    feed = ChangeFeed()
    gateway = TaskGateway(build_session_factory(engine), feed)
    classifier = ClassificationService(provider or OpenAICompletionProvider(settings), settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover - simple startup path
        logger.info("onthelist starting (timezone=%s, model=%s)", settings.timezone_name, settings.openai_model)
        yield
        engine.dispose()

    app = FastAPI(title="On The List API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.feed = feed
    app.state.gateway = gateway
    app.state.classifier = classifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analyze_router)
    app.include_router(tasks_router)
    app.include_router(dashboard_router)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        method = request.method
        path_label = _path_label(request.url.path)
        with REQUEST_LATENCY.labels(method=method, path=path_label).time():
            response: Response = await call_next(request)
        REQUEST_COUNT.labels(method=method, path=path_label, status=str(response.status_code)).inc()
        return response

    @app.get("/metrics")
    def metrics():  # pragma: no cover - external scrape
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException):
        return JSONResponse(status_code=exc.http_status, content=exc.to_body())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # pragma: no cover
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "unexpected error", "code": "INTERNAL_ERROR"})

    @app.get("/healthz")
    def health():
        health = {"status": "ok"}
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            health["database"] = "up"
        except Exception as exc:
            logger.warning("health check could not reach the database: %s", exc)
            health["database"] = "down"
        health["classifier"] = "configured" if settings.openai_api_key or provider else "unconfigured"
        return health

    return app


def run() -> None:  # pragma: no cover
    import uvicorn

    uvicorn.run("onthelist.main:create_app", factory=True, host="0.0.0.0", port=8000)
