import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

from marketplace import accounts, goods, routes
from marketplace.config import Settings, load_settings
from marketplace.errors import register_error_handlers
from marketplace.ledger import PaymentIntentLedger
from marketplace.logging_config import configure_logging, get_logger
from marketplace.processors import build_processor
from marketplace.storage import build_storage

logger = get_logger(__name__)


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """Bind a request id to every log line emitted while serving the request."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    clear_contextvars()
    bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
    logger.info("request_started")
    start_time = time.time()

    try:
        response = await call_next(request)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        clear_contextvars()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.service_name, settings.environment)

    app = FastAPI(title="Marketplace Payments Service")
    app.state.settings = settings
    app.state.storage = build_storage(settings)
    app.state.processor = build_processor(settings)
    app.state.ledger = PaymentIntentLedger(app.state.storage.intents, app.state.processor)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)
    register_error_handlers(app)

    app.include_router(routes.router)
    app.include_router(accounts.router)
    app.include_router(goods.router)

    logger.info(
        "app_configured",
        storage=settings.storage_backend,
        processor=app.state.processor.name,
    )
    return app


app = create_app()
