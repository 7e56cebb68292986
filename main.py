import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes.analysis_route import router as analysis_router
from routes.image_route import router as image_router
from routes.patient_route import router as patient_router
from services.image_processing import ImageProcessor
from services.openai.classification_relay import ClassificationRelay
from services.result_cache import ResultCache
from services.screening_service import ScreeningService
from utils.app_config import AppConfig
from utils.database_init import AsyncDatabaseInitializer
from utils.media_validation import InvalidImageError

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _close_client(client: Any) -> None:
    """Close the OpenAI client if it exposes a close/aclose method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:  # pylint: disable=broad-exception-caught
        LOGGER.warning("Error while closing OpenAI client: %s", exc)


def _error_body(detail: Any) -> dict:
    if isinstance(detail, dict) and "error" in detail:
        return detail
    return {"error": str(detail)}


def _body_too_large(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={"error": "Request body too large", "details": f"Limit is {limit} bytes"},
    )


def create_app(
    config: Optional[AppConfig] = None,
    openai_client: Optional[Any] = None,
    db_initializer: Optional[AsyncDatabaseInitializer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `openai_client` and `db_initializer` may be injected; otherwise they are
    built from `config` during startup.
    """
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the SQLite database (at DATABASE_DIR/app.db)
          - the OpenAI async client
          - the result cache and screening service
        and attach them to `app.state`.
        """
        api_key = config.require_api_key()

        db = db_initializer or AsyncDatabaseInitializer(reset=config.reset_database)
        await db.ensure_database()
        app.state.db_initializer = db

        owns_client = openai_client is None
        if owns_client:
            try:
                client = AsyncOpenAI(
                    api_key=api_key,
                    timeout=config.openai_timeout,
                    max_retries=config.openai_max_retries,
                )
            except Exception as exc:
                raise RuntimeError("Failed to initialize OpenAI Async client") from exc
        else:
            client = openai_client
        app.state.openai_client = client

        cache = ResultCache(capacity=config.cache_capacity, ttl_seconds=config.cache_ttl_seconds)
        processor = ImageProcessor()
        app.state.result_cache = cache
        app.state.image_processor = processor
        app.state.screening_service = ScreeningService(
            ClassificationRelay(client, model=config.openai_model),
            cache,
            processor=processor,
            fail_open=config.fail_open,
        )
        LOGGER.info(
            "Screening backend ready: model=%s db=%s origins=%s",
            config.openai_model,
            db.db_path,
            ", ".join(config.cors_origins),
        )

        try:
            yield
        finally:
            if owns_client:
                await _close_client(client)

    app = FastAPI(title="Oral Screening API", lifespan=lifespan)
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id"],
    )

    @app.middleware("http")
    async def enforce_request_limits(request: Request, call_next):
        """Reject unlisted origins and oversized bodies before routing."""
        origin = request.headers.get("origin")
        if origin and origin not in config.cors_origins:
            LOGGER.warning("Blocked by CORS: %s", origin)
            return JSONResponse(status_code=403, content={"error": "Not allowed by CORS"})

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > config.max_body_bytes:
                return _body_too_large(config.max_body_bytes)
        elif request.method in ("POST", "PUT", "PATCH"):
            # no declared length (chunked upload): count bytes as they arrive
            received = 0
            chunks = []
            async for chunk in request.stream():
                received += len(chunk)
                if received > config.max_body_bytes:
                    return _body_too_large(config.max_body_bytes)
                chunks.append(chunk)
            # Starlette replays a cached body to the route
            request._body = b"".join(chunks)  # pylint: disable=protected-access
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail), headers=exc.headers)

    @app.exception_handler(InvalidImageError)
    async def invalid_image_handler(request: Request, exc: InvalidImageError):
        return JSONResponse(status_code=400, content={"error": "Invalid image format", "details": exc.reason})

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports database, OpenAI client, and cache state.
        """
        state = request.app.state
        cache = getattr(state, "result_cache", None)
        return {
            "ok": True,
            "db_initialized": hasattr(state, "db_initializer"),
            "openai_available": getattr(state, "openai_client", None) is not None,
            "cache_entries": len(cache) if cache is not None else 0,
        }

    # Register application routers
    app.include_router(analysis_router)
    app.include_router(patient_router)
    app.include_router(image_router)

    return app


app = create_app()
