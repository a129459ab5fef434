import logging
import threading
import time
import traceback
from contextlib import asynccontextmanager
from typing import List, Optional

from cachetools import TTLCache
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cache import create_cache
from config import Settings, get_settings
from database import connect, ensure_indexes
from errors import Internal, InvalidInput, RateLimited, ServiceError
from routes import routers
from services import Services
from storage import S3Storage
from validation import format_violation

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

APP_NAME = "Aari Order API"
APP_VERSION = "1.0.0"


class RateLimiter:
    """Sliding-window request counter per client address."""

    def __init__(self, max_requests: int, window_seconds: int, maxsize: int = 10000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        # idle clients fall out once their window has passed
        self._hits: TTLCache = TTLCache(maxsize=maxsize, ttl=window_seconds)
        self._lock = threading.Lock()

    def allow(self, client: str) -> bool:
        now = time.monotonic()
        cutoff = now - self.window_seconds
        with self._lock:
            hits = [t for t in self._hits.get(client, []) if t > cutoff]
            allowed = len(hits) < self.max_requests
            if allowed:
                hits.append(now)
            self._hits[client] = hits
        return allowed


def error_response(status_code: int, message: str, details: Optional[List[str]] = None) -> JSONResponse:
    content = {"success": False, "error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database, storage and cache clients, and close them on shutdown."""
    settings: Settings = app.state.settings
    resources = []
    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    if app.state.services is None:
        client, db = connect(settings.DATABASE_URL, settings.DATABASE_NAME)
        resources.append(client)
        try:
            ensure_indexes(db)
        except Exception as e:
            logger.error(f"MongoDB connection error: {e}")
            client.close()
            raise
        logger.info("MongoDB connected")

        storage = S3Storage(
            bucket=settings.S3_BUCKET_NAME,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
        cache = create_cache(settings.REDIS_URL, settings.CACHE_TTL)
        resources.extend([storage, cache])
        app.state.services = Services.build(db, storage, cache)

    yield

    logger.info("Shutting down")
    for resource in resources:
        try:
            resource.close()
        except Exception as e:
            logger.error(f"Error closing {type(resource).__name__}: {e}")
    logger.info("Shutdown completed")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the application.

    Pass `services` to run against already-built collaborators (tests); without
    it the lifespan connects to MongoDB, S3 and the cache from `settings`.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services
    limiter = RateLimiter(settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)

    # ---------- Exception handlers ----------
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if isinstance(exc, InvalidInput):
            return error_response(exc.status_code, exc.message, exc.violations)
        if isinstance(exc, Internal) or exc.status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.message}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        violations = [format_violation(err) for err in exc.errors()]
        logger.warning(f"Validation error for {request.method} {request.url.path}: {violations}")
        return error_response(status.HTTP_400_BAD_REQUEST, ", ".join(violations), violations)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        logger.error(traceback.format_exc())
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    # ---------- Middleware ----------
    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        if not limiter.allow(client):
            exc = RateLimited(
                f"Rate limit exceeded: {limiter.max_requests} requests per {limiter.window_seconds} seconds"
            )
            return error_response(exc.status_code, exc.message)
        return await call_next(request)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        logger.info(f"{request.method} {request.url} - Status: {response.status_code} - Duration: {duration:.3f}s")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ---------- Routes ----------
    @app.get("/health")
    def health():
        return {"success": True, "data": {"status": "ok", "version": APP_VERSION}}

    for router in routers:
        app.include_router(router, prefix=f"/{settings.API_VERSION}")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().PORT)
