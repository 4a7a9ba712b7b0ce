from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.cache import close_redis, initialize_redis, reset_cache_client
from .core.config import get_settings
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import TraceIDMiddleware
from .core.usage import UpstreamUsageTracker
from .routes import admin, categories, health, metrics, products
from .services.catalog import SupabaseProductRepository, SupabaseSearchAnalytics, initialize_catalog_service

settings = get_settings()

# JSON output in production (containerized), console output in development
configure_logging(
    log_level=settings.log_level,
    service_name=settings.service_name,
    json_output=settings.log_json,
)

logger = get_logger(__name__)

app = FastAPI(
    title="Deals Catalog API",
    description="Filtering, ranking and caching for the deals catalog",
    version="1.0.0",
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(TraceIDMiddleware)


@app.on_event("startup")
async def startup_event():
    """Connect the cache and wire up the catalog service."""
    logger.info("app_startup_started")

    redis_initialized = await initialize_redis()
    # The cache client captures the breaker created by initialize_redis()
    reset_cache_client()
    if redis_initialized:
        logger.info("app_startup_redis_ready")
    else:
        logger.warning(
            "app_startup_redis_unavailable",
            message="Redis cache not available. Requests will be served uncached.",
        )

    if not (settings.supabase_url and settings.supabase_key):
        logger.warning(
            "app_startup_supabase_unconfigured",
            message="SUPABASE_URL / SUPABASE_SERVICE_KEY not set. Catalog queries will return empty pages.",
        )

    initialize_catalog_service(
        SupabaseProductRepository(),
        usage_tracker=UpstreamUsageTracker(limit=settings.upstream_request_limit),
        settings=settings,
        search_recorder=SupabaseSearchAnalytics(),
    )

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("app_shutdown_started")
    await close_redis()
    reset_cache_client()
    logger.info("app_shutdown_completed")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    trace_id = get_trace_id()
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "status_code": exc.status_code,
            "trace_id": trace_id,
        },
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    trace_id = get_trace_id()
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    response = JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "status_code": 500,
            "trace_id": trace_id,
        },
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(products.router, prefix="/products", tags=["Products"])
app.include_router(categories.router, prefix="/categories", tags=["Categories"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
