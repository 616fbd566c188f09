from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings
from app.core.rate_limit import limiter

logger = structlog.get_logger()
settings = get_settings()

VERSION = "0.1.0"

# --- Sentry ---
if settings.SENTRY_DSN:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1,
        profiles_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("sentry_initialized", environment=settings.SENTRY_ENVIRONMENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.core.database import async_session
    from app.core.dependencies import assemble_services, build_clients
    from app.services.repository import SqlSessionRepository, resolve_session_defaults
    from app.workers.analysis import schedule_analysis
    from app.workers.celery_app import celery_app

    logger.info("app_startup", version=VERSION, broker=celery_app.conf.broker_url)

    repo = SqlSessionRepository(async_session)
    defaults = await resolve_session_defaults(repo)
    llm, voice_client = build_clients(settings)
    app.state.services = assemble_services(
        settings, repo, llm, voice_client, defaults, schedule_analysis
    )
    if not settings.VAPI_WEBHOOK_SECRET:
        logger.warning("webhook_secret_missing")

    yield

    await app.state.services.aclose()
    logger.info("app_shutdown")


app = FastAPI(
    title="AIVI API",
    description="AI voice interviews - live orchestration and post-call analysis",
    version=VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# --- Security Headers Middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from app.api.v1.sessions import router as sessions_router
from app.api.v1.webhooks import router as webhooks_router

app.include_router(sessions_router, prefix=settings.API_V1_PREFIX)
app.include_router(webhooks_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health():
    checks = {"version": VERSION}

    # PostgreSQL
    try:
        from sqlalchemy import text

        from app.core.database import async_session

        async with async_session() as session:
            await session.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    # Redis (rate limits and Celery broker)
    try:
        import redis.asyncio as aioredis

        r = aioredis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    all_ok = all(v == "ok" for k, v in checks.items() if k != "version")
    checks["status"] = "ok" if all_ok else "degraded"

    return checks
