from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bitbybit.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _db_host_from_url(url: str) -> str:
    """Extract host from DATABASE_URL for logging (no credentials)."""
    try:
        from urllib.parse import urlparse
        parsed = urlparse(url)
        return parsed.hostname or parsed.path.split("@")[-1].split("/")[0].split(":")[0] or "?"
    except Exception:
        return "?"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == "local":
        Path(settings.media_dir).mkdir(parents=True, exist_ok=True)

    logger.info("Database host: %s", _db_host_from_url(settings.database_url))
    if settings.secret_key == "change-me-to-a-random-secret":
        logger.warning("SECRET_KEY is the built-in default; set it before deploying.")
    if settings.mail_backend == "log":
        logger.warning("MAIL_BACKEND=log: verification and reset mails are only written to the log.")

    yield


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"error": "Validation failed", "messages": exc.detail}
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


from bitbybit.routers import auth, categories, images, oauth, posts, profile, threads  # noqa: E402

app.include_router(auth.router, prefix=settings.api_prefix, tags=["auth"])
app.include_router(oauth.router, prefix=settings.api_prefix, tags=["oauth"])
app.include_router(profile.router, prefix=settings.api_prefix, tags=["profile"])
app.include_router(images.router, prefix=settings.api_prefix, tags=["images"])
app.include_router(categories.router, prefix=f"{settings.api_prefix}/categories", tags=["categories"])
app.include_router(threads.router, prefix=f"{settings.api_prefix}/threads", tags=["threads"])
app.include_router(posts.router, prefix=settings.api_prefix, tags=["posts"])


@app.get("/health")
async def health():
    """Basic health check. Use /health/db to verify database connectivity."""
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """Verify database connection. Returns 503 if DATABASE_URL is misconfigured or unreachable."""
    from sqlalchemy import text

    from bitbybit.database import async_session_factory

    try:
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception("Database health check failed")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "detail": "Database connection failed. Ensure DATABASE_URL is set in your environment.",
                "error": str(e),
            },
        )
    return {"status": "ok", "database": "connected"}
