import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter

from .config import settings
from .exceptions import TourbookError
from .routers import admin_router, package_router, payment_router, tour_guide_router, user_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("tourbook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    redis_client = None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    yield

    logger.info("Shutting down...")
    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="Tourbook API",
    description="Travel requests, tour guide assignment and tour package bookings.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(TourbookError)
async def tourbook_error_handler(request: Request, exc: TourbookError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


app.include_router(user_router.router)
app.include_router(tour_guide_router.router)
app.include_router(admin_router.router)
app.include_router(package_router.router)
app.include_router(payment_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Tourbook API"}
