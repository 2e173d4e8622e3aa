from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from eventhub.database import init_db
from eventhub.config import get_settings
from eventhub.exceptions import EventHubError
from eventhub.rate_limit import limiter
from eventhub.services.scheduler import init_scheduler, shutdown_scheduler
from eventhub.middleware.security import setup_security_middleware
from eventhub.routers import (
    auth_router,
    users_router,
    events_router,
    transactions_router,
    admin_router
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.scheduler_enabled:
        init_scheduler()
    yield
    if settings.scheduler_enabled:
        shutdown_scheduler()


app = FastAPI(
    title="EventHub",
    description="Event ticketing with manual payment confirmation and loyalty points",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Setup security middleware (security headers, trusted hosts)
setup_security_middleware(app, allowed_hosts=settings.allowed_hosts)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(events_router)
app.include_router(transactions_router)
app.include_router(admin_router)


@app.exception_handler(EventHubError)
async def eventhub_error_handler(request: Request, exc: EventHubError):
    if exc.status_code != status.HTTP_404_NOT_FOUND:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors()), "code": "validation_failed"}
    )


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error"}
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
