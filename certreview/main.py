"""certreview FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from certreview.api.certificates import router as certificates_router
from certreview.api.health import router as health_router
from certreview.api.metrics import router as metrics_router
from certreview.api.validation import router as validation_router
from certreview.config import settings
from certreview.errors import ServiceError
from certreview.notifications.webhook import webhook_notifier

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await webhook_notifier.drain()


app = FastAPI(
    title="certreview - Calibration Certificate Review",
    description="Reviews AI-evaluated calibration certificates and submits approvals to Phoenix",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.http_status, content=exc.to_body())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health_router, tags=["Health"])
app.include_router(certificates_router, prefix="/certificates", tags=["Certificates"])
app.include_router(validation_router, prefix="/validation", tags=["Validation"])
app.include_router(metrics_router, prefix="/metrics", tags=["Metrics"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "certreview", "version": "0.1.0", "docs": "/docs"}
