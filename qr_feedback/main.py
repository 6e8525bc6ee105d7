"""
QR Feedback - Backend API
FastAPI + SQLModel, QR code lifecycle with offline-tolerant sync
"""
from dotenv import load_dotenv
load_dotenv()  # Load .env before settings are read

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qr_feedback.api.v1 import collections, feedback, qr_codes
from qr_feedback.api.v1.feedback import SCAN_HTTP_STATUS, SCAN_MESSAGES
from qr_feedback.bootstrap import build_services
from qr_feedback.config import settings
from qr_feedback.domain.exceptions import (
    PersistenceError,
    QuotaExceededError,
    ScanRejected,
    TransientIOError,
    ValidationViolation,
)
from qr_feedback.infrastructure.database import dispose_engine, get_session_maker, init_db
from qr_feedback.infrastructure.persistence import build_adapter
from qr_feedback.infrastructure.persistence.factory import COLLECTIONS
from qr_feedback.infrastructure.retry import RetryPolicy

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()
    session_maker = get_session_maker()

    # The facade always serves the local database
    policy = RetryPolicy.from_settings(settings)
    app.state.collections = {
        name: build_adapter("sql", name, session_maker=session_maker, policy=policy)
        for name in COLLECTIONS
    }

    services = build_services(settings, session_maker=session_maker)
    app.state.services = services
    await services.network.refresh()
    services.sync.start()
    logger.info("QR Feedback API started successfully")

    yield

    # Shutdown
    await services.sync.stop()
    await dispose_engine()
    logger.info("QR Feedback API shutting down")


app = FastAPI(
    title="QR Feedback API",
    description="QR code feedback collection: lifecycle, validation and sync",
    version="0.1.0",
    lifespan=lifespan
)

ALLOWED_ORIGINS = [
    *[f"http://localhost:{port}" for port in range(3000, 3007)],
    *[f"http://127.0.0.1:{port}" for port in range(3000, 3007)],
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationViolation)
async def validation_violation_handler(request: Request, exc: ValidationViolation):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ScanRejected)
async def scan_rejected_handler(request: Request, exc: ScanRejected):
    return JSONResponse(
        status_code=SCAN_HTTP_STATUS[exc.status],
        content={"detail": {"status": exc.status.value, "message": SCAN_MESSAGES[exc.status]}},
    )


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
    logger.error(f"Local storage full: {exc}")
    return JSONResponse(status_code=507, content={"detail": "Local storage is full, delete old QR codes or feedback"})


@app.exception_handler(TransientIOError)
async def transient_io_handler(request: Request, exc: TransientIOError):
    logger.error(f"Storage unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable, please retry"})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": "Storage backend rejected the request"})


# Routers
app.include_router(collections.router, prefix="/api/db", tags=["db"])
app.include_router(qr_codes.router, prefix="/api/v1/qr-codes", tags=["qr-codes"])
app.include_router(feedback.router, prefix="/api/v1/feedback", tags=["feedback"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "qr-feedback"}


@app.get("/")
async def root():
    return {"message": "QR Feedback API", "docs": "/docs"}
