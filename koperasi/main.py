from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from koperasi.api import admin, installments, loans, members, savings
from koperasi.core.config import settings
from koperasi.core.exceptions import LedgerError, InvalidInput
from koperasi.db.base import get_db
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Get logger for this module
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Koperasi Ledger API")
    yield
    logger.info("Stopping Koperasi Ledger API")


app = FastAPI(
    title="Koperasi Ledger API",
    description="Savings ledger and loan lifecycle for cooperative societies",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=12 * 60 * 60,
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Render domain errors as ``{"error": code, "detail": message}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as invalid input."""
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content={"error": InvalidInput.code, "detail": jsonable_encoder(exc.errors())},
    )


# Include routers
app.include_router(members.router)
app.include_router(savings.router)
app.include_router(loans.router)
app.include_router(installments.router)
app.include_router(admin.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Koperasi Ledger API", "version": "1.0.0"}


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint. Checks API and database connectivity."""
    db_status = "unreachable"
    db_error = None
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_error = str(e)

    status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": status,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
        },
        **({"database_error": db_error} if db_error else {})
    }
