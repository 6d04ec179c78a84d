"""Isolator Modal Analysis API — FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from isolation_api.logging_config import setup_logging  # noqa: E402
from isolation_api.middleware.rate_limit import RateLimitMiddleware  # noqa: E402
from isolation_api.routes import analysis, auth, billing  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    setup_logging()
    from isolation_api.database import init_db
    init_db()
    logger.info("Isolator Modal Analysis API started")
    yield


app = FastAPI(
    title="Isolator Modal Analysis API",
    description="Natural frequency calculator for rigid bodies on elastic isolators",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS — allow frontend origins
_frontend_url = os.getenv("FRONTEND_URL")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[_frontend_url] if _frontend_url else [],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting — 60 req/min general, 20 req/min for calculations
app.add_middleware(RateLimitMiddleware, requests_per_minute=60, calculation_requests_per_minute=20)

app.include_router(analysis.router, prefix="/api", tags=["Analysis"])
app.include_router(auth.router, prefix="/api", tags=["Auth"])
app.include_router(billing.router, prefix="/api", tags=["Billing"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "isolation-api"}
