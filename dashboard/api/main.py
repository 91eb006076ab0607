"""
Pipeline Commitment Analytics — API Server
============================================

HTTP layer over the opportunity/commitment analytics engine.

Route groups:
  /api/health              - Health check
  /api/analysis/*          - Run analyses, read the cached result
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analytics.lib.config import load_config
from analytics.lib.logger import setup_logger
from analytics.lib.result_cache import ResultCache
from dashboard.api.routers.analysis import router as analysis_router

load_dotenv()

logger = setup_logger("api")

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Pipeline Commitment Analytics...")

    config = load_config()
    cache_config = config["cache"]
    if cache_config.get("enabled"):
        cache = ResultCache(cache_config["path"])
        logger.info(
            "Result cache: %s (%s)",
            cache.path, "populated" if cache.exists else "empty",
        )
    else:
        logger.info("Result cache disabled")

    logger.info("Pipeline Commitment Analytics ready")
    yield
    logger.info("Shutting down Pipeline Commitment Analytics...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
).split(",")

app = FastAPI(
    title="Pipeline Commitment Analytics",
    version=VERSION,
    description="Opportunity/commitment join, coverage gaps and pipeline KPIs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

app.include_router(analysis_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check."""
    config = load_config()
    cache_config = config["cache"]
    cache_populated = bool(
        cache_config.get("enabled") and ResultCache(cache_config["path"]).exists
    )
    return {
        "status": "healthy",
        "service": "Pipeline Commitment Analytics",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": {
            "enabled": bool(cache_config.get("enabled")),
            "populated": cache_populated,
        },
    }
