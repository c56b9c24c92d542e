"""
FastAPI application: read API over end-of-day bars, indicators and market
breadth, plus admin triggers for the refresh and ingestion jobs.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketpulse.api.admin import router as admin_router
from marketpulse.api.market import router as market_router
from marketpulse.core.config import settings
from marketpulse.core.database import close_db
from marketpulse.core.logging import setup_logging
from marketpulse.core.redis import close_redis

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="End-of-day technical indicators, market spirit and uptrend screening",
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup() -> None:
    logger.info(
        "%s %s starting (%s), default segment %s",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.ENVIRONMENT,
        settings.DEFAULT_MARKET_TYPE,
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_db()
    await close_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "default_market_type": settings.DEFAULT_MARKET_TYPE,
    }


app.include_router(market_router, prefix="/api/v1/market", tags=["market"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
