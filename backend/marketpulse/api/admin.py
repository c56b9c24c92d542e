"""
Admin API Router.

Manual triggers for the indicator refresh job and the end-of-day pipeline.
"""

from datetime import date
from typing import Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from marketpulse.core.exceptions import UpstreamError
from marketpulse.services import market_data_service
from marketpulse.services.indicator_refresh_service import IndicatorRefreshService

router = APIRouter()

EodPipeline = Callable[[date, Optional[str]], Awaitable[dict]]


def get_refresh_service() -> IndicatorRefreshService:
    return IndicatorRefreshService()


def get_eod_pipeline() -> EodPipeline:
    return market_data_service.run_eod_pipeline


# ---------- Pydantic Schemas ----------

class RefreshRequest(BaseModel):
    trade_date: date
    market_type: Optional[str] = None


class RefreshResponse(BaseModel):
    """Outcome of one refresh run. ``errors`` maps failed symbols to the error text."""
    trade_date: date
    market_type: str
    symbols: int
    updated: int
    failed: int
    errors: Dict[str, str]


class EodRunResponse(BaseModel):
    trade_date: date
    fetched: int
    created: int
    symbols_upserted: int
    updated: int
    failed: int


# ---------- Endpoints ----------

@router.post("/indicators/refresh", response_model=RefreshResponse)
async def refresh_indicators(
    request: RefreshRequest,
    service: IndicatorRefreshService = Depends(get_refresh_service),
) -> RefreshResponse:
    """Recompute indicator snapshots for every symbol traded on the date. Idempotent."""
    summary = await service.refresh(request.trade_date, request.market_type)
    return RefreshResponse(
        trade_date=summary.trade_date,
        market_type=summary.market_type,
        symbols=summary.symbols,
        updated=summary.updated,
        failed=summary.failed,
        errors=summary.errors,
    )


@router.post("/eod/run", response_model=EodRunResponse)
async def run_eod(
    request: RefreshRequest,
    pipeline: EodPipeline = Depends(get_eod_pipeline),
) -> EodRunResponse:
    """Ingest the date from the exchange feed, then refresh its indicators."""
    try:
        result = await pipeline(request.trade_date, request.market_type)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return EodRunResponse(
        trade_date=result["date"],
        fetched=result["fetched"],
        created=result["created"],
        symbols_upserted=result["symbols_upserted"],
        updated=result["updated"],
        failed=result["failed"],
    )
