from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from marketpulse.core.exceptions import NoTradingDataError
from marketpulse.services.market_query_service import MarketQueryService

router = APIRouter()

CandlestickTimeframe = Literal["1D", "3D", "1W", "1M", "3M"]
ChangePeriod = Literal["1D", "1W", "1M", "3M"]


def get_market_query_service() -> MarketQueryService:
    return MarketQueryService()


class MarketRowResponse(BaseModel):
    trade_date: date
    symbol: str
    market_type: Optional[str] = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    base_price: Optional[float] = None
    change: Optional[float] = None
    volume: Optional[float] = None
    turnover: Optional[float] = None
    market_cap: Optional[float] = None
    rsi14: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None
    cci20: Optional[float] = None
    mfi14: Optional[float] = None
    turnover10: Optional[float] = None
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    stddev20: Optional[float] = None
    upper_band20: Optional[float] = None
    lower_band20: Optional[float] = None
    ez: Optional[float] = None
    company_name: Optional[str] = None
    sector: Optional[str] = None
    sub_sector: Optional[str] = None

    class Config:
        from_attributes = True


class EndOfDayResponse(BaseModel):
    trade_date: date
    market_type: str
    rows: List[MarketRowResponse]


class MarketSentimentResponse(BaseModel):
    trade_date: date
    market_type: str
    universe_size: int
    score: Optional[Literal["Defense", "Selective", "Attack"]] = None
    points: Optional[int] = None
    breadth: Optional[int] = None
    breadth_line: Optional[int] = None


class UptrendItemResponse(BaseModel):
    symbol: str
    ez: Optional[float] = None


class UptrendResponse(BaseModel):
    trade_date: date
    market_type: str
    count: int
    items: List[UptrendItemResponse]


class SymbolRowsResponse(BaseModel):
    symbols: List[str]
    count: int
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    items: List[MarketRowResponse]


class CandlestickResponse(BaseModel):
    symbol: str
    timeframe: CandlestickTimeframe
    count: int
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    items: List[MarketRowResponse]


class HeatmapItemResponse(BaseModel):
    symbol: str
    company_name: Optional[str] = None
    market_cap: Optional[float] = None
    change: Optional[float] = None
    sector: str
    sub_sector: Optional[str] = None


class SectorHeatmapResponse(BaseModel):
    trade_date: date
    market_type: str
    period: ChangePeriod
    count: int
    items: List[HeatmapItemResponse]


def _rows(items) -> List[MarketRowResponse]:
    return [MarketRowResponse.model_validate(item) for item in items]


def _not_found(exc: NoTradingDataError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


@router.get("/end-of-day", response_model=EndOfDayResponse)
async def get_end_of_day(
    market_type: Optional[str] = Query(default=None, description="Market segment, e.g. STOCK"),
    trade_date: Optional[date] = Query(default=None),
    service: MarketQueryService = Depends(get_market_query_service),
) -> EndOfDayResponse:
    """All rows for a trade date with stored indicators."""
    try:
        result = await service.get_end_of_day(market_type, trade_date)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return EndOfDayResponse(
        trade_date=result.trade_date,
        market_type=result.market_type,
        rows=_rows(result.rows),
    )


@router.get("/sentiment", response_model=MarketSentimentResponse)
async def get_market_sentiment(
    market_type: Optional[str] = Query(default=None),
    trade_date: Optional[date] = Query(default=None),
    service: MarketQueryService = Depends(get_market_query_service),
) -> MarketSentimentResponse:
    """
    Market spirit composite score. ``score`` is null when the segment has
    no rows for the date.
    """
    try:
        reading = await service.get_market_sentiment(market_type, trade_date)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return MarketSentimentResponse(
        trade_date=reading.trade_date,
        market_type=reading.market_type,
        universe_size=reading.universe_size,
        score=reading.regime.value if reading.regime else None,
        points=reading.points,
        breadth=reading.breadth,
        breadth_line=reading.breadth_line,
    )


@router.get("/uptrend", response_model=UptrendResponse)
async def get_uptrend_symbols(
    market_type: Optional[str] = Query(default=None),
    trade_date: Optional[date] = Query(default=None),
    service: MarketQueryService = Depends(get_market_query_service),
) -> UptrendResponse:
    try:
        result = await service.get_uptrend_symbols(market_type, trade_date)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return UptrendResponse(
        trade_date=result.trade_date,
        market_type=result.market_type,
        count=result.count,
        items=[UptrendItemResponse(symbol=item.symbol, ez=item.ez) for item in result.items],
    )


@router.get("/symbols", response_model=SymbolRowsResponse)
async def get_symbol_history(
    symbols: List[str] = Query(default=[]),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    service: MarketQueryService = Depends(get_market_query_service),
) -> SymbolRowsResponse:
    try:
        result = await service.get_symbol_history(symbols, date_from, date_to)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return SymbolRowsResponse(
        symbols=result.symbols,
        count=result.count,
        date_from=result.date_from,
        date_to=result.date_to,
        items=_rows(result.items),
    )


@router.get("/symbols/by-date", response_model=SymbolRowsResponse)
async def get_symbols_by_date(
    symbols: List[str] = Query(...),
    trade_date: Optional[date] = Query(default=None),
    period: ChangePeriod = Query(default="1D"),
    service: MarketQueryService = Depends(get_market_query_service),
) -> SymbolRowsResponse:
    """Rows for one date; ``change`` covers the selected period."""
    try:
        result = await service.get_symbols_by_date(symbols, trade_date, period)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return SymbolRowsResponse(
        symbols=result.symbols,
        count=result.count,
        date_from=result.date_from,
        date_to=result.date_to,
        items=_rows(result.items),
    )


@router.get("/symbols/{symbol}/candlestick", response_model=CandlestickResponse)
async def get_candlestick(
    symbol: str,
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    timeframe: CandlestickTimeframe = Query(default="1D"),
    service: MarketQueryService = Depends(get_market_query_service),
) -> CandlestickResponse:
    try:
        result = await service.get_candlestick(symbol, date_from, date_to, timeframe)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return CandlestickResponse(
        symbol=result.symbol,
        timeframe=result.timeframe,
        count=result.count,
        date_from=result.date_from,
        date_to=result.date_to,
        items=_rows(result.items),
    )


@router.get("/sector-heatmap", response_model=SectorHeatmapResponse)
async def get_sector_heatmap(
    market_type: Optional[str] = Query(default=None),
    trade_date: Optional[date] = Query(default=None),
    period: ChangePeriod = Query(default="1D"),
    service: MarketQueryService = Depends(get_market_query_service),
) -> SectorHeatmapResponse:
    try:
        result = await service.get_sector_heatmap(market_type, trade_date, period)
    except NoTradingDataError as exc:
        raise _not_found(exc)
    return SectorHeatmapResponse(
        trade_date=result.trade_date,
        market_type=result.market_type,
        period=result.period,
        count=result.count,
        items=[
            HeatmapItemResponse(
                symbol=item.symbol,
                company_name=item.company_name,
                market_cap=item.market_cap,
                change=item.change,
                sector=item.sector,
                sub_sector=item.sub_sector,
            )
            for item in result.items
        ],
    )
