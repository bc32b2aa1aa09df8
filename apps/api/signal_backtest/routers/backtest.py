from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import List, Optional

from signal_backtest.config import get_settings
from signal_backtest.exceptions import BacktestValidationError
from signal_backtest.schemas.backtest import (
    BacktestCreate,
    BacktestDashboardResponse,
    BacktestResultResponse,
    BacktestSummaryResponse,
    EquityCurvePointResponse,
    SignalPerformanceResponse,
    curve_response,
    performance_response,
    result_response,
    summary_response,
)
from signal_backtest.services.backtest_service import BacktestService, get_backtest_service
from signal_backtest.utils.time import to_naive_utc

router = APIRouter()

def require_symbol(symbol: str) -> str:
    if not symbol or not symbol.strip():
        raise BacktestValidationError("Symbol is required.")
    return symbol

@router.post("/run", response_model=BacktestResultResponse)
async def run_backtest(
    params: BacktestCreate,
    service: BacktestService = Depends(get_backtest_service)
):
    result = await service.run_backtest(params.to_request())
    return result_response(result)

@router.get("/{symbol}/summary", response_model=BacktestSummaryResponse)
async def get_summary(symbol: str, service: BacktestService = Depends(get_backtest_service)):
    summary = await service.get_summary(require_symbol(symbol))
    return summary_response(summary)

@router.get("/{symbol}/recent", response_model=List[SignalPerformanceResponse])
async def get_recent(
    symbol: str,
    take: int = get_settings().DEFAULT_RECENT_TAKE,
    service: BacktestService = Depends(get_backtest_service)
):
    """
    Most recent evaluations for a symbol, newest first. take <= 0 falls back to DEFAULT_RECENT_TAKE.
    """
    recent = await service.get_recent_performances(require_symbol(symbol), take)
    return [performance_response(p) for p in recent]

@router.get("/{symbol}/dashboard", response_model=BacktestDashboardResponse)
async def get_dashboard(
    symbol: str,
    recent: int = get_settings().DEFAULT_DASHBOARD_RECENT,
    service: BacktestService = Depends(get_backtest_service)
):
    summary, performances = await service.get_dashboard(require_symbol(symbol), recent)
    return BacktestDashboardResponse(
        summary=summary_response(summary),
        recent_performances=[performance_response(p) for p in performances]
    )

@router.get("/{symbol}/equity-curve", response_model=List[EquityCurvePointResponse])
async def get_equity_curve(
    symbol: str,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    compounded: bool = True,
    service: BacktestService = Depends(get_backtest_service)
):
    curve = await service.get_equity_curve(
        require_symbol(symbol), to_naive_utc(start_date), to_naive_utc(end_date), compounded
    )
    return curve_response(curve)

@router.get("/{symbol}/equity-curve/daily", response_model=List[EquityCurvePointResponse])
async def get_equity_curve_daily(
    symbol: str,
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    compounded: bool = True,
    service: BacktestService = Depends(get_backtest_service)
):
    """
    Step-function curve with one point per calendar day.
    """
    start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
    if start_date > end_date:
        raise BacktestValidationError(
            "Valid startDate and endDate are required, and startDate must be before or equal to endDate."
        )

    curve = await service.get_equity_curve_daily(require_symbol(symbol), start_date, end_date, compounded)
    return curve_response(curve)
