from pydantic import field_validator, model_validator
from datetime import date, datetime
from typing import List, Optional

from signal_backtest.config import get_settings
from signal_backtest.domain import (
    BacktestRequest,
    BacktestResult,
    BacktestSummary,
    EquityCurvePoint,
    ExitReason,
    PerformanceRecord,
    SignalType,
    Trade,
)
from signal_backtest.schemas.common import CamelModel
from signal_backtest.utils.numbers import round2
from signal_backtest.utils.time import to_naive_utc

class BacktestCreate(CamelModel):
    symbol: str
    start_date: datetime
    end_date: datetime
    holding_period_days: Optional[int] = None
    stop_loss_percent: Optional[float] = None
    take_profit_percent: Optional[float] = None
    strategy: str = "default"

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode='after')
    def check_range(self):
        if self.start_date >= self.end_date:
            raise ValueError("StartDate must be earlier than EndDate.")
        return self

    def to_request(self) -> BacktestRequest:
        return BacktestRequest(
            symbol=self.symbol,
            start_date=self.start_date,
            end_date=self.end_date,
            holding_period_days=(
                get_settings().DEFAULT_HOLDING_PERIOD_DAYS
                if self.holding_period_days is None else self.holding_period_days
            ),
            stop_loss_percent=self.stop_loss_percent,
            take_profit_percent=self.take_profit_percent,
            strategy=self.strategy,
        )

class BacktestTradeResponse(CamelModel):
    signal_id: str
    signal_type: SignalType
    entry_date: date
    exit_date: date
    entry_price: float
    exit_price: float
    return_percent: float
    max_drawdown_percent: float
    days_held: int
    was_profitable: bool
    exit_reason: ExitReason
    notes: str

class SkippedSignalResponse(CamelModel):
    signal_id: str
    reason: str

class BacktestResultResponse(CamelModel):
    symbol: str
    start_date: datetime
    end_date: datetime
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    average_return: float = 0.0
    cumulative_return: float = 0.0
    max_drawdown: float = 0.0
    win_rate: float = 0.0
    trades: List[BacktestTradeResponse] = []
    skipped: List[SkippedSignalResponse] = []

class BacktestSummaryResponse(CamelModel):
    symbol: str
    total_signals: int
    evaluated_signals: int
    average_return: float
    cumulative_return: float
    win_rate: float
    max_drawdown: float
    last_evaluated_at: Optional[datetime] = None

class SignalPerformanceResponse(CamelModel):
    id: str
    trading_signal_id: str
    evaluated_at: datetime
    actual_return: float
    benchmark_return: float
    was_profitable: bool
    days_held: int
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    max_drawdown: Optional[float] = None
    notes: str = ""

class BacktestDashboardResponse(CamelModel):
    summary: BacktestSummaryResponse
    recent_performances: List[SignalPerformanceResponse] = []

class EquityCurvePointResponse(CamelModel):
    date: datetime
    equity: float


def trade_response(t: Trade) -> BacktestTradeResponse:
    return BacktestTradeResponse(
        signal_id=t.signal_id,
        signal_type=t.signal_type,
        entry_date=t.entry_date,
        exit_date=t.exit_date,
        entry_price=t.entry_price,
        exit_price=t.exit_price,
        return_percent=round2(t.return_percent),
        max_drawdown_percent=round2(t.max_drawdown_percent),
        days_held=t.days_held,
        was_profitable=t.profitable,
        exit_reason=t.exit_reason,
        notes=t.notes,
    )

def result_response(r: BacktestResult) -> BacktestResultResponse:
    return BacktestResultResponse(
        symbol=r.symbol,
        start_date=r.start_date,
        end_date=r.end_date,
        total_trades=r.total_trades,
        winning_trades=r.winning_trades,
        losing_trades=r.losing_trades,
        average_return=r.average_return,
        cumulative_return=r.cumulative_return,
        max_drawdown=r.max_drawdown,
        win_rate=r.win_rate,
        trades=[trade_response(t) for t in r.trades],
        skipped=[SkippedSignalResponse(signal_id=s.signal_id, reason=s.reason) for s in r.skipped],
    )

def summary_response(s: BacktestSummary) -> BacktestSummaryResponse:
    return BacktestSummaryResponse(
        symbol=s.symbol,
        total_signals=s.total_signals,
        evaluated_signals=s.evaluated_signals,
        average_return=s.average_return,
        cumulative_return=s.cumulative_return,
        win_rate=s.win_rate,
        max_drawdown=s.max_drawdown,
        last_evaluated_at=s.last_evaluated_at,
    )

def performance_response(p: PerformanceRecord) -> SignalPerformanceResponse:
    return SignalPerformanceResponse(
        id=p.id,
        trading_signal_id=p.trading_signal_id,
        evaluated_at=p.evaluated_at,
        actual_return=p.actual_return,
        benchmark_return=p.benchmark_return,
        was_profitable=p.was_profitable,
        days_held=p.days_held,
        entry_price=p.entry_price,
        exit_price=p.exit_price,
        max_drawdown=p.max_drawdown,
        notes=p.notes,
    )

def curve_response(points: List[EquityCurvePoint]) -> List[EquityCurvePointResponse]:
    return [EquityCurvePointResponse(date=p.date, equity=p.equity) for p in points]
