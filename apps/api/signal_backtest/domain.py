"""
Plain value types passed between the data sources, the engine and the API layer.

ORM rows never leave the repositories; everything the engine sees or returns is
one of these.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from signal_backtest.utils.numbers import round2


class SignalType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @classmethod
    def parse(cls, value: str) -> "SignalType":
        return cls(value.strip().upper())


class ExitReason(str, enum.Enum):
    TRIGGER = "TRIGGER"
    HOLDING_PERIOD_END = "HOLDING_PERIOD_END"


@dataclass(frozen=True)
class PriceBar:
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True)
class SignalRecord:
    id: str
    symbol: str
    generated_at: datetime
    signal_type: SignalType = SignalType.BUY
    strategy: str = "default"


@dataclass(frozen=True)
class BacktestRequest:
    symbol: str
    start_date: datetime
    end_date: datetime
    holding_period_days: int = 5
    stop_loss_percent: Optional[float] = None
    take_profit_percent: Optional[float] = None
    strategy: str = "default"


@dataclass(frozen=True)
class Trade:
    signal_id: str
    signal_type: SignalType
    entry_date: date
    entry_price: float
    exit_date: date
    exit_price: float
    return_percent: float
    max_drawdown_percent: float
    days_held: int
    profitable: bool
    exit_reason: ExitReason
    trigger: Optional[str] = None  # "take_profit" | "stop_loss"
    notes: str = ""


@dataclass(frozen=True)
class SkippedSignal:
    signal_id: str
    reason: str


@dataclass
class BacktestResult:
    symbol: str
    start_date: datetime
    end_date: datetime
    trades: List[Trade] = field(default_factory=list)
    skipped: List[SkippedSignal] = field(default_factory=list)
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    average_return: float = 0.0
    cumulative_return: float = 0.0
    max_drawdown: float = 0.0

    @property
    def win_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return round2(self.winning_trades / self.total_trades * 100)


@dataclass
class PerformanceRecord:
    """Read model of a persisted signal_performances row."""
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


@dataclass
class BacktestSummary:
    symbol: str
    total_signals: int = 0
    evaluated_signals: int = 0
    average_return: float = 0.0
    cumulative_return: float = 0.0
    win_rate: float = 0.0
    max_drawdown: float = 0.0
    last_evaluated_at: Optional[datetime] = None


@dataclass(frozen=True)
class EquityCurvePoint:
    date: datetime
    equity: float
