"""In-memory stand-ins for the engine's collaborators."""
from datetime import date, datetime
from typing import List, Optional

import pandas as pd

from signal_backtest.domain import PerformanceRecord, SignalRecord, SignalType
from signal_backtest.services.data_provider import PriceSeriesAccessor
from signal_backtest.services.repositories import PerformanceRepository, SignalSource


def make_prices(start: str, closes: List[float]) -> pd.DataFrame:
    """One bar per calendar day starting at `start`, open/high/low derived from close."""
    dates = pd.date_range(start=start, periods=len(closes), freq='D', name='date')
    return pd.DataFrame({
        'open': closes,
        'high': [c * 1.01 for c in closes],
        'low': [c * 0.99 for c in closes],
        'close': closes,
        'volume': [1000] * len(closes),
    }, index=dates)


def make_signal(signal_id: str, generated_at: datetime, symbol: str = "AAPL",
                signal_type: SignalType = SignalType.BUY) -> SignalRecord:
    return SignalRecord(id=signal_id, symbol=symbol, generated_at=generated_at, signal_type=signal_type)


def make_performance(evaluated_at: datetime, actual_return: float, signal_id: str = "sig",
                     max_drawdown: Optional[float] = 0.0) -> PerformanceRecord:
    return PerformanceRecord(
        id=f"perf-{signal_id}-{evaluated_at.isoformat()}",
        trading_signal_id=signal_id,
        evaluated_at=evaluated_at,
        actual_return=actual_return,
        benchmark_return=0.0,
        was_profitable=actual_return >= 0,
        days_held=1,
        max_drawdown=max_drawdown,
    )


class InMemorySignalSource(SignalSource):
    def __init__(self, signals: Optional[List[SignalRecord]] = None, error: Optional[Exception] = None):
        self.signals = list(signals or [])
        self.error = error
        self.calls = []

    async def get_signals(self, symbol, start, end):
        self.calls.append((symbol, start, end))
        if self.error:
            raise self.error
        found = [s for s in self.signals if s.symbol == symbol and start <= s.generated_at <= end]
        return sorted(found, key=lambda s: s.generated_at)

    async def count_signals(self, symbol):
        return sum(1 for s in self.signals if s.symbol == symbol)

    async def add_signals(self, signals):
        self.signals.extend(signals)

    async def get_latest(self, symbol, limit):
        found = [s for s in self.signals if s.symbol == symbol]
        return sorted(found, key=lambda s: s.generated_at, reverse=True)[:limit]


class InMemoryPriceAccessor(PriceSeriesAccessor):
    def __init__(self, prices: pd.DataFrame, error: Optional[Exception] = None):
        self.prices = prices
        self.error = error
        self.calls = []

    async def get_daily_ohlcv(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        self.calls.append((symbol, start_date, end_date))
        if self.error:
            raise self.error
        mask = (self.prices.index >= pd.Timestamp(start_date)) & (self.prices.index <= pd.Timestamp(end_date))
        return self.prices.loc[mask]


class InMemoryPerformanceRepository(PerformanceRepository):
    def __init__(self, signals: Optional[InMemorySignalSource] = None,
                 rows: Optional[List[PerformanceRecord]] = None, fail_on_save: bool = False):
        self.signals = signals
        self.rows = list(rows or [])
        self.fail_on_save = fail_on_save
        self.save_calls = 0

    async def save_all(self, performances):
        self.save_calls += 1
        if self.fail_on_save:
            raise RuntimeError("database is locked")
        self.rows.extend(performances)

    async def get_by_symbol(self, symbol):
        if self.signals is None:
            rows = list(self.rows)
        else:
            ids = {s.id for s in self.signals.signals if s.symbol == symbol}
            rows = [p for p in self.rows if p.trading_signal_id in ids]
        return sorted(rows, key=lambda p: p.evaluated_at, reverse=True)

    async def get_recent(self, symbol, take=20):
        return (await self.get_by_symbol(symbol))[:take]
