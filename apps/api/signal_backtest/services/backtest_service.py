import asyncio
from datetime import datetime
from typing import List, Optional, Tuple

from signal_backtest.config import get_settings
from signal_backtest.domain import (
    BacktestRequest,
    BacktestResult,
    BacktestSummary,
    EquityCurvePoint,
    PerformanceRecord,
)
from signal_backtest.services.backtest_engine import BacktestEngine
from signal_backtest.services.data_provider import (
    DatabasePriceAccessor,
    PriceSeriesAccessor,
    YahooFinancePriceAccessor,
)
from signal_backtest.services.equity_curve import EquityCurveBuilder
from signal_backtest.services.repositories import (
    PerformanceRepository,
    SignalSource,
    SqlAlchemyPerformanceRepository,
    SqlAlchemySignalSource,
)
from signal_backtest.services.summary_aggregator import SummaryAggregator


class BacktestService:
    """Entry point for the API layer: runs, summaries, recent evaluations and equity curves."""

    def __init__(
        self,
        signal_source: SignalSource,
        price_accessor: PriceSeriesAccessor,
        performance_repository: PerformanceRepository,
        equity_base: float = 100.0,
        default_recent_take: int = 20,
    ):
        self.signal_source = signal_source
        self.performance_repository = performance_repository
        self.default_recent_take = default_recent_take
        self.engine = BacktestEngine(signal_source, price_accessor, performance_repository)
        self.aggregator = SummaryAggregator(signal_source, performance_repository)
        self.curves = EquityCurveBuilder(performance_repository, base=equity_base)

    async def run_backtest(self, request: BacktestRequest) -> BacktestResult:
        return await self.engine.run_backtest(request)

    async def get_summary(self, symbol: str) -> BacktestSummary:
        return await self.aggregator.summarize(symbol)

    async def get_recent_performances(self, symbol: str, take: int = 20) -> List[PerformanceRecord]:
        if take <= 0:
            take = self.default_recent_take
        return await self.performance_repository.get_recent(symbol.strip().upper(), take)

    async def get_dashboard(self, symbol: str, recent: int = 10) -> Tuple[BacktestSummary, List[PerformanceRecord]]:
        return await asyncio.gather(
            self.get_summary(symbol),
            self.get_recent_performances(symbol, recent),
        )

    async def get_equity_curve(
        self,
        symbol: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        compounded: bool = True,
    ) -> List[EquityCurvePoint]:
        return await self.curves.build_curve(symbol, start_date, end_date, compounded)

    async def get_equity_curve_daily(
        self,
        symbol: str,
        start_date: datetime,
        end_date: datetime,
        compounded: bool = True,
    ) -> List[EquityCurvePoint]:
        return await self.curves.build_daily_curve(symbol, start_date, end_date, compounded)


def build_price_accessor(session_factory) -> PriceSeriesAccessor:
    settings = get_settings()
    if settings.PRICE_SOURCE.lower() == "yahoo":
        return YahooFinancePriceAccessor(ticker_suffix=settings.YAHOO_TICKER_SUFFIX)
    return DatabasePriceAccessor(session_factory)


def get_backtest_service() -> BacktestService:
    """FastAPI dependency. Each repository opens its own sessions so reads can run concurrently."""
    from signal_backtest.database import AsyncSessionLocal

    settings = get_settings()
    return BacktestService(
        signal_source=SqlAlchemySignalSource(AsyncSessionLocal),
        price_accessor=build_price_accessor(AsyncSessionLocal),
        performance_repository=SqlAlchemyPerformanceRepository(AsyncSessionLocal),
        equity_base=settings.EQUITY_CURVE_BASE,
        default_recent_take=settings.DEFAULT_RECENT_TAKE,
    )


def get_signal_source() -> SignalSource:
    from signal_backtest.database import AsyncSessionLocal

    return SqlAlchemySignalSource(AsyncSessionLocal)
