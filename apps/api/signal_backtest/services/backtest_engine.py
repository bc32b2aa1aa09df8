import asyncio
import uuid
from datetime import timedelta
from typing import List, Tuple

import pandas as pd
import structlog

from signal_backtest.domain import (
    BacktestRequest,
    BacktestResult,
    PerformanceRecord,
    SignalRecord,
    SkippedSignal,
    Trade,
)
from signal_backtest.exceptions import (
    BacktestValidationError,
    DataSourceError,
    PerformanceNotRecordedError,
)
from signal_backtest.services.data_provider import PriceSeriesAccessor
from signal_backtest.services.metrics import compute_return_stats
from signal_backtest.services.repositories import PerformanceRepository, SignalSource
from signal_backtest.services.trade_evaluator import get_evaluator
from signal_backtest.utils.numbers import round2
from signal_backtest.utils.time import to_naive_utc, utc_now

logger = structlog.get_logger()


class BacktestEngine:
    """
    Runs a signal backtest for one symbol.

    Signals and prices come from the injected collaborators, each signal is
    evaluated independently (overlapping trades are allowed), and one
    signal_performances row per trade is written in a single batch once every
    signal has been evaluated.
    """

    def __init__(
        self,
        signal_source: SignalSource,
        price_accessor: PriceSeriesAccessor,
        performance_repository: PerformanceRepository,
    ):
        self.signal_source = signal_source
        self.price_accessor = price_accessor
        self.performance_repository = performance_repository

    async def run_backtest(self, request: BacktestRequest) -> BacktestResult:
        self.validate(request)

        symbol = request.symbol.strip().upper()
        start = to_naive_utc(request.start_date)
        end = to_naive_utc(request.end_date)
        holding = max(1, request.holding_period_days)
        evaluator = get_evaluator(request.strategy)
        log = logger.bind(symbol=symbol)

        result = BacktestResult(symbol=symbol, start_date=start, end_date=end)

        signals, prices = await self._load(symbol, start, end)
        if not signals:
            log.info("No signals found", start=str(start), end=str(end))
            return result

        log.info("Backtest started", signals=len(signals), bars=len(prices), holding_period_days=holding)

        trades: List[Trade] = []
        for signal in signals:
            window_end = min(signal.generated_at.date() + timedelta(days=holding), end.date())
            outcome = evaluator.evaluate(
                signal,
                prices,
                holding_period_days=holding,
                window_end_date=window_end,
                stop_loss_percent=request.stop_loss_percent,
                take_profit_percent=request.take_profit_percent,
            )
            if isinstance(outcome, SkippedSignal):
                result.skipped.append(outcome)
            else:
                trades.append(outcome)
            # Give cancellation a chance between signals
            await asyncio.sleep(0)

        if not trades:
            log.info("No signals could be evaluated", skipped=len(result.skipped))
            return result

        stats = compute_return_stats(
            [t.return_percent for t in trades],
            [t.profitable for t in trades],
            [t.max_drawdown_percent for t in trades],
        )
        result.trades = sorted(trades, key=lambda t: t.entry_date)
        result.total_trades = stats.count
        result.winning_trades = stats.winners
        result.losing_trades = stats.losers
        result.average_return = stats.average_return
        result.cumulative_return = stats.cumulative_return
        result.max_drawdown = stats.max_drawdown

        evaluated_at = utc_now()
        performances = [self._to_performance(t, evaluated_at) for t in trades]
        try:
            await self.performance_repository.save_all(performances)
        except Exception as e:
            log.error("Backtest computed but results were not saved", error=str(e), trades=len(trades))
            raise PerformanceNotRecordedError(
                f"Backtest for {symbol} was computed but its results could not be saved",
                result=result,
            ) from e

        log.info(
            "Backtest finished",
            trades=result.total_trades,
            skipped=len(result.skipped),
            cumulative_return=result.cumulative_return,
        )
        return result

    @staticmethod
    def validate(request: BacktestRequest) -> None:
        if not request.symbol or not request.symbol.strip():
            raise BacktestValidationError("Symbol is required")
        if request.start_date is None or request.end_date is None:
            raise BacktestValidationError("StartDate and EndDate are required")
        if to_naive_utc(request.start_date) >= to_naive_utc(request.end_date):
            raise BacktestValidationError("StartDate must be earlier than EndDate")
        if request.take_profit_percent is not None and request.take_profit_percent <= 0:
            raise BacktestValidationError("TakeProfitPercent must be greater than zero")
        if request.stop_loss_percent is not None and request.stop_loss_percent == 0:
            raise BacktestValidationError("StopLossPercent must not be zero")

    async def _load(self, symbol, start, end) -> Tuple[List[SignalRecord], pd.DataFrame]:
        # Pad the price window by a day on each side so boundary signals still find bars
        price_start = start.date() - timedelta(days=1)
        price_end = end.date() + timedelta(days=1)
        try:
            return await asyncio.gather(
                self.signal_source.get_signals(symbol, start, end),
                self.price_accessor.get_daily_ohlcv(symbol, price_start, price_end),
            )
        except Exception as e:
            logger.error("Failed to load backtest inputs", symbol=symbol, error=str(e))
            raise DataSourceError(f"Failed to load signals or prices for {symbol}: {e}") from e

    @staticmethod
    def _to_performance(trade: Trade, evaluated_at) -> PerformanceRecord:
        return PerformanceRecord(
            id=str(uuid.uuid4()),
            trading_signal_id=trade.signal_id,
            evaluated_at=evaluated_at,
            actual_return=round2(trade.return_percent),
            benchmark_return=0.0,
            was_profitable=trade.profitable,
            days_held=trade.days_held,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,
            max_drawdown=round2(trade.max_drawdown_percent),
            notes=trade.notes,
        )
