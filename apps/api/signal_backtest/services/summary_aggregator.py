import asyncio

from signal_backtest.domain import BacktestSummary
from signal_backtest.services.metrics import compute_return_stats
from signal_backtest.services.repositories import PerformanceRepository, SignalSource


class SummaryAggregator:
    """Roll-up over every stored evaluation of a symbol, across all runs. Read-only."""

    def __init__(self, signal_source: SignalSource, performance_repository: PerformanceRepository):
        self.signal_source = signal_source
        self.performance_repository = performance_repository

    async def summarize(self, symbol: str) -> BacktestSummary:
        symbol = symbol.strip().upper()
        total_signals, performances = await asyncio.gather(
            self.signal_source.count_signals(symbol),
            self.performance_repository.get_by_symbol(symbol),
        )

        summary = BacktestSummary(
            symbol=symbol,
            total_signals=total_signals,
            evaluated_signals=len(performances),
        )
        if not performances:
            return summary

        stats = compute_return_stats(
            [p.actual_return for p in performances],
            [p.was_profitable for p in performances],
            [p.max_drawdown for p in performances],
        )
        summary.average_return = stats.average_return
        summary.cumulative_return = stats.cumulative_return
        summary.win_rate = stats.win_rate
        summary.max_drawdown = stats.max_drawdown
        summary.last_evaluated_at = max(p.evaluated_at for p in performances)
        return summary
