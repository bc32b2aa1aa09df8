from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Sequence
from sqlalchemy import desc, func
from sqlalchemy.future import select

from signal_backtest.domain import PerformanceRecord, SignalRecord, SignalType
from signal_backtest.models import SignalPerformance, TradingSignal


class SignalSource(ABC):
    @abstractmethod
    async def get_signals(self, symbol: str, start: datetime, end: datetime) -> List[SignalRecord]:
        """Signals for symbol with start <= generated_at <= end, oldest first."""
        pass

    @abstractmethod
    async def count_signals(self, symbol: str) -> int:
        """Number of signals ever recorded for symbol."""
        pass

    @abstractmethod
    async def add_signals(self, signals: Sequence[SignalRecord]) -> None:
        pass

    @abstractmethod
    async def get_latest(self, symbol: str, limit: int) -> List[SignalRecord]:
        """Most recent signals for symbol, newest first."""
        pass


class PerformanceRepository(ABC):
    @abstractmethod
    async def save_all(self, performances: Sequence[PerformanceRecord]) -> None:
        """Persist all rows in one transaction. Either every row is stored or none is."""
        pass

    @abstractmethod
    async def get_by_symbol(self, symbol: str) -> List[PerformanceRecord]:
        """Every stored evaluation for symbol, newest first."""
        pass

    @abstractmethod
    async def get_recent(self, symbol: str, take: int = 20) -> List[PerformanceRecord]:
        pass


def _to_signal_record(row: TradingSignal) -> SignalRecord:
    return SignalRecord(
        id=row.id,
        symbol=row.symbol,
        generated_at=row.generated_at,
        signal_type=SignalType.parse(row.signal_type),
        strategy=row.strategy,
    )


def _to_performance_record(row: SignalPerformance) -> PerformanceRecord:
    return PerformanceRecord(
        id=row.id,
        trading_signal_id=row.trading_signal_id,
        evaluated_at=row.evaluated_at,
        actual_return=row.actual_return,
        benchmark_return=row.benchmark_return,
        was_profitable=row.was_profitable,
        days_held=row.days_held,
        entry_price=row.entry_price,
        exit_price=row.exit_price,
        max_drawdown=row.max_drawdown,
        notes=row.notes or "",
    )


class SqlAlchemySignalSource(SignalSource):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def get_signals(self, symbol: str, start: datetime, end: datetime) -> List[SignalRecord]:
        async with self.session_factory() as db:
            stmt = (
                select(TradingSignal)
                .where(
                    TradingSignal.symbol == symbol,
                    TradingSignal.generated_at >= start,
                    TradingSignal.generated_at <= end,
                )
                .order_by(TradingSignal.generated_at)
            )
            res = await db.execute(stmt)
            return [_to_signal_record(s) for s in res.scalars().all()]

    async def count_signals(self, symbol: str) -> int:
        async with self.session_factory() as db:
            stmt = select(func.count()).select_from(TradingSignal).where(TradingSignal.symbol == symbol)
            return int(await db.scalar(stmt) or 0)

    async def add_signals(self, signals: Sequence[SignalRecord]) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                db.add_all([
                    TradingSignal(
                        id=s.id,
                        symbol=s.symbol,
                        generated_at=s.generated_at,
                        strategy=s.strategy,
                        signal_type=s.signal_type.value,
                    )
                    for s in signals
                ])

    async def get_latest(self, symbol: str, limit: int) -> List[SignalRecord]:
        async with self.session_factory() as db:
            stmt = (
                select(TradingSignal)
                .where(TradingSignal.symbol == symbol)
                .order_by(desc(TradingSignal.generated_at))
                .limit(limit)
            )
            res = await db.execute(stmt)
            return [_to_signal_record(s) for s in res.scalars().all()]


class SqlAlchemyPerformanceRepository(PerformanceRepository):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def save_all(self, performances: Sequence[PerformanceRecord]) -> None:
        # db.begin() commits on exit and rolls back if anything raises
        async with self.session_factory() as db:
            async with db.begin():
                db.add_all([
                    SignalPerformance(
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
                    for p in performances
                ])

    def _by_symbol(self, symbol: str):
        return (
            select(SignalPerformance)
            .join(TradingSignal, SignalPerformance.trading_signal_id == TradingSignal.id)
            .where(TradingSignal.symbol == symbol)
            .order_by(desc(SignalPerformance.evaluated_at))
        )

    async def get_by_symbol(self, symbol: str) -> List[PerformanceRecord]:
        async with self.session_factory() as db:
            res = await db.execute(self._by_symbol(symbol))
            return [_to_performance_record(p) for p in res.scalars().all()]

    async def get_recent(self, symbol: str, take: int = 20) -> List[PerformanceRecord]:
        async with self.session_factory() as db:
            res = await db.execute(self._by_symbol(symbol).limit(take))
            return [_to_performance_record(p) for p in res.scalars().all()]
