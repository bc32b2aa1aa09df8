from datetime import date, datetime, timedelta
from decimal import Decimal
from itertools import groupby
from typing import Iterable, List, Optional

from signal_backtest.domain import EquityCurvePoint, PerformanceRecord
from signal_backtest.exceptions import BacktestValidationError
from signal_backtest.services.repositories import PerformanceRepository
from signal_backtest.utils.numbers import round2, to_decimal

HUNDRED = Decimal(100)


def _apply(equity: Decimal, base: Decimal, return_percent: float, compounded: bool) -> Decimal:
    r = to_decimal(return_percent)
    if compounded:
        return equity * (1 + r / HUNDRED)
    # additive: fixed notional, every trade moves equity by r% of the base
    return equity + base * r / HUNDRED


class EquityCurveBuilder:
    """
    Equity curves from stored trade returns.

    Both modes start from a notional base (100 by default). Additive mode adds each
    percentage return to the running total, compounded mode reinvests:
    base * prod(1 + r / 100). Running values are kept in Decimal and rounded to
    cents only on output.
    """

    def __init__(self, performance_repository: PerformanceRepository, base: float = 100.0):
        self.performance_repository = performance_repository
        self.base = to_decimal(base)

    async def _ordered(self, symbol: str) -> List[PerformanceRecord]:
        rows = await self.performance_repository.get_by_symbol(symbol.strip().upper())
        return sorted(rows, key=lambda p: p.evaluated_at)

    async def build_curve(
        self,
        symbol: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        compounded: bool = True,
    ) -> List[EquityCurvePoint]:
        """One point per stored evaluation, optionally limited to evaluation dates in [start_date, end_date]."""
        rows = await self._ordered(symbol)
        if start_date is not None:
            rows = [p for p in rows if p.evaluated_at.date() >= _as_date(start_date)]
        if end_date is not None:
            rows = [p for p in rows if p.evaluated_at.date() <= _as_date(end_date)]

        points = []
        equity = self.base
        for p in rows:
            equity = _apply(equity, self.base, p.actual_return, compounded)
            points.append(EquityCurvePoint(date=p.evaluated_at, equity=round2(equity)))
        return points

    async def build_daily_curve(
        self,
        symbol: str,
        start_date: datetime,
        end_date: datetime,
        compounded: bool = True,
    ) -> List[EquityCurvePoint]:
        """
        One point per calendar day from start_date to end_date inclusive.
        Every evaluation on a day is applied to that day's point, days without
        evaluations carry the previous value forward.
        """
        first, last = _as_date(start_date), _as_date(end_date)
        if first > last:
            raise BacktestValidationError("startDate must be before or equal to endDate")

        rows = [p for p in await self._ordered(symbol) if first <= p.evaluated_at.date() <= last]
        by_day = {
            day: [p.actual_return for p in group]
            for day, group in groupby(rows, key=lambda p: p.evaluated_at.date())
        }

        points = []
        equity = self.base
        for day in _days(first, last):
            for r in by_day.get(day, ()):
                equity = _apply(equity, self.base, r, compounded)
            points.append(EquityCurvePoint(date=datetime.combine(day, datetime.min.time()), equity=round2(equity)))
        return points


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def _days(first: date, last: date) -> Iterable[date]:
    for offset in range((last - first).days + 1):
        yield first + timedelta(days=offset)
