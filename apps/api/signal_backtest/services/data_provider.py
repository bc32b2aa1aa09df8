from abc import ABC, abstractmethod
from typing import Iterable
import asyncio
import pandas as pd
from datetime import date
from sqlalchemy.future import select

from signal_backtest.domain import PriceBar
from signal_backtest.models import PriceDaily

PRICE_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


def empty_price_frame() -> pd.DataFrame:
    df = pd.DataFrame(columns=PRICE_COLUMNS)
    df.index = pd.DatetimeIndex([], name='date')
    return df


def bars_to_frame(bars: Iterable[PriceBar]) -> pd.DataFrame:
    """
    Build the canonical daily price frame from bars.
    Index: date (pd.DatetimeIndex, ascending, unique - last bar wins on duplicates)
    Columns: [open, high, low, close, volume]
    """
    data = [
        {'date': b.date, 'open': b.open, 'high': b.high, 'low': b.low, 'close': b.close, 'volume': b.volume}
        for b in bars
    ]
    if not data:
        return empty_price_frame()

    df = pd.DataFrame(data)
    df['date'] = pd.to_datetime(df['date']).dt.normalize()
    df.set_index('date', inplace=True)
    df = df.dropna(subset=['close'])
    df = df[~df.index.duplicated(keep='last')]
    return df[PRICE_COLUMNS].sort_index()


class PriceSeriesAccessor(ABC):
    @abstractmethod
    async def get_daily_ohlcv(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        """
        Return daily OHLCV dataframe for start_date..end_date inclusive.
        Columns: [open, high, low, close, volume]
        Index: date (pd.DatetimeIndex), ascending
        """
        pass


class DatabasePriceAccessor(PriceSeriesAccessor):
    """Reads bars already stored in prices_daily."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def get_daily_ohlcv(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        async with self.session_factory() as db:
            stmt = (
                select(PriceDaily)
                .where(PriceDaily.symbol == symbol, PriceDaily.date >= start_date, PriceDaily.date <= end_date)
                .order_by(PriceDaily.date)
            )
            res = await db.execute(stmt)
            rows = res.scalars().all()

        return bars_to_frame(
            PriceBar(date=p.date, open=p.open, high=p.high, low=p.low, close=p.close, volume=p.volume)
            for p in rows
        )


class YahooFinancePriceAccessor(PriceSeriesAccessor):
    def __init__(self, ticker_suffix: str = ""):
        import yfinance as yf
        self.yf = yf
        self.ticker_suffix = ticker_suffix

    def _ticker(self, symbol: str) -> str:
        if self.ticker_suffix and not symbol.endswith(self.ticker_suffix):
            return f"{symbol}{self.ticker_suffix}"
        return symbol

    def _download(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        # yfinance treats `end` as exclusive
        df = self.yf.download(
            self._ticker(symbol),
            start=start_date,
            end=end_date + pd.Timedelta(days=1),
            progress=False,
            auto_adjust=True,
        )

        if df.empty:
            return empty_price_frame()

        # Single ticker downloads may still come back with (field, ticker) columns
        if isinstance(df.columns, pd.MultiIndex):
            df.columns = df.columns.get_level_values(0)

        df.reset_index(inplace=True)
        df.rename(columns={
            'Date': 'date',
            'Open': 'open',
            'High': 'high',
            'Low': 'low',
            'Close': 'close',
            'Volume': 'volume'
        }, inplace=True)

        df['date'] = pd.to_datetime(df['date'])
        if df['date'].dt.tz is not None:
            df['date'] = df['date'].dt.tz_localize(None)
        df['date'] = df['date'].dt.normalize()
        mask = (df['date'].dt.date >= start_date) & (df['date'].dt.date <= end_date)
        df = df.loc[mask].copy()
        df = df.dropna(subset=['close'])

        if df.empty:
            return empty_price_frame()

        df.set_index('date', inplace=True)
        df = df[~df.index.duplicated(keep='last')]
        return df[PRICE_COLUMNS].sort_index()

    async def get_daily_ohlcv(self, symbol: str, start_date: date, end_date: date) -> pd.DataFrame:
        # yfinance is blocking; keep it off the event loop
        return await asyncio.to_thread(self._download, symbol, start_date, end_date)
