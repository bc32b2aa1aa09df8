import asyncio
import math

import pandas as pd
import pytest
from datetime import date, datetime

from signal_backtest.domain import BacktestRequest
from signal_backtest.exceptions import (
    BacktestValidationError,
    DataSourceError,
    PerformanceNotRecordedError,
)
from signal_backtest.services.backtest_engine import BacktestEngine
from fakes import (
    InMemoryPerformanceRepository,
    InMemoryPriceAccessor,
    InMemorySignalSource,
    make_prices,
    make_signal,
)


def january_prices():
    # Flat at 100 with three jumps the signals below ride
    closes = [100.0] * 31
    closes[1] = 110.0    # 2024-01-02
    closes[10] = 95.0    # 2024-01-11
    closes[20] = 107.0   # 2024-01-21
    return make_prices('2024-01-01', closes)


def january_signals():
    return [
        make_signal("s1", datetime(2024, 1, 1, 9)),
        make_signal("s2", datetime(2024, 1, 10, 9)),
        make_signal("s3", datetime(2024, 1, 20, 9)),
    ]


def build_engine(signals=None, prices=None, signal_error=None, price_error=None, fail_on_save=False):
    source = InMemorySignalSource(january_signals() if signals is None else signals, error=signal_error)
    accessor = InMemoryPriceAccessor(january_prices() if prices is None else prices, error=price_error)
    repo = InMemoryPerformanceRepository(signals=source, fail_on_save=fail_on_save)
    return BacktestEngine(source, accessor, repo), source, accessor, repo


def january_request(**overrides):
    params = dict(
        symbol="AAPL",
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 31),
        holding_period_days=1,
    )
    params.update(overrides)
    return BacktestRequest(**params)


@pytest.mark.asyncio
async def test_returns_are_summed_not_compounded():
    engine, _, _, repo = build_engine()

    result = await engine.run_backtest(january_request())

    assert [t.signal_id for t in result.trades] == ["s1", "s2", "s3"]
    assert [round(t.return_percent, 2) for t in result.trades] == [10.0, -5.0, 7.0]
    assert result.total_trades == 3
    assert result.winning_trades == 2
    assert result.losing_trades == 1
    assert result.cumulative_return == 12.0
    assert result.average_return == 4.0
    assert result.win_rate == 66.67
    assert result.max_drawdown == 0.0

    assert repo.save_calls == 1
    assert len(repo.rows) == 3
    saved = {p.trading_signal_id: p for p in repo.rows}
    assert saved["s2"].actual_return == -5.0
    assert not saved["s2"].was_profitable
    assert saved["s1"].benchmark_return == 0.0
    assert saved["s1"].entry_price == 100.0
    assert saved["s1"].exit_price == 110.0
    assert saved["s1"].days_held == 1
    assert len({p.evaluated_at for p in repo.rows}) == 1


@pytest.mark.asyncio
async def test_no_signals_returns_empty_result_without_saving():
    engine, _, _, repo = build_engine(signals=[])

    result = await engine.run_backtest(january_request())

    assert result.trades == []
    assert result.total_trades == 0
    assert result.cumulative_return == 0.0
    assert result.win_rate == 0.0
    assert repo.save_calls == 0


@pytest.mark.asyncio
async def test_symbol_is_normalized():
    engine, source, accessor, _ = build_engine()

    result = await engine.run_backtest(january_request(symbol="  aapl "))

    assert result.symbol == "AAPL"
    assert source.calls[0][0] == "AAPL"
    assert accessor.calls[0][0] == "AAPL"


@pytest.mark.asyncio
async def test_price_window_is_padded_by_a_day():
    engine, source, accessor, _ = build_engine()

    await engine.run_backtest(january_request())

    assert source.calls == [("AAPL", datetime(2024, 1, 1), datetime(2024, 1, 31))]
    assert accessor.calls == [("AAPL", date(2023, 12, 31), date(2024, 2, 1))]


@pytest.mark.asyncio
async def test_exit_never_passes_requested_end():
    signals = [make_signal("late", datetime(2024, 1, 29, 9))]
    engine, _, _, _ = build_engine(signals=signals)

    result = await engine.run_backtest(january_request(end_date=datetime(2024, 1, 30), holding_period_days=10))

    assert result.trades[0].exit_date == date(2024, 1, 30)


@pytest.mark.asyncio
async def test_skipped_signals_are_reported_but_not_counted():
    signals = january_signals() + [make_signal("orphan", datetime(2024, 1, 25, 9))]
    prices = january_prices().loc[:'2024-01-22']
    engine, _, _, repo = build_engine(signals=signals, prices=prices)

    result = await engine.run_backtest(january_request())

    assert result.total_trades == 3
    assert [s.signal_id for s in result.skipped] == ["orphan"]
    assert result.cumulative_return == 12.0
    assert "orphan" not in {p.trading_signal_id for p in repo.rows}


@pytest.mark.asyncio
async def test_all_signals_skipped_saves_nothing():
    signals = [make_signal("orphan", datetime(2024, 1, 25, 9))]
    prices = january_prices().loc[:'2024-01-22']
    engine, _, _, repo = build_engine(signals=signals, prices=prices)

    result = await engine.run_backtest(january_request())

    assert result.total_trades == 0
    assert len(result.skipped) == 1
    assert repo.save_calls == 0


@pytest.mark.asyncio
async def test_holding_period_zero_is_treated_as_one_day():
    engine, _, _, _ = build_engine()

    result = await engine.run_backtest(january_request(holding_period_days=0))

    assert [t.days_held for t in result.trades] == [1, 1, 1]
    assert result.cumulative_return == 12.0


@pytest.mark.asyncio
async def test_take_profit_applies_across_signals():
    engine, _, _, _ = build_engine()

    result = await engine.run_backtest(january_request(holding_period_days=5, take_profit_percent=5))

    first = result.trades[0]
    assert first.trigger == "take_profit"
    assert first.exit_date == date(2024, 1, 2)


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"symbol": "   "},
    {"symbol": ""},
    {"start_date": datetime(2024, 2, 1)},
    {"end_date": datetime(2024, 1, 1)},
    {"start_date": None},
    {"take_profit_percent": 0},
    {"take_profit_percent": -3},
    {"stop_loss_percent": 0},
])
async def test_invalid_requests_fail_before_io(overrides):
    engine, source, accessor, repo = build_engine()

    with pytest.raises(BacktestValidationError):
        await engine.run_backtest(january_request(**overrides))

    assert source.calls == []
    assert accessor.calls == []
    assert repo.save_calls == 0


@pytest.mark.asyncio
async def test_price_failure_is_reported_as_data_source_error():
    engine, _, _, repo = build_engine(price_error=ConnectionError("feed down"))

    with pytest.raises(DataSourceError) as exc:
        await engine.run_backtest(january_request())

    assert exc.value.status_code == 502
    assert "feed down" in exc.value.message
    assert repo.save_calls == 0


@pytest.mark.asyncio
async def test_signal_failure_is_reported_as_data_source_error():
    engine, _, _, repo = build_engine(signal_error=RuntimeError("signals unavailable"))

    with pytest.raises(DataSourceError):
        await engine.run_backtest(january_request())

    assert repo.rows == []


@pytest.mark.asyncio
async def test_save_failure_keeps_computed_result():
    engine, _, _, repo = build_engine(fail_on_save=True)

    with pytest.raises(PerformanceNotRecordedError) as exc:
        await engine.run_backtest(january_request())

    assert repo.save_calls == 1
    assert repo.rows == []
    assert exc.value.result is not None
    assert exc.value.result.total_trades == 3
    assert exc.value.result.cumulative_return == 12.0


@pytest.mark.asyncio
async def test_missing_closes_never_reach_aggregates():
    prices = january_prices()
    prices.loc[pd.Timestamp('2024-01-02'), 'close'] = float('nan')
    engine, _, _, repo = build_engine(prices=prices)

    result = await engine.run_backtest(january_request())

    # s1 loses its exit bar and closes flat on the entry bar
    assert result.trades[0].return_percent == 0.0
    assert result.cumulative_return == 2.0
    assert math.isfinite(result.average_return)
    assert all(math.isfinite(p.actual_return) for p in repo.rows)


@pytest.mark.asyncio
async def test_cancelled_run_saves_nothing():
    signals = [make_signal(f"s{day}", datetime(2024, 1, day, 9)) for day in range(1, 21)]
    engine, _, _, repo = build_engine(signals=signals)

    task = asyncio.create_task(engine.run_backtest(january_request()))
    for _ in range(3):
        await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert repo.save_calls == 0


@pytest.mark.asyncio
async def test_cancellation_from_a_collaborator_is_not_wrapped():
    engine, _, _, repo = build_engine(signal_error=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await engine.run_backtest(january_request())

    assert repo.save_calls == 0
