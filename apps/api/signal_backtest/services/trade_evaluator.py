import enum
from datetime import date, timedelta
from typing import Dict, Optional, Tuple, Type, Union

import pandas as pd
import structlog

from signal_backtest.domain import ExitReason, SignalRecord, SkippedSignal, Trade

logger = structlog.get_logger()

EvaluationOutcome = Union[Trade, SkippedSignal]

EXIT_NOTES = {
    "take_profit": "Exited via take-profit trigger",
    "stop_loss": "Exited via stop-loss trigger",
    None: "Exited at end of holding period",
}


class TradeStrategy(str, enum.Enum):
    DEFAULT = "default"


class TradeEvaluator:
    """
    Simulates acting on one signal with daily closes only.

    Entry is the first bar on/after the signal date, exit is the first bar after
    entry whose close crosses the take-profit or stop-loss threshold, otherwise the
    last bar of the holding window. Intraday high/low never trigger an exit.
    """

    def evaluate(
        self,
        signal: SignalRecord,
        prices: pd.DataFrame,
        holding_period_days: int,
        window_end_date: date,
        stop_loss_percent: Optional[float] = None,
        take_profit_percent: Optional[float] = None,
    ) -> EvaluationOutcome:
        """
        prices: DataFrame[date] -> close (plus open/high/low/volume, unused), ascending.
        Returns a Trade, or SkippedSignal when there is nothing to evaluate.
        """
        holding = max(1, int(holding_period_days))
        signal_date = signal.generated_at.date()
        planned_exit = min(signal_date + timedelta(days=holding), window_end_date)

        mask = (prices.index >= pd.Timestamp(signal_date)) & (prices.index <= pd.Timestamp(planned_exit))
        # bars without a close are missing data, never entry or exit candidates
        window = prices.loc[mask].dropna(subset=['close'])
        if window.empty:
            return self._skip(signal, f"No price bar between {signal_date} and {planned_exit}")

        closes = window['close'].astype(float)
        entry_close = float(closes.iloc[0])
        entry_date = closes.index[0].date()
        if entry_close == 0:
            return self._skip(signal, f"Entry close is zero on {entry_date}")

        change_pct = (closes - entry_close) / entry_close * 100.0

        exit_pos, trigger = self._find_trigger(change_pct, stop_loss_percent, take_profit_percent)
        if exit_pos is None:
            exit_pos = len(closes) - 1
            exit_reason = ExitReason.HOLDING_PERIOD_END
        else:
            exit_reason = ExitReason.TRIGGER

        exit_date = closes.index[exit_pos].date()
        return_pct = float(change_pct.iloc[exit_pos])

        return Trade(
            signal_id=signal.id,
            signal_type=signal.signal_type,
            entry_date=entry_date,
            entry_price=entry_close,
            exit_date=exit_date,
            exit_price=float(closes.iloc[exit_pos]),
            return_percent=return_pct,
            max_drawdown_percent=self._max_drawdown(closes.iloc[: exit_pos + 1]),
            days_held=max(1, (exit_date - entry_date).days),
            profitable=return_pct >= 0,
            exit_reason=exit_reason,
            trigger=trigger,
            notes=EXIT_NOTES[trigger],
        )

    @staticmethod
    def _find_trigger(
        change_pct: pd.Series,
        stop_loss_percent: Optional[float],
        take_profit_percent: Optional[float],
    ) -> Tuple[Optional[int], Optional[str]]:
        if stop_loss_percent is None and take_profit_percent is None:
            return None, None

        # Entry bar itself never triggers. Take-profit wins when both cross on one bar.
        for pos in range(1, len(change_pct)):
            change = change_pct.iloc[pos]
            if take_profit_percent is not None and change >= take_profit_percent:
                return pos, "take_profit"
            if stop_loss_percent is not None and change <= -abs(stop_loss_percent):
                return pos, "stop_loss"
        return None, None

    @staticmethod
    def _max_drawdown(closes: pd.Series) -> float:
        # closes starts at the entry bar, so the running peak starts at the entry close
        roll_max = closes.cummax()
        drawdown = (closes - roll_max) / roll_max * 100.0
        return abs(float(drawdown.min()))

    @staticmethod
    def _skip(signal: SignalRecord, reason: str) -> SkippedSignal:
        logger.warning("Signal skipped", signal_id=signal.id, symbol=signal.symbol, reason=reason)
        return SkippedSignal(signal_id=signal.id, reason=reason)


_EVALUATORS: Dict[TradeStrategy, Type[TradeEvaluator]] = {
    TradeStrategy.DEFAULT: TradeEvaluator,
}


def resolve_strategy(name: Optional[str]) -> TradeStrategy:
    if not name:
        return TradeStrategy.DEFAULT
    try:
        return TradeStrategy(name.strip().lower())
    except ValueError:
        logger.warning("Unknown strategy, using default", strategy=name)
        return TradeStrategy.DEFAULT


def get_evaluator(strategy: Optional[str]) -> TradeEvaluator:
    return _EVALUATORS[resolve_strategy(strategy)]()
