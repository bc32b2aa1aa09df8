from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from signal_backtest.utils.numbers import round2


@dataclass(frozen=True)
class ReturnStats:
    count: int = 0
    winners: int = 0
    losers: int = 0
    average_return: float = 0.0
    cumulative_return: float = 0.0  # additive: sum of percentage returns
    max_drawdown: float = 0.0
    win_rate: float = 0.0


def compute_return_stats(
    returns: Sequence[float],
    profitable: Iterable[bool],
    drawdowns: Iterable[Optional[float]],
) -> ReturnStats:
    """Roll up per-trade percentage returns. Missing drawdowns count as 0."""
    if len(returns) == 0:
        return ReturnStats()

    arr = np.asarray(returns, dtype=np.float64)
    winners = int(sum(1 for p in profitable if p))
    max_dd = max((d or 0.0 for d in drawdowns), default=0.0)

    return ReturnStats(
        count=len(arr),
        winners=winners,
        losers=len(arr) - winners,
        average_return=round2(float(arr.mean())),
        cumulative_return=round2(float(arr.sum())),
        max_drawdown=round2(max_dd),
        win_rate=round2(winners / len(arr) * 100),
    )
