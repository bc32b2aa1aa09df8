from .price import PriceDaily
from .signal import TradingSignal
from .performance import SignalPerformance
