import uuid
from sqlalchemy import Column, String, DateTime, Float, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from signal_backtest.database import Base

class SignalPerformance(Base):
    """One evaluation of a signal by a backtest run. Rows are only ever inserted."""
    __tablename__ = "signal_performances"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    trading_signal_id = Column(String(36), ForeignKey("trading_signals.id"), nullable=False)
    evaluated_at = Column(DateTime, nullable=False, index=True)
    actual_return = Column(Float, nullable=False)
    benchmark_return = Column(Float, nullable=False, default=0.0) # no benchmark source yet
    was_profitable = Column(Boolean, nullable=False)
    days_held = Column(Integer, nullable=False)
    entry_price = Column(Float, nullable=True)
    exit_price = Column(Float, nullable=True)
    max_drawdown = Column(Float, nullable=True)
    notes = Column(String, nullable=False, default="")

    trading_signal = relationship("TradingSignal", back_populates="performances")
