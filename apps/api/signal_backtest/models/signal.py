import uuid
from sqlalchemy import Column, String, DateTime, Float, Integer
from sqlalchemy.orm import relationship
from signal_backtest.database import Base

class TradingSignal(Base):
    __tablename__ = "trading_signals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    symbol = Column(String(10), nullable=False, index=True)
    generated_at = Column(DateTime, nullable=False)
    strategy = Column(String(100), nullable=False, default="default")
    signal_type = Column(String(50), nullable=False) # BUY, SELL, HOLD
    confidence_score = Column(Integer, nullable=False, default=0)
    entry_price = Column(Float, nullable=True)
    target_price = Column(Float, nullable=True)
    stop_loss = Column(Float, nullable=True)
    take_profit = Column(Float, nullable=True)
    rationale = Column(String, nullable=False, default="")
    status = Column(String(50), nullable=False, default="Pending")

    performances = relationship("SignalPerformance", back_populates="trading_signal")
