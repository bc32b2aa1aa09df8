from sqlalchemy import Column, String, Date, Float, BigInteger, PrimaryKeyConstraint
from signal_backtest.database import Base

class PriceDaily(Base):
    __tablename__ = "prices_daily"

    symbol = Column(String(10), nullable=False)
    date = Column(Date, nullable=False)
    open = Column(Float, nullable=False)
    high = Column(Float, nullable=False)
    low = Column(Float, nullable=False)
    close = Column(Float, nullable=False)
    volume = Column(BigInteger, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('symbol', 'date'),
    )
