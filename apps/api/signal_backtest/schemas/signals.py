from pydantic import Field, field_validator
from datetime import datetime
from typing import List

from signal_backtest.domain import SignalType
from signal_backtest.schemas.common import CamelModel
from signal_backtest.utils.time import to_naive_utc

class SignalCreate(CamelModel):
    symbol: str = Field(min_length=1, max_length=10)
    generated_at: datetime
    signal_type: SignalType = SignalType.BUY
    strategy: str = "default"

    @field_validator('symbol')
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Symbol is required.")
        return v

    @field_validator('signal_type', mode='before')
    @classmethod
    def parse_signal_type(cls, v):
        return SignalType.parse(v) if isinstance(v, str) else v

    @field_validator('generated_at')
    @classmethod
    def normalize_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

class SignalBatchCreate(CamelModel):
    signals: List[SignalCreate] = Field(min_length=1)

class SignalResponse(CamelModel):
    id: str
    symbol: str
    generated_at: datetime
    signal_type: SignalType
    strategy: str
