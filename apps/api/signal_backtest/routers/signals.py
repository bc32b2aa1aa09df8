from fastapi import APIRouter, Depends
import uuid

from signal_backtest.domain import SignalRecord
from signal_backtest.schemas.common import ResponseBase
from signal_backtest.schemas.signals import SignalBatchCreate, SignalResponse
from signal_backtest.services.backtest_service import get_signal_source
from signal_backtest.services.repositories import SignalSource

router = APIRouter()

def signal_response(s: SignalRecord) -> SignalResponse:
    return SignalResponse(
        id=s.id,
        symbol=s.symbol,
        generated_at=s.generated_at,
        signal_type=s.signal_type,
        strategy=s.strategy
    )

@router.post("", response_model=ResponseBase[SignalResponse], status_code=201)
async def record_signals(
    payload: SignalBatchCreate,
    source: SignalSource = Depends(get_signal_source)
):
    """
    Record signals produced by an external generator so they can be backtested.
    """
    records = [
        SignalRecord(
            id=str(uuid.uuid4()),
            symbol=s.symbol,
            generated_at=s.generated_at,
            signal_type=s.signal_type,
            strategy=s.strategy
        )
        for s in payload.signals
    ]
    await source.add_signals(records)
    return ResponseBase[SignalResponse](count=len(records), items=[signal_response(r) for r in records])

@router.get("/{symbol}", response_model=ResponseBase[SignalResponse])
async def get_signals(
    symbol: str,
    limit: int = 30,
    source: SignalSource = Depends(get_signal_source)
):
    """
    Latest signals for a symbol, newest first.
    """
    items = await source.get_latest(symbol.strip().upper(), max(1, limit))
    return ResponseBase[SignalResponse](count=len(items), items=[signal_response(s) for s in items])
