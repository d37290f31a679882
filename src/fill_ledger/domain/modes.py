# src/fill_ledger/domain/modes.py
"""Hedge vs one-way position mode resolution, decided per fill."""

from decimal import Decimal
from typing import Optional

from fill_ledger.domain.models import (
    HedgeMode,
    OneWayMode,
    PositionSide,
    Side,
    TrackingKey,
    TrackingMode,
)


def resolve_mode(position_side: Optional[PositionSide]) -> TrackingMode:
    """LONG/SHORT tags mean hedge mode; BOTH, missing or unknown mean one-way."""
    if position_side in (PositionSide.LONG, PositionSide.SHORT):
        return HedgeMode(side=position_side)
    return OneWayMode()


def tracking_key(symbol: str, mode: TrackingMode) -> TrackingKey:
    if isinstance(mode, HedgeMode):
        return TrackingKey(symbol=symbol, side=mode.side)
    return TrackingKey(symbol=symbol)


def signed_delta(mode: TrackingMode, side: Side, qty: Decimal) -> Decimal:
    """
    Exposure change caused by a fill.

    Hedge mode: positive grows the bucket (BUY for LONG, SELL for SHORT).
    One-way mode: BUY is positive and SELL negative; the net sign gives direction.
    """
    if isinstance(mode, HedgeMode):
        grows = side == (Side.BUY if mode.side == PositionSide.LONG else Side.SELL)
        return qty if grows else -qty
    return qty if side == Side.BUY else -qty


def session_direction(mode: TrackingMode, delta: Decimal) -> PositionSide:
    """Direction of a session opened by `delta`."""
    if isinstance(mode, HedgeMode):
        return mode.side
    return PositionSide.LONG if delta > 0 else PositionSide.SHORT
