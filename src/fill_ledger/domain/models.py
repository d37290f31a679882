# src/fill_ledger/domain/models.py
"""Domain value objects."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

ZERO = Decimal("0")


class Side(str, Enum):
    """Execution side as reported by the exchange."""
    BUY = "BUY"
    SELL = "SELL"


class PositionSide(str, Enum):
    """Position bucket a fill was booked against."""
    LONG = "LONG"
    SHORT = "SHORT"
    BOTH = "BOTH"


@dataclass(frozen=True)
class Fill:
    """One validated exchange execution."""
    symbol: str
    time: int  # epoch millis
    side: Side
    position_side: Optional[PositionSide]
    price: Decimal
    qty: Decimal
    realized_pnl: Decimal = ZERO
    commission: Decimal = ZERO
    commission_asset: Optional[str] = None
    order_id: Optional[str] = None
    trade_id: Optional[str] = None

    @property
    def trade_key(self) -> str:
        return f"{self.symbol}#{self.trade_id}"


@dataclass
class VwapSum:
    """Running price*qty / qty accumulator."""
    px_qty: Decimal = ZERO
    qty: Decimal = ZERO

    def add(self, price: Decimal, qty: Decimal) -> None:
        self.px_qty += price * qty
        self.qty += qty

    def vwap(self, fallback: Decimal) -> Decimal:
        """Average price, or `fallback` when nothing was accumulated."""
        if self.qty > 0:
            return self.px_qty / self.qty
        return fallback


@dataclass
class FillGroup:
    """Fills sharing (symbol, order, time, side), merged into one execution."""
    symbol: str
    order_id: Optional[str]
    time: int
    side: Side
    position_side: Optional[PositionSide]
    qty: Decimal = ZERO
    price: Decimal = ZERO  # running VWAP
    realized_pnl: Decimal = ZERO
    fee: Decimal = ZERO
    fee_asset: Optional[str] = None
    trade_keys: List[str] = field(default_factory=list)
    fill_count: int = 0

    def add(self, fill: Fill) -> None:
        next_qty = self.qty + fill.qty
        self.price = (self.price * self.qty + fill.price * fill.qty) / next_qty
        self.qty = next_qty
        self.realized_pnl += fill.realized_pnl
        self.fee += fill.commission
        self.fee_asset = self.fee_asset or fill.commission_asset
        if fill.trade_id is not None:
            self.trade_keys.append(fill.trade_key)
        self.fill_count += 1

    @classmethod
    def from_fill(cls, fill: Fill) -> "FillGroup":
        group = cls(
            symbol=fill.symbol,
            order_id=fill.order_id,
            time=fill.time,
            side=fill.side,
            position_side=fill.position_side,
        )
        group.add(fill)
        return group


@dataclass(frozen=True)
class HedgeMode:
    """Fill booked against an explicit LONG or SHORT bucket."""
    side: PositionSide


@dataclass(frozen=True)
class OneWayMode:
    """Fill booked against the symbol's single net position."""


TrackingMode = Union[HedgeMode, OneWayMode]


@dataclass(frozen=True)
class TrackingKey:
    symbol: str
    side: Optional[PositionSide] = None  # None in one-way mode


@dataclass
class PositionSession:
    """Tracks an in-progress position for one tracking key."""
    symbol: str
    direction: PositionSide  # LONG or SHORT
    open_time: int
    close_time: int  # last seen
    open_qty: Decimal = ZERO  # signed
    max_abs_qty: Decimal = ZERO
    open_sum: VwapSum = field(default_factory=VwapSum)
    close_sum: VwapSum = field(default_factory=VwapSum)
    realized_pnl: Decimal = ZERO
    fees: Decimal = ZERO
    fee_asset: Optional[str] = None
    fill_count: int = 0
    last_price: Decimal = ZERO

    @property
    def position_key(self) -> str:
        return f"{self.symbol}#{self.direction.value}#{self.open_time}"


@dataclass(frozen=True)
class ClosedPosition:
    """A position that opened and returned to flat inside the batch."""
    position_key: str
    symbol: str
    position_side: PositionSide
    open_time: int
    close_time: int
    open_price: Decimal
    close_price: Decimal
    closed_qty: Decimal
    max_open_qty: Decimal
    realized_pnl: Decimal
    pnl_percent: Optional[Decimal]
    fees: Decimal
    fee_asset: Optional[str]
    fill_count: int

    @property
    def net_pnl(self) -> Decimal:
        return self.realized_pnl - self.fees


@dataclass(frozen=True)
class OpenPosition:
    """Residual exposure still open when the batch ended."""
    position_key: str
    symbol: str
    position_side: PositionSide
    open_time: int
    last_time: int
    open_price: Decimal
    current_qty: Decimal
    max_open_qty: Decimal
    realized_pnl: Decimal
    fees: Decimal
    fee_asset: Optional[str]
    fill_count: int


@dataclass
class ReconstructionResult:
    """Output of one reconstruction run."""
    closed_positions: List[ClosedPosition] = field(default_factory=list)
    open_positions: List[OpenPosition] = field(default_factory=list)
    ignored_fills: int = 0
    groups: int = 0
    incomplete_sessions: int = 0
    warnings: List[str] = field(default_factory=list)
