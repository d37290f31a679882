# src/fill_ledger/db/models.py
"""
SQLModel definitions for the fill ledger.
Designed for SQLite locally, PostgreSQL in production.
"""

from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship
import sqlalchemy
import uuid


class Account(SQLModel, table=True):
    """Exchange account whose fills are tracked."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    label: str = Field(index=True)
    exchange: str = Field(default="binance-futures")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    fills: List["FillRecord"] = Relationship(back_populates="account", cascade_delete=True)
    positions: List["PositionRecord"] = Relationship(back_populates="account", cascade_delete=True)


class FillRecord(SQLModel, table=True):
    """Individual fill as returned by /fapi/v1/userTrades."""
    __tablename__ = "fill"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    account_id: str = Field(foreign_key="account.id", index=True)

    # SYMBOL#tradeId (unique per account, prevents duplicates)
    trade_key: str = Field(index=True)
    trade_id: str = Field()
    order_id: Optional[str] = Field(default=None, index=True)
    symbol: str = Field(index=True)

    time_ms: int = Field(index=True)

    side: str = Field()  # BUY or SELL
    position_side: Optional[str] = Field(default=None)  # LONG, SHORT, BOTH

    # Decimal strings exactly as the exchange sent them
    price: str = Field()
    qty: str = Field()
    realized_pnl: str = Field(default="0")
    commission: str = Field(default="0")
    commission_asset: Optional[str] = Field(default=None)

    imported_at: datetime = Field(default_factory=datetime.utcnow)

    __table_args__ = (
        sqlalchemy.UniqueConstraint('account_id', 'trade_key', name='uq_account_trade_key'),
    )

    account: Account = Relationship(back_populates="fills")

    def to_raw(self) -> dict:
        """Shape understood by FillNormalizer."""
        return {
            "tradeId": self.trade_id,
            "symbol": self.symbol,
            "time": self.time_ms,
            "side": self.side,
            "positionSide": self.position_side,
            "price": self.price,
            "qty": self.qty,
            "realizedPnl": self.realized_pnl,
            "commission": self.commission,
            "commissionAsset": self.commission_asset,
            "orderId": self.order_id,
        }


class PositionRecord(SQLModel, table=True):
    """Position rebuilt from fills (closed, or still open at the end of the data)."""
    __tablename__ = "position"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    account_id: str = Field(foreign_key="account.id", index=True)

    position_key: str = Field(index=True)  # SYMBOL#SIDE#openTimeMs
    symbol: str = Field(index=True)
    position_side: str = Field()  # LONG or SHORT
    status: str = Field(default="closed")  # open, closed

    # Lifecycle timestamps (UTC)
    opened_at_utc: datetime = Field(index=True)
    closed_at_utc: Optional[datetime] = Field(default=None, index=True)
    last_fill_at_utc: datetime = Field()

    # Reporting values (floats; the engine computes in Decimal)
    open_price: float = Field()
    close_price: Optional[float] = Field(default=None)
    closed_qty: float = Field(default=0.0)
    max_open_qty: float = Field()
    current_qty: float = Field(default=0.0)  # open positions only
    realized_pnl: float = Field(default=0.0)
    pnl_percent: Optional[float] = Field(default=None)
    fees: float = Field(default=0.0)
    fee_asset: Optional[str] = Field(default=None)
    fill_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    __table_args__ = (
        sqlalchemy.UniqueConstraint('account_id', 'position_key', name='uq_account_position_key'),
    )

    account: Account = Relationship(back_populates="positions")

    @property
    def net_pnl(self) -> float:
        return self.realized_pnl - self.fees
