# tests/conftest.py
"""Test configuration and fixtures."""

import pytest
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from fill_ledger.db.models import Account


T_OPEN = 1770215269749
T_CLOSE = 1770217332859


@pytest.fixture(name="session")
def session_fixture():
    """Create in-memory SQLite test database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="test_account")
def test_account_fixture(session: Session):
    """Create test account."""
    account = Account(label="main")
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


@pytest.fixture(name="make_fill")
def make_fill_fixture():
    """Factory for raw userTrades objects."""
    counter = {"id": 1000}

    def _make(**overrides):
        counter["id"] += 1
        raw = {
            "id": counter["id"],
            "symbol": "BTCUSDT",
            "orderId": counter["id"],
            "time": 1,
            "side": "BUY",
            "positionSide": "BOTH",
            "price": "100",
            "qty": "1",
            "realizedPnl": "0",
            "commission": "0",
            "commissionAsset": "USDT",
        }
        raw.update(overrides)
        return raw

    return _make


@pytest.fixture(name="btcusdc_fills")
def btcusdc_fills_fixture():
    """Short opened by a split SELL and closed by a split BUY (one-way mode)."""
    return [
        {
            "id": 371379222, "symbol": "BTCUSDC", "orderId": 43761077675, "time": T_OPEN,
            "side": "SELL", "positionSide": "BOTH", "price": "75194.4", "qty": "0.089",
            "realizedPnl": "0", "commission": "2.67692064", "commissionAsset": "USDC",
        },
        {
            "id": 371379223, "symbol": "BTCUSDC", "orderId": 43761077675, "time": T_OPEN,
            "side": "SELL", "positionSide": "BOTH", "price": "75194.4", "qty": "0.043",
            "realizedPnl": "0", "commission": "1.29334368", "commissionAsset": "USDC",
        },
        {
            "id": 371484321, "symbol": "BTCUSDC", "orderId": 43766655567, "time": T_CLOSE,
            "side": "BUY", "positionSide": "BOTH", "price": "73890.1", "qty": "0.093",
            "realizedPnl": "121.29990000", "commission": "2.74871172", "commissionAsset": "USDC",
        },
        {
            "id": 371484322, "symbol": "BTCUSDC", "orderId": 43766655567, "time": T_CLOSE,
            "side": "BUY", "positionSide": "BOTH", "price": "73894.4", "qty": "0.039",
            "realizedPnl": "50.70000000", "commission": "1.15275264", "commissionAsset": "USDC",
        },
    ]
