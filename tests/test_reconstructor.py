# tests/test_reconstructor.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlmodel import select

from fill_ledger.db.models import PositionRecord
from fill_ledger.domain.reconstructor import PositionReconstructor, ms_to_utc
from fill_ledger.io.importer import FillImporter


def _positions(session, account_id):
    return session.exec(
        select(PositionRecord).where(PositionRecord.account_id == account_id)
    ).all()


def test_rebuild_stores_closed_position(session, test_account, btcusdc_fills):
    FillImporter.import_fills(session, test_account, btcusdc_fills)

    summary = PositionReconstructor.rebuild_for_account(session, test_account.id)

    assert summary.fills == 4
    assert summary.closed_created == 1
    assert summary.open_positions == 0

    (p,) = _positions(session, test_account.id)
    assert p.position_key == "BTCUSDC#SHORT#1770215269749"
    assert p.status == "closed"
    assert p.position_side == "SHORT"
    assert round(p.open_price, 6) == 75194.4
    assert 73890 < p.close_price < 73900
    assert round(p.realized_pnl, 6) == 171.9999
    assert round(p.fees, 8) == 7.87172868
    assert round(p.net_pnl, 6) == round(171.9999 - 7.87172868, 6)
    assert p.fill_count == 4
    assert p.pnl_percent is not None
    assert p.opened_at_utc.replace(tzinfo=None) == datetime(2026, 2, 4, 14, 27, 49, 749000)


def test_rebuild_is_idempotent(session, test_account, btcusdc_fills):
    FillImporter.import_fills(session, test_account, btcusdc_fills)

    PositionReconstructor.rebuild_for_account(session, test_account.id)
    summary = PositionReconstructor.rebuild_for_account(session, test_account.id)

    assert summary.closed_created == 0
    assert summary.closed_updated == 1
    assert len(_positions(session, test_account.id)) == 1


def test_open_position_becomes_closed(session, test_account, make_fill):
    FillImporter.import_fills(session, test_account, [make_fill(time=1000, side="BUY", price="100")])
    PositionReconstructor.rebuild_for_account(session, test_account.id)

    (p,) = _positions(session, test_account.id)
    assert p.status == "open"
    assert p.current_qty == 1.0
    assert p.close_price is None

    FillImporter.import_fills(
        session, test_account, [make_fill(time=2000, side="SELL", price="110", realizedPnl="10")]
    )
    summary = PositionReconstructor.rebuild_for_account(session, test_account.id)

    assert summary.closed_updated == 1
    (p,) = _positions(session, test_account.id)
    assert p.position_key == "BTCUSDT#LONG#1000"
    assert p.status == "closed"
    assert p.current_qty == 0.0
    assert p.close_price == 110.0
    assert p.closed_at_utc.replace(tzinfo=None) == ms_to_utc(2000).replace(tzinfo=None)


def test_stale_open_position_is_removed(session, test_account, make_fill):
    FillImporter.import_fills(session, test_account, [make_fill(time=5000, side="BUY")])
    PositionReconstructor.rebuild_for_account(session, test_account.id)

    # an earlier fill arrives later (backfill), so the session now opens earlier
    FillImporter.import_fills(session, test_account, [make_fill(time=1000, side="BUY")])
    summary = PositionReconstructor.rebuild_for_account(session, test_account.id)

    assert summary.stale_open_removed == 1
    (p,) = _positions(session, test_account.id)
    assert p.position_key == "BTCUSDT#LONG#1000"
    assert p.current_qty == 2.0


def test_data_problems_are_logged(session, test_account, make_fill, caplog):
    FillImporter.import_fills(
        session,
        test_account,
        [
            make_fill(time=1, side="SELL", positionSide="SHORT"),
            make_fill(time=2, side="BUY", positionSide="SHORT"),
            make_fill(time=3, side="BUY", positionSide="LONG"),
            make_fill(time=4, side="BUY", price="bad"),
        ],
    )

    with caplog.at_level(logging.WARNING, logger="fill_ledger.domain.reconstructor"):
        summary = PositionReconstructor.rebuild_for_account(session, test_account.id)

    assert summary.ignored_fills == 1
    assert summary.closed_created == 1
    assert summary.open_positions == 1
    assert summary.incomplete_sessions == 0
    assert "ignored 1 invalid fills" in caplog.text
