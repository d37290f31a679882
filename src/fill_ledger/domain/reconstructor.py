# src/fill_ledger/domain/reconstructor.py
"""
Position rebuild for a stored account.
Runs the sessionizer over every stored fill and upserts the resulting positions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union
import pytz

from sqlmodel import Session, select
from fill_ledger.db.models import FillRecord, PositionRecord
from fill_ledger.domain.models import ClosedPosition, OpenPosition
from fill_ledger.domain.sessionizer import build_positions

logger = logging.getLogger(__name__)


@dataclass
class RebuildSummary:
    fills: int = 0
    ignored_fills: int = 0
    closed_created: int = 0
    closed_updated: int = 0
    open_positions: int = 0
    stale_open_removed: int = 0
    incomplete_sessions: int = 0
    warnings: List[str] = field(default_factory=list)


def ms_to_utc(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=pytz.UTC)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class PositionReconstructor:
    """Rebuilds stored positions from stored fills."""

    @staticmethod
    def rebuild_for_account(
        session: Session,
        account_id: str,
        group: bool = True,
        split_flips: bool = False,
    ) -> RebuildSummary:
        """
        Full rebuild of positions from fills.
        Idempotent: closed positions are upserted by position_key, open positions are
        replaced by whatever is still open after this run.

        Args:
            session: SQLModel session
            account_id: Account to rebuild
            group: merge split fills before sessionizing
            split_flips: split fills that take exposure through zero

        Returns:
            RebuildSummary
        """
        stmt = select(FillRecord).where(
            FillRecord.account_id == account_id
        ).order_by(FillRecord.time_ms, FillRecord.trade_id)
        fills = session.exec(stmt).all()

        result = build_positions(
            [f.to_raw() for f in fills],
            group=group,
            split_flips=split_flips,
        )

        summary = RebuildSummary(
            fills=len(fills),
            ignored_fills=result.ignored_fills,
            open_positions=len(result.open_positions),
            incomplete_sessions=result.incomplete_sessions,
            warnings=list(result.warnings),
        )

        existing: Dict[str, PositionRecord] = {
            p.position_key: p
            for p in session.exec(
                select(PositionRecord).where(PositionRecord.account_id == account_id)
            ).all()
        }
        now = datetime.utcnow()
        touched = set()

        for position in result.closed_positions:
            record = existing.get(position.position_key)
            if record is None:
                summary.closed_created += 1
            else:
                summary.closed_updated += 1
            PositionReconstructor._save(session, account_id, record, position, now)
            touched.add(position.position_key)

        for position in result.open_positions:
            PositionReconstructor._save(session, account_id, existing.get(position.position_key), position, now)
            touched.add(position.position_key)

        # Open positions from an earlier run that no longer exist
        for key, record in existing.items():
            if key not in touched and record.status == "open":
                session.delete(record)
                summary.stale_open_removed += 1

        session.commit()

        if summary.ignored_fills:
            logger.warning("Account %s: ignored %d invalid fills", account_id, summary.ignored_fills)
        for warning in summary.warnings:
            logger.warning("Account %s: %s", account_id, warning)
        logger.info(
            "Account %s: rebuilt %d closed (%d new) and %d open positions from %d fills",
            account_id,
            summary.closed_created + summary.closed_updated,
            summary.closed_created,
            summary.open_positions,
            summary.fills,
        )
        return summary

    @staticmethod
    def _save(
        session: Session,
        account_id: str,
        record: Optional[PositionRecord],
        position: Union[ClosedPosition, OpenPosition],
        now: datetime,
    ) -> PositionRecord:
        """Create or update the record for one position."""
        if record is None:
            record = PositionRecord(
                account_id=account_id,
                position_key=position.position_key,
                symbol=position.symbol,
                position_side=position.position_side.value,
                opened_at_utc=ms_to_utc(position.open_time),
                last_fill_at_utc=ms_to_utc(position.open_time),
                open_price=0.0,
                max_open_qty=0.0,
                created_at=now,
            )

        record.open_price = float(position.open_price)
        record.max_open_qty = float(position.max_open_qty)
        record.realized_pnl = float(position.realized_pnl)
        record.fees = float(position.fees)
        record.fee_asset = position.fee_asset
        record.fill_count = position.fill_count
        record.updated_at = now

        if isinstance(position, ClosedPosition):
            record.status = "closed"
            record.closed_at_utc = ms_to_utc(position.close_time)
            record.last_fill_at_utc = ms_to_utc(position.close_time)
            record.close_price = float(position.close_price)
            record.closed_qty = float(position.closed_qty)
            record.current_qty = 0.0
            record.pnl_percent = _to_float(position.pnl_percent)
        else:
            record.status = "open"
            record.closed_at_utc = None
            record.last_fill_at_utc = ms_to_utc(position.last_time)
            record.close_price = None
            record.closed_qty = 0.0
            record.current_qty = float(position.current_qty)
            record.pnl_percent = None

        session.add(record)
        return record
