# src/fill_ledger/io/importer.py
"""Idempotent import logic for Binance futures fills."""

import json
import logging
from typing import Any, List, Mapping, Tuple
from sqlmodel import Session, select

from fill_ledger.db.models import Account, FillRecord
from fill_ledger.io.fill_normalizer import FillNormalizer, InvalidFillError

logger = logging.getLogger(__name__)


class FillImportError(ValueError):
    """Raised when an uploaded fill payload can't be read."""


class FillImporter:
    """Handles idempotent import of fills."""

    @staticmethod
    def parse_payload(text: str) -> List[dict]:
        """
        Parse a JSON fill payload.

        Accepts a bare userTrades array or an object wrapping it under "fills".
        """
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise FillImportError(f"Fill payload is not valid JSON: {e}") from e

        if isinstance(payload, dict):
            payload = payload.get("fills")
        if not isinstance(payload, list):
            raise FillImportError("Fill payload must be a JSON array of fills")
        return [row for row in payload if isinstance(row, dict)]

    @staticmethod
    def _text(value: Any) -> str:
        return str(value).strip() if value is not None else ""

    @staticmethod
    def import_fills(
        session: Session,
        account: Account,
        raw_fills: List[Mapping[str, Any]],
    ) -> Tuple[int, int, List[str]]:
        """
        Store raw fills for an account.

        Idempotent rules:
        - Skip if the fill already exists in DB for this account (account_id, trade_key).
        - Skip duplicates within the same payload.
        - Skip rows with no trade id, symbol or time; field validation happens at rebuild.

        Returns:
            (total_processed, newly_inserted, warnings)
        """
        warnings: List[str] = []
        newly_inserted = 0

        stmt = select(FillRecord.trade_key).where(FillRecord.account_id == account.id)
        existing_keys = set(session.exec(stmt).all())
        seen_in_payload = set()

        for raw in raw_fills:
            trade_id = FillImporter._text(raw.get("id") if raw.get("id") is not None else raw.get("tradeId"))
            symbol = FillImporter._text(raw.get("symbol"))
            time_raw = raw.get("time") if raw.get("time") is not None else raw.get("timestamp")

            if not trade_id or not symbol:
                warnings.append(f"Skipped fill with missing trade id or symbol: {symbol or '?'} {trade_id or '?'}")
                continue

            try:
                time_ms = FillNormalizer.parse_time(time_raw)
            except InvalidFillError:
                warnings.append(f"Skipped fill with unreadable time: {symbol} {trade_id}")
                continue

            trade_key = f"{symbol}#{trade_id}"

            if trade_key in seen_in_payload:
                warnings.append(f"Skipped duplicate in payload: {trade_key}")
                continue
            seen_in_payload.add(trade_key)

            if trade_key in existing_keys:
                warnings.append(f"Skipped duplicate in DB: {trade_key}")
                continue

            order_id = FillImporter._text(raw.get("orderId"))
            fill = FillRecord(
                account_id=account.id,
                trade_key=trade_key,
                trade_id=trade_id,
                order_id=order_id or None,
                symbol=symbol,
                time_ms=time_ms,
                side=FillImporter._text(raw.get("side")).upper(),
                position_side=FillImporter._text(raw.get("positionSide")).upper() or None,
                price=FillImporter._text(raw.get("price")),
                qty=FillImporter._text(raw.get("qty")),
                realized_pnl=FillImporter._text(raw.get("realizedPnl")) or "0",
                commission=FillImporter._text(raw.get("commission")) or "0",
                commission_asset=FillImporter._text(raw.get("commissionAsset")) or None,
            )

            session.add(fill)
            newly_inserted += 1
            existing_keys.add(trade_key)

        if newly_inserted:
            session.commit()

        logger.info(
            "Imported %d new fills for account %s (%d processed, %d skipped)",
            newly_inserted,
            account.id,
            len(raw_fills),
            len(warnings),
        )
        return len(raw_fills), newly_inserted, warnings
