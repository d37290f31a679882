# src/fill_ledger/io/fill_normalizer.py
"""
Binance futures fill normalizer.
Validates raw userTrades objects (or stored fill rows) and coerces them into typed Fills.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from fill_ledger.domain.models import Fill, PositionSide, Side, ZERO

logger = logging.getLogger(__name__)


class InvalidFillError(ValueError):
    """Raised when a raw fill fails validation."""


class FillNormalizer:
    """Turn raw exchange fill payloads into Fill objects."""

    @staticmethod
    def parse_decimal(value: Any, field_name: str) -> Decimal:
        if value is None or isinstance(value, bool):
            raise InvalidFillError(f"{field_name} missing")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidFillError(f"{field_name} not numeric: {value!r}")
        if not number.is_finite():
            raise InvalidFillError(f"{field_name} not finite: {value!r}")
        return number

    @staticmethod
    def parse_optional_decimal(value: Any, field_name: str) -> Decimal:
        """Absent or blank values mean zero; anything else must parse."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return ZERO
        return FillNormalizer.parse_decimal(value, field_name)

    @staticmethod
    def parse_time(value: Any) -> int:
        number = FillNormalizer.parse_decimal(value, "time")
        if number != number.to_integral_value():
            raise InvalidFillError(f"time not an integer: {value!r}")
        return int(number)

    @staticmethod
    def parse_position_side(value: Any) -> Optional[PositionSide]:
        ps = str(value or "").strip().upper()
        try:
            return PositionSide(ps)
        except ValueError:
            # unrecognized tags fall back to one-way handling downstream
            return None

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        text = str(value).strip() if value is not None else ""
        return text or None

    @staticmethod
    def parse(raw: Mapping[str, Any]) -> Fill:
        """
        Parse one raw fill.

        Accepts both Binance's userTrades objects (`id`, `time`) and stored fill
        rows (`tradeId`, `timestamp`).

        Raises:
            InvalidFillError: if any required field is missing or malformed
        """
        symbol = str(raw.get("symbol") or "").strip()
        if not symbol:
            raise InvalidFillError("symbol missing")

        time = FillNormalizer.parse_time(
            raw["time"] if raw.get("time") is not None else raw.get("timestamp")
        )

        side_text = str(raw.get("side") or "").strip().upper()
        if side_text not in ("BUY", "SELL"):
            raise InvalidFillError(f"side not BUY/SELL: {raw.get('side')!r}")

        price = FillNormalizer.parse_decimal(raw.get("price"), "price")
        qty = FillNormalizer.parse_decimal(raw.get("qty"), "qty")
        if price <= 0:
            raise InvalidFillError(f"price not positive: {price}")
        if qty <= 0:
            raise InvalidFillError(f"qty not positive: {qty}")

        trade_id = raw.get("id") if raw.get("id") is not None else raw.get("tradeId")

        return Fill(
            symbol=symbol,
            time=time,
            side=Side(side_text),
            position_side=FillNormalizer.parse_position_side(raw.get("positionSide")),
            price=price,
            qty=qty,
            realized_pnl=FillNormalizer.parse_optional_decimal(raw.get("realizedPnl"), "realizedPnl"),
            commission=FillNormalizer.parse_optional_decimal(raw.get("commission"), "commission"),
            commission_asset=FillNormalizer._text(raw.get("commissionAsset")),
            order_id=FillNormalizer._text(raw.get("orderId")),
            trade_id=FillNormalizer._text(trade_id),
        )

    @staticmethod
    def validate(fill: Fill) -> Fill:
        """
        Check an already-typed Fill against the same rules `parse` applies.

        Raises:
            InvalidFillError: if the fill breaks a Fill invariant
        """
        if not str(fill.symbol or "").strip():
            raise InvalidFillError("symbol missing")
        if isinstance(fill.time, bool) or not isinstance(fill.time, int):
            raise InvalidFillError(f"time not an integer: {fill.time!r}")
        if not isinstance(fill.side, Side):
            raise InvalidFillError(f"side not BUY/SELL: {fill.side!r}")
        for name in ("price", "qty", "realized_pnl", "commission"):
            value = getattr(fill, name)
            if not isinstance(value, Decimal) or not value.is_finite():
                raise InvalidFillError(f"{name} not a finite Decimal: {value!r}")
        if fill.price <= 0:
            raise InvalidFillError(f"price not positive: {fill.price}")
        if fill.qty <= 0:
            raise InvalidFillError(f"qty not positive: {fill.qty}")
        return fill

    @staticmethod
    def normalize(raw: Any) -> Optional[Fill]:
        """Parse (or re-check) one raw fill, returning None if it is invalid."""
        try:
            if isinstance(raw, Fill):
                return FillNormalizer.validate(raw)
            return FillNormalizer.parse(raw)
        except (InvalidFillError, AttributeError, TypeError) as e:
            logger.debug("Ignoring fill %r: %s", raw, e)
            return None

    @staticmethod
    def normalize_all(raw_fills: Iterable[Any]) -> Tuple[List[Fill], int]:
        """
        Normalize a batch of raw fills.

        Returns:
            (valid_fills, ignored_fills)
        """
        fills: List[Fill] = []
        ignored = 0

        for raw in raw_fills:
            fill = FillNormalizer.normalize(raw)
            if fill is None:
                ignored += 1
                continue
            fills.append(fill)

        return fills, ignored
