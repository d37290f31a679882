# src/fill_ledger/domain/sessionizer.py
"""
Position reconstruction from fills.
Tracks net exposure per key and emits a position each time exposure returns to zero.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from fill_ledger.domain.grouper import FillGrouper
from fill_ledger.domain.models import (
    ClosedPosition,
    FillGroup,
    HedgeMode,
    OpenPosition,
    PositionSession,
    ReconstructionResult,
    TrackingKey,
    ZERO,
)
from fill_ledger.domain.modes import resolve_mode, session_direction, signed_delta, tracking_key
from fill_ledger.io.fill_normalizer import FillNormalizer

logger = logging.getLogger(__name__)


class PositionSessionizer:
    """
    FLAT -> OPEN -> FLAT state machine per tracking key.

    Args:
        split_flips: when a single fill takes exposure through zero, close the
            current session with the part that reaches zero and open a new one
            with the remainder. When False the fill is classified as a whole by
            whether it grew or shrank absolute exposure.
    """

    def __init__(self, split_flips: bool = False):
        self.split_flips = split_flips

    def run(self, groups: Iterable[FillGroup]) -> ReconstructionResult:
        """Sessionize time-ordered fill groups."""
        sessions: Dict[TrackingKey, PositionSession] = {}
        result = ReconstructionResult()

        for group in groups:
            result.groups += 1
            self._apply(group, sessions, result)

        for session in sessions.values():
            result.open_positions.append(self._to_open_position(session))

        return result

    def _apply(
        self,
        group: FillGroup,
        sessions: Dict[TrackingKey, PositionSession],
        result: ReconstructionResult,
    ) -> None:
        mode = resolve_mode(group.position_side)
        key = tracking_key(group.symbol, mode)
        delta = signed_delta(mode, group.side, group.qty)

        session = sessions.get(key)
        if session is None:
            if isinstance(mode, HedgeMode) and delta < 0:
                # Reducing a bucket we never saw open: batch started mid-position
                result.incomplete_sessions += 1
                result.warnings.append(
                    f"Dropped {group.side.value} {group.qty} {group.symbol} {mode.side.value} "
                    f"at {group.time}: closes a position opened before this batch"
                )
                return
            session = PositionSession(
                symbol=group.symbol,
                direction=session_direction(mode, delta),
                open_time=group.time,
                close_time=group.time,
            )
            sessions[key] = session

        prev_qty = session.open_qty
        next_qty = prev_qty + delta
        crosses_zero = prev_qty != 0 and next_qty != 0 and (prev_qty > 0) != (next_qty > 0)

        if crosses_zero:
            result.warnings.append(
                f"{group.side.value} {group.qty} {group.symbol} at {group.time} takes "
                f"{session.position_key} through zero ({prev_qty} -> {next_qty})"
            )
            if self.split_flips:
                closing, remainder = self._split(group, abs(prev_qty))
                self._accumulate(session, closing, -prev_qty, key, sessions, result)
                self._apply(remainder, sessions, result)
                return

        self._accumulate(session, group, delta, key, sessions, result)

    @staticmethod
    def _split(group: FillGroup, closing_qty: Decimal) -> Tuple[FillGroup, FillGroup]:
        """Split a group into the part that flattens exposure and the rest."""
        closing_fee = group.fee * closing_qty / group.qty
        closing = replace(group, qty=closing_qty, fee=closing_fee, trade_keys=list(group.trade_keys))
        remainder = replace(
            group,
            qty=group.qty - closing_qty,
            fee=group.fee - closing_fee,
            realized_pnl=ZERO,  # exchange realizes PnL on the closing part only
            fill_count=0,  # the executions are already counted by the closing part
            trade_keys=list(group.trade_keys),
        )
        return closing, remainder

    def _accumulate(
        self,
        session: PositionSession,
        group: FillGroup,
        delta: Decimal,
        key: TrackingKey,
        sessions: Dict[TrackingKey, PositionSession],
        result: ReconstructionResult,
    ) -> None:
        prev_qty = session.open_qty
        next_qty = prev_qty + delta

        if abs(next_qty) > abs(prev_qty):
            session.open_sum.add(group.price, group.qty)
        else:
            session.close_sum.add(group.price, group.qty)

        session.open_qty = next_qty
        session.max_abs_qty = max(session.max_abs_qty, abs(next_qty))
        session.realized_pnl += group.realized_pnl
        session.fees += group.fee
        session.fee_asset = session.fee_asset or group.fee_asset
        session.fill_count += group.fill_count
        session.close_time = group.time
        session.last_price = group.price

        if prev_qty != 0 and next_qty == 0:
            result.closed_positions.append(self._to_closed_position(session))
            del sessions[key]

    @staticmethod
    def _to_closed_position(session: PositionSession) -> ClosedPosition:
        open_price = session.open_sum.vwap(session.last_price)
        close_price = session.close_sum.vwap(session.last_price)
        closed_qty = session.close_sum.qty if session.close_sum.qty > 0 else session.max_abs_qty

        notional = session.max_abs_qty * open_price
        pnl_percent = session.realized_pnl / notional if notional != 0 else None

        return ClosedPosition(
            position_key=session.position_key,
            symbol=session.symbol,
            position_side=session.direction,
            open_time=session.open_time,
            close_time=session.close_time,
            open_price=open_price,
            close_price=close_price,
            closed_qty=closed_qty,
            max_open_qty=session.max_abs_qty,
            realized_pnl=session.realized_pnl,
            pnl_percent=pnl_percent,
            fees=session.fees,
            fee_asset=session.fee_asset,
            fill_count=session.fill_count,
        )

    @staticmethod
    def _to_open_position(session: PositionSession) -> OpenPosition:
        return OpenPosition(
            position_key=session.position_key,
            symbol=session.symbol,
            position_side=session.direction,
            open_time=session.open_time,
            last_time=session.close_time,
            open_price=session.open_sum.vwap(session.last_price),
            current_qty=abs(session.open_qty),
            max_open_qty=session.max_abs_qty,
            realized_pnl=session.realized_pnl,
            fees=session.fees,
            fee_asset=session.fee_asset,
            fill_count=session.fill_count,
        )


def build_positions(
    raw_fills: Iterable[Any],
    group: bool = True,
    split_flips: bool = False,
) -> ReconstructionResult:
    """
    Rebuild closed and open positions from a batch of raw fills.

    Args:
        raw_fills: Binance userTrades objects, stored fill rows or Fill objects
        group: merge split fills of one order before sessionizing
        split_flips: see PositionSessionizer

    Returns:
        ReconstructionResult; never raises on bad input records
    """
    fills, ignored = FillNormalizer.normalize_all(raw_fills)
    fills.sort(key=lambda f: f.time)

    groups: List[FillGroup] = FillGrouper.group(fills) if group else FillGrouper.wrap(fills)

    result = PositionSessionizer(split_flips=split_flips).run(groups)
    result.ignored_fills = ignored

    logger.debug(
        "Built %d closed / %d open positions from %d fills (%d groups, %d ignored)",
        len(result.closed_positions),
        len(result.open_positions),
        len(fills),
        len(groups),
        ignored,
    )
    return result
