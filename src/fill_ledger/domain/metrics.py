# src/fill_ledger/domain/metrics.py
"""Metrics and reporting over rebuilt positions."""

from typing import Dict, List, Optional
from sqlmodel import Session, select
import pytz
import pandas as pd

from fill_ledger.db.models import PositionRecord
from fill_ledger.settings import get_report_timezone


class MetricsCalculator:
    """Calculate trading metrics from closed positions."""

    @staticmethod
    def _closed_positions(session: Session, account_id: str) -> List[PositionRecord]:
        stmt = select(PositionRecord).where(
            PositionRecord.account_id == account_id,
            PositionRecord.status == "closed",
        ).order_by(PositionRecord.closed_at_utc)
        return session.exec(stmt).all()

    @staticmethod
    def get_overview_stats(
        session: Session,
        account_id: str,
        use_gross: bool = False,
    ) -> Dict:
        """Get overall statistics. Net PnL is realized PnL minus fees."""
        closed = MetricsCalculator._closed_positions(session, account_id)

        if not closed:
            return {
                "total_positions": 0,
                "winning_positions": 0,
                "losing_positions": 0,
                "win_rate": 0.0,
                "total_realized": 0.0,
                "total_fees": 0.0,
                "total_net": 0.0,
                "avg_win": 0.0,
                "avg_loss": 0.0,
                "profit_factor": 0.0,
            }

        def pnl(p: PositionRecord) -> float:
            return p.realized_pnl if use_gross else p.net_pnl

        wins = [p for p in closed if pnl(p) > 0]
        losses = [p for p in closed if pnl(p) < 0]

        gross_wins = sum(pnl(p) for p in wins)
        gross_losses = sum(abs(pnl(p)) for p in losses)

        return {
            "total_positions": len(closed),
            "winning_positions": len(wins),
            "losing_positions": len(losses),
            "win_rate": len(wins) / len(closed),
            "total_realized": sum(p.realized_pnl for p in closed),
            "total_fees": sum(p.fees for p in closed),
            "total_net": sum(p.net_pnl for p in closed),
            "avg_win": gross_wins / len(wins) if wins else 0.0,
            "avg_loss": -gross_losses / len(losses) if losses else 0.0,
            "profit_factor": gross_wins / gross_losses if gross_losses > 0 else 0.0,
        }

    @staticmethod
    def get_symbol_stats(session: Session, account_id: str) -> pd.DataFrame:
        """Get performance by symbol and side."""
        closed = MetricsCalculator._closed_positions(session, account_id)

        if not closed:
            return pd.DataFrame(
                columns=["symbol", "position_side", "count", "wins", "win_rate", "realized_pnl", "fees", "net_pnl"]
            )

        df = pd.DataFrame(
            [
                {
                    "symbol": p.symbol,
                    "position_side": p.position_side,
                    "realized_pnl": p.realized_pnl,
                    "fees": p.fees,
                    "net_pnl": p.net_pnl,
                    "is_win": 1 if p.net_pnl > 0 else 0,
                }
                for p in closed
            ]
        )
        out = (
            df.groupby(["symbol", "position_side"], as_index=False)
            .agg(
                count=("net_pnl", "count"),
                wins=("is_win", "sum"),
                realized_pnl=("realized_pnl", "sum"),
                fees=("fees", "sum"),
                net_pnl=("net_pnl", "sum"),
            )
            .sort_values(["symbol", "position_side"])
            .reset_index(drop=True)
        )
        out["win_rate"] = out["wins"] / out["count"]
        return out[["symbol", "position_side", "count", "wins", "win_rate", "realized_pnl", "fees", "net_pnl"]]

    @staticmethod
    def get_daily_pnl(
        session: Session,
        account_id: str,
        report_timezone: Optional[str] = None,
        use_gross: bool = False,
    ) -> pd.DataFrame:
        """
        Build an equity curve from closed positions, bucketed by close date.

        Returns DataFrame with columns: date, daily_pnl, cumulative_pnl, drawdown, positions
        """
        tz = pytz.timezone(report_timezone or get_report_timezone())
        closed = MetricsCalculator._closed_positions(session, account_id)

        if not closed:
            return pd.DataFrame(
                columns=["date", "daily_pnl", "cumulative_pnl", "drawdown", "positions"]
            )

        by_day: Dict[str, List[float]] = {}
        for p in closed:
            closed_at = p.closed_at_utc
            if closed_at.tzinfo is None:
                # SQLite drops tzinfo; stored values are UTC
                closed_at = pytz.UTC.localize(closed_at)
            day = closed_at.astimezone(tz).strftime("%Y-%m-%d")
            by_day.setdefault(day, []).append(p.realized_pnl if use_gross else p.net_pnl)

        rows = []
        cumulative = 0.0
        peak = 0.0

        for day in sorted(by_day):
            daily_pnl = sum(by_day[day])
            cumulative += daily_pnl
            peak = max(peak, cumulative)
            drawdown = cumulative - peak if peak > 0 else 0.0

            rows.append(
                {
                    "date": day,
                    "daily_pnl": daily_pnl,
                    "cumulative_pnl": cumulative,
                    "drawdown": drawdown,
                    "positions": len(by_day[day]),
                }
            )

        return pd.DataFrame(rows)
