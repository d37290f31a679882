# src/fill_ledger/domain/grouper.py
"""
Split-fill grouping.
Exchanges may report one logical execution as several partial fills; merge them first.
"""

from typing import Dict, Iterable, List, Tuple

from fill_ledger.domain.models import Fill, FillGroup, Side


class FillGrouper:
    """Groups fills by (symbol, order, time, side)."""

    @staticmethod
    def group_key(fill: Fill, position: int) -> Tuple[str, str, int, Side]:
        # Fills without an order id are never merged with anything else
        if fill.order_id:
            order_part = fill.order_id
        elif fill.trade_id:
            order_part = f"trade:{fill.trade_id}"
        else:
            order_part = f"row:{position}"
        return fill.symbol, order_part, fill.time, fill.side

    @staticmethod
    def group(fills: Iterable[Fill]) -> List[FillGroup]:
        """
        Merge split fills into FillGroups.

        Returns:
            Groups ordered ascending by time; ties keep first-seen order.
        """
        by_key: Dict[Tuple[str, str, int, Side], FillGroup] = {}

        for position, fill in enumerate(fills):
            key = FillGrouper.group_key(fill, position)
            group = by_key.get(key)
            if group is None:
                by_key[key] = FillGroup.from_fill(fill)
            else:
                group.add(fill)

        # dicts keep insertion order and sorted() is stable
        return sorted(by_key.values(), key=lambda g: g.time)

    @staticmethod
    def wrap(fills: Iterable[Fill]) -> List[FillGroup]:
        """One group per fill, ordered by time. Used when grouping is disabled."""
        return sorted((FillGroup.from_fill(f) for f in fills), key=lambda g: g.time)
