"""
Centralized document builder for trade embedding content.

This module provides a single source of truth for turning a trade into the
searchable text that gets embedded, used by both the migration and the
incremental embedding paths.
"""

from typing import Dict, Any, Union

from models import TradeRecord

SEASONS = [
    "winter", "winter", "spring", "spring", "spring", "summer",
    "summer", "summer", "fall", "fall", "fall", "winter",
]


def _format_number(value: Union[int, float, str]) -> str:
    """Render integral floats without a trailing '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def trade_to_searchable_text(trade: TradeRecord) -> str:
    """
    Convert a trade into lowercase searchable text.

    Fields are emitted once each in a fixed order, followed by calendar terms
    (weekday, month, year, quarter, weekend/weekday, season) so that queries
    like "monday trades" match on the embedded content.

    Args:
        trade: Trade to describe

    Returns:
        Space-joined lowercase text suitable for embedding

    Raises:
        ValueError: If trade is None
    """
    if trade is None:
        raise ValueError("trade cannot be None")

    parts = []

    parts.append(f"{trade.trade_type} trade")
    parts.append(f"amount {_format_number(abs(trade.amount))}")

    if trade.name:
        parts.append(f"name {trade.name}")
    if trade.session:
        parts.append(f"session {trade.session}")
    if trade.entry:
        parts.append(f"entry {_format_number(trade.entry)}")
    if trade.exit:
        parts.append(f"exit {_format_number(trade.exit)}")
    if trade.risk_to_reward:
        parts.append(f"risk reward ratio {_format_number(trade.risk_to_reward)}")
    if trade.partials_taken:
        parts.append("partials taken")

    if trade.tags:
        parts.append(f"tags {' '.join(trade.tags)}")

    if trade.notes:
        parts.append(f"notes {trade.notes}")

    if trade.economic_events:
        events = " ".join(
            f"{event.name} {event.impact} {event.currency}"
            for event in trade.economic_events
        )
        parts.append(f"economic events {events}")

    # Date terms
    date = trade.date
    day_of_week = date.strftime("%A")
    month = date.strftime("%B")
    quarter = (date.month - 1) // 3 + 1
    parts.append(f"day {day_of_week} month {month} year {date.year} quarter {quarter}")

    if day_of_week in ("Saturday", "Sunday"):
        parts.append("weekend")
    else:
        parts.append("weekday")

    parts.append(f"season {SEASONS[date.month - 1]}")

    return " ".join(parts).lower()


def embedding_metadata(trade: TradeRecord) -> Dict[str, Any]:
    """
    Build the filterable columns stored next to a trade's embedding.

    Args:
        trade: Trade being embedded

    Returns:
        Dict with trade_type, trade_amount, trade_date, trade_session and tags
    """
    return {
        "trade_type": trade.trade_type,
        "trade_amount": trade.amount,
        "trade_date": trade.date,
        "trade_session": trade.session or None,
        "tags": list(trade.tags or []),
    }
