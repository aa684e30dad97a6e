"""
Quote of the day.

Selection is deterministic per (user, local date): a 32-bit string hash of
"<user_id>-<YYYY-MM-DD>" modulo the number of stored quotes picks the quote
(quotes ordered by creation). Missing quotes or a storage error fall back
to DEFAULT_QUOTE; the daily status must never fail because of a quote.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.quote import Quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteOfTheDay:
    text: str
    author: Optional[str]


DEFAULT_QUOTE = QuoteOfTheDay(
    text="Every day, do something for your Body and Mind.",
    author=None,
)


def string_hash(value: str) -> int:
    """Non-negative 32-bit ``h * 31 + c`` hash over UTF-16 code units."""
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def quote_index(user_id: str, day: date, count: int) -> int:
    return string_hash(f"{user_id}-{day.isoformat()}") % count


def daily_quote(db: Session, user_id: str, day: date) -> QuoteOfTheDay:
    try:
        count = db.query(Quote).count()
        if count == 0:
            return DEFAULT_QUOTE
        quote = (
            db.query(Quote)
            .order_by(Quote.created_at.asc(), Quote.id.asc())
            .offset(quote_index(user_id, day, count))
            .first()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.warning("quote lookup failed for %s; using default", user_id, exc_info=True)
        return DEFAULT_QUOTE

    if quote is None:
        return DEFAULT_QUOTE
    return QuoteOfTheDay(text=quote.text, author=quote.author)
