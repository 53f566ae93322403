"""
Cursor pagination on a timestamp column.

Handlers fetch ``limit + 1`` rows ordered by the column and, when a cursor is
given, filter strictly past it (``<`` for newest-first, ``>`` for
oldest-first). The extra row only signals that another page exists.
"""
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from society.core.errors import RequestValidationFailed
from society.utils.dates import to_naive_utc

T = TypeVar("T")


def encode_cursor(value: datetime) -> str:
    return to_naive_utc(value).isoformat(timespec="microseconds")


def decode_cursor(cursor: str) -> datetime:
    try:
        value = datetime.fromisoformat(cursor.replace("Z", "+00:00"))
    except ValueError:
        raise RequestValidationFailed(
            "Invalid parameters",
            details=[{"field": "cursor", "message": "Malformed cursor", "type": "value_error"}],
        )
    return to_naive_utc(value)


def apply_cursor(stmt, column, cursor: Optional[str], limit: int, ascending: bool = False):
    if cursor:
        point = decode_cursor(cursor)
        stmt = stmt.where(column > point if ascending else column < point)
    order = column.asc() if ascending else column.desc()
    return stmt.order_by(order).limit(limit + 1)


def paginate(rows: Sequence[T], limit: int, key: Callable[[T], datetime]) -> Tuple[List[T], dict]:
    """Trim the look-ahead row and build ``meta``; the cursor is the last returned row's key."""
    items = list(rows[:limit])
    if len(rows) > limit:
        return items, {"cursor": encode_cursor(key(items[-1])), "hasMore": True}
    return items, {"hasMore": False}
