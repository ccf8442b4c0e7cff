"""Integer stream positions encoded as cursors.

Both bundled sources address their stream by a monotonically increasing
integer position. The cursor is its ASCII decimal form; the empty cursor is
position 0, i.e. before the first event.
"""

from __future__ import annotations

from esprojector.foundation.domain import BEGINNING, Cursor, InvalidCursorError


def encode_position(position: int) -> Cursor:
    """Encode a stream position as a cursor.

    Raises:
        ValueError: If ``position`` is negative.
    """
    if position < 0:
        msg = f"position must be non-negative, got {position}"
        raise ValueError(msg)
    if position == 0:
        return BEGINNING
    return str(position).encode("ascii")


def decode_position(cursor: Cursor) -> int:
    """Decode a cursor produced by ``encode_position``.

    Raises:
        InvalidCursorError: If the cursor is not a non-negative decimal.
    """
    if not cursor:
        return 0
    if not cursor.isdigit():
        raise InvalidCursorError(cursor, "expected an ASCII decimal position")
    return int(cursor)
