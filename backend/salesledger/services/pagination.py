# Overview: Cursor and page-number pagination shared by the ledger and the catalog.

"""
Pagination

Two mutually exclusive modes, chosen by the caller:
- Offset mode: `page` is present. The response carries a `pagination`
  block {current_page, last_page, per_page, total}.
- Cursor mode: `page` is absent. The response carries next_cursor,
  prev_cursor and has_more. The cursor is an opaque token encoding an
  offset into the sorted result; it is not stable if the underlying set
  changes between calls.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from dataclasses import dataclass

from flask import current_app

from ..errors import ValidationError
from ..validation import MAX_DB_INTEGER, parse_positive_int


@dataclass(frozen=True)
class PageRequest:
    per_page: int
    page: int | None = None
    cursor: str | None = None

    @property
    def is_offset_mode(self) -> bool:
        return self.page is not None

    @property
    def offset(self) -> int:
        if self.is_offset_mode:
            return (self.page - 1) * self.per_page
        return decode_cursor(self.cursor)

    def signature(self) -> dict:
        """Cache-key fragment describing this page request."""
        if self.is_offset_mode:
            return {"mode": "page", "page": self.page, "per_page": self.per_page}
        return {"mode": "cursor", "cursor": self.cursor or "", "per_page": self.per_page}


def encode_cursor(offset: int) -> str:
    raw = json.dumps({"o": offset}, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str | None) -> int:
    """Return the offset encoded in cursor (0 for no cursor); 422 if malformed."""
    if not cursor:
        return 0
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        offset = data["o"]
    except (ValueError, TypeError, KeyError, UnicodeError, binascii.Error):
        raise ValidationError.for_field("cursor", "The cursor is invalid.") from None
    if isinstance(offset, bool) or not isinstance(offset, int) or not 0 <= offset <= MAX_DB_INTEGER:
        raise ValidationError.for_field("cursor", "The cursor is invalid.")
    return offset


def page_request_from_args(args) -> PageRequest:
    """Build a PageRequest from query parameters, validating cursor up front."""
    default = current_app.config.get("SALES_DEFAULT_PER_PAGE", 15)
    maximum = current_app.config.get("SALES_MAX_PER_PAGE", 100)

    per_page = parse_positive_int(args, "per_page", default=default, maximum=maximum)
    # Keeps (page - 1) * per_page within a bindable OFFSET
    page = parse_positive_int(args, "page", limit=MAX_DB_INTEGER // maximum)
    cursor = None if page is not None else (args.get("cursor") or None)

    # Fail on a bad cursor before any query runs
    decode_cursor(cursor)
    return PageRequest(per_page=per_page, page=page, cursor=cursor)


def page_meta(page_request: PageRequest, total: int, returned: int) -> dict:
    """Pagination fields for one response, in the request's mode only."""
    per_page = page_request.per_page
    offset = page_request.offset

    if page_request.is_offset_mode:
        return {
            "pagination": {
                "current_page": page_request.page,
                "last_page": max(1, math.ceil(total / per_page)),
                "per_page": per_page,
                "total": total,
            }
        }

    has_more = offset + returned < total
    return {
        "next_cursor": encode_cursor(offset + per_page) if has_more else None,
        "prev_cursor": encode_cursor(max(0, offset - per_page)) if offset > 0 else None,
        "has_more": has_more,
        "per_page": per_page,
    }


def paginate_sequence(items: list, page_request: PageRequest) -> tuple[list, dict]:
    """Slice an already sorted list; returns (page_items, meta)."""
    offset = page_request.offset
    page_items = items[offset:offset + page_request.per_page]
    return page_items, page_meta(page_request, len(items), len(page_items))


def paginate_query(query, page_request: PageRequest) -> tuple[list, dict]:
    """Apply LIMIT/OFFSET to an ordered query; returns (rows, meta)."""
    total = query.order_by(None).count()
    rows = query.offset(page_request.offset).limit(page_request.per_page).all()
    return rows, page_meta(page_request, total, len(rows))
